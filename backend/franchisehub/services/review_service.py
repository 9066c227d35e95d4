"""Customer review rollups."""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.models import Review, ReviewStatus, Sentiment, Unit


class ReviewService:

    @staticmethod
    def create(db: Session, unit: Unit, data: dict) -> Review:
        review = Review(**data, unit_id=unit.id, franchisee_id=unit.franchisee_id)
        review.review_date = review.review_date or date.today()
        review.sentiment = Sentiment.from_rating(review.rating)
        db.add(review)
        return review

    @staticmethod
    def update(review: Review, changes: dict) -> Review:
        for field, value in changes.items():
            if field == "review_date" and value is None:
                continue
            setattr(review, field, value)
        review.sentiment = Sentiment.from_rating(review.rating)
        return review

    @staticmethod
    def statistics(query) -> dict:
        """Totals over a Review query: average, 1-5 distribution and sentiment counts."""
        distribution = {str(r): 0 for r in range(1, 6)}
        for rating, count in query.with_entities(Review.rating, func.count(Review.id)).group_by(Review.rating).all():
            distribution[str(rating)] = count
        sentiments = {s.value: 0 for s in Sentiment}
        for sentiment, count in (
            query.with_entities(Review.sentiment, func.count(Review.id)).group_by(Review.sentiment).all()
        ):
            sentiments[sentiment.value] = count
        average: Optional[float] = query.with_entities(func.avg(Review.rating)).scalar()
        return {
            "total": sum(distribution.values()),
            "average_rating": round(float(average), 2) if average is not None else 0.0,
            "distribution": distribution,
            "sentiment": sentiments,
            "published": query.filter(Review.status == ReviewStatus.PUBLISHED).count(),
        }

"""Review routes that address a review directly."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireManagement
from franchisehub.core.responses import serialize, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import Review, ReviewStatus, Unit
from franchisehub.schemas.unit import ReviewNotes, ReviewResponse, ReviewUpdate
from franchisehub.services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/statistics")
@limiter.limit("60/minute")
def review_statistics(request: Request, scope: Tenant, db: DbSession, unit_id: Optional[int] = Query(None)):
    query = scope.apply(db.query(Review), Review)
    if unit_id is not None:
        scope.get_or_404(Unit, unit_id, "Unit")
        query = query.filter(Review.unit_id == unit_id)
    return success_response(ReviewService.statistics(query))


@router.get("/{review_id}")
@limiter.limit("60/minute")
def get_review(request: Request, review_id: int, scope: Tenant):
    return success_response(serialize(ReviewResponse, scope.get_or_404(Review, review_id, "Review")))


@router.put("/{review_id}")
@limiter.limit("30/minute")
def update_review(
    request: Request,
    review_id: int,
    data: ReviewUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    review = scope.get_or_404(Review, review_id, "Review")
    try:
        ReviewService.update(review, data.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(review)
        return success_response(serialize(ReviewResponse, review), "Review updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update review {review_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update review")


@router.delete("/{review_id}")
@limiter.limit("30/minute")
def delete_review(request: Request, review_id: int, scope: Tenant, db: DbSession, current_user: RequireManagement):
    review = scope.get_or_404(Review, review_id, "Review")
    db.delete(review)
    db.commit()
    return success_response(message="Review deleted successfully")


def _set_status(scope, db, review_id: int, new_status: ReviewStatus, message: str):
    review = scope.get_or_404(Review, review_id, "Review")
    review.status = new_status
    db.commit()
    db.refresh(review)
    return success_response(serialize(ReviewResponse, review), message)


@router.patch("/{review_id}/publish")
@limiter.limit("30/minute")
def publish_review(request: Request, review_id: int, scope: Tenant, db: DbSession, current_user: RequireManagement):
    return _set_status(scope, db, review_id, ReviewStatus.PUBLISHED, "Review published")


@router.patch("/{review_id}/archive")
@limiter.limit("30/minute")
def archive_review(request: Request, review_id: int, scope: Tenant, db: DbSession, current_user: RequireManagement):
    return _set_status(scope, db, review_id, ReviewStatus.ARCHIVED, "Review archived")


@router.patch("/{review_id}/notes")
@limiter.limit("30/minute")
def update_review_notes(
    request: Request,
    review_id: int,
    data: ReviewNotes,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    review = scope.get_or_404(Review, review_id, "Review")
    review.internal_notes = data.internal_notes
    db.commit()
    db.refresh(review)
    return success_response(serialize(ReviewResponse, review), "Internal notes saved")

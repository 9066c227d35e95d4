"""Creates a franchisee account together with the unit they will run."""

import logging
from typing import Tuple

from sqlalchemy.orm import Session

from franchisehub.core.security import generate_temporary_password, get_password_hash
from franchisehub.models import Franchise, Unit, User, UserRole, UserStatus
from franchisehub.schemas.unit import FranchiseeWithUnitCreate
from franchisehub.services.notification_service import NotificationService
from franchisehub.services.numbering import generate_unit_code

logger = logging.getLogger(__name__)


class FranchiseeOnboardingService:

    @staticmethod
    def create_with_unit(db: Session, franchise: Franchise, data: FranchiseeWithUnitCreate) -> Tuple[User, Unit]:
        """Create the user and unit in one transaction.

        The temporary password is hashed and never returned; an admin resets it
        before first login. Raises ValueError when the email is taken. Rolls the
        session back on any failure.
        """
        email = data.franchisee.email.lower()
        if db.query(User.id).filter(User.email == email).first():
            raise ValueError("A user with this email already exists")
        try:
            user = User(
                **data.franchisee.model_dump(exclude={"email"}),
                email=email,
                password_hash=get_password_hash(generate_temporary_password()),
                role=UserRole.FRANCHISEE,
                status=UserStatus.ACTIVE,
            )
            db.add(user)
            db.flush()

            unit_data = data.unit.model_dump()
            unit = Unit(
                **unit_data,
                franchise_id=franchise.id,
                franchisee_id=user.id,
                unit_code=generate_unit_code(db, franchise.business_name, unit_data["unit_name"]),
            )
            db.add(unit)
            db.flush()
            db.refresh(franchise)
            franchise.update_unit_counts()

            NotificationService.notify(
                db,
                user.id,
                type="unit_assigned",
                title="Welcome to your unit",
                subtitle=f"You now manage {unit.unit_name} ({unit.unit_code})",
                icon="tabler-building-store",
                color="success",
                url="/unit-manager/dashboard",
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        db.refresh(unit)
        logger.info(f"Created franchisee {user.id} with unit {unit.unit_code} in franchise {franchise.id}")
        return user, unit

"""First-login profile completion."""

import logging

from fastapi import APIRouter, HTTPException, Request

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser
from franchisehub.core.responses import serialize, success_response
from franchisehub.db.session import DbSession
from franchisehub.models import UserRole
from franchisehub.schemas.auth import OnboardingRequest
from franchisehub.schemas.user import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status")
@limiter.limit("60/minute")
def onboarding_status(request: Request, current_user: CurrentUser):
    requires = current_user.role == UserRole.FRANCHISEE and not current_user.profile_completed
    return success_response({
        "requires_onboarding": requires,
        "profile_completed": current_user.profile_completed,
        "role": current_user.role.value,
    })


@router.post("/complete")
@limiter.limit("30/minute")
def complete_onboarding(request: Request, data: OnboardingRequest, current_user: CurrentUser, db: DbSession):
    try:
        for field, value in data.model_dump().items():
            setattr(current_user, field, value)
        current_user.profile_completed = True
        db.commit()
        db.refresh(current_user)
        logger.info(f"User {current_user.id} completed onboarding")
        return success_response(serialize(UserResponse, current_user), "Profile completed successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to complete onboarding for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to complete onboarding")

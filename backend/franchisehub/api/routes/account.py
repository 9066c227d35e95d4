"""Account settings available to every signed-in user."""

import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status

from franchisehub.core.file_utils import (
    ALLOWED_IMAGE_EXTENSIONS, delete_stored_file, public_url, save_upload,
)
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser
from franchisehub.core.responses import serialize, success_response
from franchisehub.core.security import get_password_hash, verify_password
from franchisehub.db.session import DbSession
from franchisehub.models import User
from franchisehub.schemas.user import PasswordChange, ProfileUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _profile(user: User) -> dict:
    data = serialize(UserResponse, user)
    data["avatar_url"] = public_url(user.avatar) if user.avatar else None
    return data


@router.get("/profile")
@limiter.limit("60/minute")
def get_profile(request: Request, current_user: CurrentUser):
    return success_response(_profile(current_user), "Profile retrieved successfully")


@router.put("/profile")
@limiter.limit("30/minute")
def update_profile(request: Request, data: ProfileUpdate, current_user: CurrentUser, db: DbSession):
    try:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(current_user, field, value)
        db.commit()
        db.refresh(current_user)
        return success_response(_profile(current_user), "Profile updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update profile for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")


@router.put("/password")
@limiter.limit("5/minute")
def change_password(request: Request, data: PasswordChange, current_user: CurrentUser, db: DbSession):
    if not verify_password(data.current_password, current_user.password_hash):
        logger.warning(f"Password change with wrong current password for user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"current_password": ["Current password is incorrect"]},
            },
        )
    current_user.password_hash = get_password_hash(data.password)
    db.commit()
    logger.info(f"User {current_user.id} changed their password")
    return success_response(message="Password updated successfully")


@router.post("/avatar")
@limiter.limit("10/minute")
def upload_avatar(
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
    avatar: UploadFile = File(...),
):
    try:
        stored = save_upload(avatar, f"avatars/{current_user.id}", ALLOWED_IMAGE_EXTENSIONS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    previous = current_user.avatar
    current_user.avatar = stored["path"]
    db.commit()
    delete_stored_file(previous)
    return success_response(
        {"avatar": stored["url"], "avatar_path": stored["path"]}, "Avatar uploaded successfully"
    )


@router.delete("/avatar")
@limiter.limit("10/minute")
def delete_avatar(request: Request, current_user: CurrentUser, db: DbSession):
    if current_user.avatar:
        delete_stored_file(current_user.avatar)
        current_user.avatar = None
        db.commit()
    return success_response(message="Avatar deleted successfully")

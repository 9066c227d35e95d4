"""Authentication routes."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException, Request, status

from franchisehub.core.config import settings
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser, extract_token
from franchisehub.core.responses import serialize, success_response
from franchisehub.core.security import (
    blacklist_token, create_access_token, get_password_hash, verify_password,
)
from franchisehub.db.session import DbSession
from franchisehub.models import User, UserRole, UserStatus
from franchisehub.schemas.auth import LoginRequest, RegisterRequest
from franchisehub.schemas.user import UserResponse

logger = logging.getLogger("auth")

router = APIRouter()


def _token_payload(user: User, remember: bool = False) -> dict:
    expires = (
        timedelta(days=settings.remember_me_expire_days)
        if remember
        else timedelta(minutes=settings.access_token_expire_minutes)
    )
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value},
        expires_delta=expires,
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": int(expires.total_seconds()),
        "user": serialize(UserResponse, user),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, data: RegisterRequest, db: DbSession):
    """Self-service registration for franchisors and brokers."""
    client_ip = request.client.host if request.client else "unknown"
    email = data.email.lower()
    if db.query(User.id).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"email": ["The email has already been taken."]},
            },
        )

    user = User(
        name=data.name,
        email=email,
        phone=data.phone,
        password_hash=get_password_hash(data.password),
        role=UserRole(data.role),
        status=UserStatus.PENDING,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"New user registered: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")

    payload = _token_payload(user)
    payload["requires_franchise_registration"] = user.role == UserRole.FRANCHISOR
    return success_response(payload, "Registration successful")


@router.post("/login")
@limiter.limit("5/minute")
def login(request: Request, data: LoginRequest, db: DbSession):
    """Authenticate and return a JWT; repeated failures lock the account."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == data.email.lower()).first()

    if user and user.is_locked():
        logger.warning(f"Login attempt for locked account: {user.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many failed login attempts. Try again in {settings.lockout_minutes} minutes.",
        )

    if not user or not verify_password(data.password, user.password_hash):
        if user:
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.max_login_attempts:
                user.locked_until = datetime.now(timezone.utc) + timedelta(minutes=settings.lockout_minutes)
                user.failed_login_attempts = 0
                logger.warning(f"Account locked after repeated failures: {user.email} from IP: {client_ip}")
            db.commit()
        logger.warning(f"Failed login attempt for email: {data.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if user.status in (UserStatus.INACTIVE, UserStatus.SUSPENDED):
        logger.warning(f"Login attempt for {user.status.value} user: {user.email} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    return success_response(_token_payload(user, data.remember), "Login successful")


@router.post("/logout")
@limiter.limit("30/minute")
def logout(request: Request, current_user: CurrentUser):
    """Revoke the presented token."""
    token = extract_token(request)
    if token:
        blacklist_token(token)
    logger.info(f"User logged out: {current_user.email} (ID: {current_user.id})")
    return success_response(message="Logged out successfully")


@router.get("/me")
@limiter.limit("60/minute")
def me(request: Request, current_user: CurrentUser):
    """Get current authenticated user info."""
    return success_response(serialize(UserResponse, current_user))

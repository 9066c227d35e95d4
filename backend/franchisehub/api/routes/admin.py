"""Platform administration routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireAdmin
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.security import get_password_hash
from franchisehub.db.session import DbSession
from franchisehub.models import Franchise, Lead, Task, TechnicalRequest, User, UserRole, UserStatus
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.technical_request import RequestStatusUpdate, TechnicalRequestResponse
from franchisehub.schemas.unit import FranchiseeWithUnitCreate, UnitResponse
from franchisehub.schemas.user import PasswordReset, UserCreate, UserResponse, UserUpdate
from franchisehub.services.dashboard_service import DashboardService
from franchisehub.services.onboarding_service import FranchiseeOnboardingService
from franchisehub.services.technical_request_service import TechnicalRequestService

logger = logging.getLogger(__name__)

router = APIRouter()

USER_SORTABLE = ("name", "email", "role", "status", "created_at", "last_login_at")


def _get_user(db, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _check_franchise(db, franchise_id: Optional[int]) -> None:
    if franchise_id is not None and not db.query(Franchise.id).filter(Franchise.id == franchise_id).first():
        raise HTTPException(status_code=422, detail="franchise_id does not reference an existing franchise")


# ---------- dashboard ----------

@router.get("/dashboard/stats")
@limiter.limit("60/minute")
def dashboard_stats(request: Request, db: DbSession, current_user: RequireAdmin):
    return success_response(DashboardService.admin_stats(db))


@router.get("/dashboard/recent-users")
@limiter.limit("60/minute")
def recent_users(
    request: Request,
    db: DbSession,
    current_user: RequireAdmin,
    limit: int = Query(10, ge=1, le=50),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit).all()
    return success_response(serialize_many(UserResponse, users))


@router.get("/dashboard/chart-data")
@limiter.limit("60/minute")
def chart_data(request: Request, db: DbSession, current_user: RequireAdmin):
    return success_response(DashboardService.admin_chart(db))


# ---------- users ----------

@router.get("/users")
@limiter.limit("60/minute")
def list_users(
    request: Request,
    params: ListParams,
    db: DbSession,
    current_user: RequireAdmin,
    role: Optional[UserRole] = Query(None),
    user_status: Optional[UserStatus] = Query(None, alias="status"),
):
    query = db.query(User)
    if role in (UserRole.BROKER, UserRole.SALES):
        query = query.filter(User.role.in_([UserRole.BROKER, UserRole.SALES]))
    else:
        query = apply_filters(query, User, {"role": role})
    query = apply_filters(query, User, {"status": user_status})
    query = apply_search(query, params.search, [User.name, User.email, User.phone])
    query = apply_sort(query, User, params.sort_by, params.sort_order, USER_SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(UserResponse, items), total, params.page, params.per_page)


@router.get("/users/stats")
@limiter.limit("60/minute")
def user_stats(request: Request, db: DbSession, current_user: RequireAdmin, role: Optional[UserRole] = Query(None)):
    return success_response(DashboardService.user_stats(db, role))


@router.post("/users", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_user(request: Request, data: UserCreate, db: DbSession, current_user: RequireAdmin):
    email = data.email.lower()
    if db.query(User.id).filter(User.email == email).first():
        raise HTTPException(status_code=422, detail={"errors": {"email": ["The email has already been taken."]}})
    _check_franchise(db, data.franchise_id)
    try:
        user = User(
            **data.model_dump(exclude={"email", "password"}),
            email=email,
            password_hash=get_password_hash(data.password),
            profile_completed=data.role != UserRole.FRANCHISEE,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Admin {current_user.id} created user {user.id} ({user.role.value})")
        return success_response(serialize(UserResponse, user), "User created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create user: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user")


@router.get("/users/{user_id}")
@limiter.limit("60/minute")
def get_user(request: Request, user_id: int, db: DbSession, current_user: RequireAdmin):
    return success_response(serialize(UserResponse, _get_user(db, user_id)))


@router.put("/users/{user_id}")
@limiter.limit("30/minute")
def update_user(request: Request, user_id: int, data: UserUpdate, db: DbSession, current_user: RequireAdmin):
    user = _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        taken = db.query(User.id).filter(User.email == changes["email"], User.id != user.id).first()
        if taken:
            raise HTTPException(status_code=422, detail={"errors": {"email": ["The email has already been taken."]}})
    _check_franchise(db, changes.get("franchise_id"))
    if user.id == current_user.id and changes.get("role") not in (None, UserRole.ADMIN):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return success_response(serialize(UserResponse, user), "User updated successfully")


@router.delete("/users/{user_id}")
@limiter.limit("30/minute")
def delete_user(request: Request, user_id: int, db: DbSession, current_user: RequireAdmin):
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if db.query(Franchise.id).filter(Franchise.franchisor_id == user.id).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Delete or reassign the user's franchise first",
        )
    try:
        db.query(Lead).filter(Lead.assigned_to == user.id).update({Lead.assigned_to: None}, synchronize_session=False)
        db.query(Task).filter(Task.assigned_to == user.id).update({Task.assigned_to: None}, synchronize_session=False)
        db.delete(user)
        db.commit()
        logger.info(f"Admin {current_user.id} deleted user {user_id}")
        return success_response(message="User deleted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete user")


@router.post("/users/{user_id}/reset-password")
@limiter.limit("10/minute")
def reset_password(request: Request, user_id: int, data: PasswordReset, db: DbSession, current_user: RequireAdmin):
    user = _get_user(db, user_id)
    user.password_hash = get_password_hash(data.password)
    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()
    logger.info(f"Admin {current_user.id} reset the password of user {user.id}")
    return success_response(message="Password reset successfully")


# ---------- franchisees and requests ----------

@router.post("/franchisees-with-unit", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_franchisee_with_unit(
    request: Request,
    data: FranchiseeWithUnitCreate,
    db: DbSession,
    current_user: RequireAdmin,
):
    if data.franchise_id is None:
        raise HTTPException(status_code=422, detail="franchise_id is required")
    franchise = db.query(Franchise).filter(Franchise.id == data.franchise_id).first()
    if franchise is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Franchise not found")
    try:
        user, unit = FranchiseeOnboardingService.create_with_unit(db, franchise, data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create franchisee with unit for franchise {franchise.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create franchisee and unit")
    return success_response(
        {"franchisee": serialize(UserResponse, user), "unit": serialize(UnitResponse, unit)},
        "Franchisee and unit created successfully",
    )


@router.patch("/technical-requests/{request_id}/status")
@limiter.limit("30/minute")
def update_request_status(
    request: Request,
    request_id: int,
    data: RequestStatusUpdate,
    db: DbSession,
    current_user: RequireAdmin,
):
    ticket = db.query(TechnicalRequest).filter(TechnicalRequest.id == request_id).first()
    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Technical request not found")
    TechnicalRequestService.set_status(db, ticket, data.status)
    db.commit()
    db.refresh(ticket)
    return success_response(serialize(TechnicalRequestResponse, ticket), "Request status updated")

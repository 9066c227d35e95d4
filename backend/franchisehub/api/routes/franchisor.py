"""Franchisor workspace: dashboards, own franchise, franchisees and sales associates."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status

from franchisehub.core.file_utils import ALLOWED_IMAGE_EXTENSIONS, save_upload
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisor
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.security import get_password_hash
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import (
    Franchise, FranchiseStatus, Lead, LeadStatus, Task, TaskStatus, Unit, User, UserRole, UserStatus,
)
from franchisehub.schemas.franchise import FranchiseRegister, FranchiseResponse, FranchiseUpdate
from franchisehub.schemas.lead import LeadResponse
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.task import TaskResponse
from franchisehub.schemas.unit import FranchiseeWithUnitCreate, UnitResponse
from franchisehub.schemas.user import SalesAssociateCreate, SalesAssociateUpdate, UserResponse
from franchisehub.services.dashboard_service import DashboardService
from franchisehub.services.numbering import generate_registration_number
from franchisehub.services.onboarding_service import FranchiseeOnboardingService

logger = logging.getLogger(__name__)

router = APIRouter()

USER_SORTABLE = ("name", "email", "status", "created_at", "last_login_at")


# ---------- dashboards ----------

@router.get("/dashboard/stats")
@limiter.limit("60/minute")
def dashboard_stats(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(DashboardService.franchisor_stats(db, franchise))


@router.get("/dashboard/finance")
@limiter.limit("60/minute")
def dashboard_finance(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(DashboardService.franchisor_finance(db, franchise))


@router.get("/dashboard/leads")
@limiter.limit("60/minute")
def dashboard_leads(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireFranchisor,
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
):
    franchise = scope.require_franchise()
    query = db.query(Lead).filter(Lead.franchise_id == franchise.id)
    query = apply_filters(query, Lead, {"status": lead_status})
    query = apply_search(query, params.search, [Lead.first_name, Lead.last_name, Lead.email, Lead.company_name])
    query = apply_sort(query, Lead, params.sort_by, params.sort_order, ("first_name", "status", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    response = paginated_response(serialize_many(LeadResponse, items), total, params.page, params.per_page)
    response["stats"] = DashboardService.lead_counts(db, franchise.id)
    return response


@router.get("/dashboard/operations")
@limiter.limit("60/minute")
def dashboard_operations(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireFranchisor,
    type: Literal["franchisee", "unit"] = Query("franchisee"),
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
):
    """Tasks assigned to franchisees, or tasks attached to a unit."""
    franchise = scope.require_franchise()
    query = db.query(Task).filter(Task.franchise_id == franchise.id)
    if type == "franchisee":
        franchisees = db.query(User.id).filter(User.role == UserRole.FRANCHISEE)
        query = query.filter(Task.assigned_to.in_(franchisees))
    else:
        query = query.filter(Task.unit_id.isnot(None))
    stats = DashboardService.task_counts(query)
    query = apply_filters(query, Task, {"status": task_status})
    query = apply_search(query, params.search, [Task.title, Task.description])
    query = apply_sort(query, Task, params.sort_by, params.sort_order, ("title", "priority", "status", "due_date", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    response = paginated_response(serialize_many(TaskResponse, items), total, params.page, params.per_page)
    response["stats"] = stats
    return response


@router.get("/dashboard/timeline")
@limiter.limit("60/minute")
def dashboard_timeline(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(DashboardService.timeline(db, franchise.id))


@router.get("/profile/completion-status")
@limiter.limit("60/minute")
def profile_completion(request: Request, db: DbSession, current_user: RequireFranchisor):
    franchise = db.query(Franchise).filter(Franchise.franchisor_id == current_user.id).first()
    return success_response(DashboardService.profile_completion(franchise))


# ---------- own franchise ----------

@router.post("/franchise/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def register_franchise(request: Request, data: FranchiseRegister, db: DbSession, current_user: RequireFranchisor):
    if db.query(Franchise.id).filter(Franchise.franchisor_id == current_user.id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You have already registered a franchise")
    brn = data.business_registration_number
    if brn and db.query(Franchise.id).filter(Franchise.business_registration_number == brn).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Business registration number already in use")
    try:
        payload = data.model_dump(exclude={"business_registration_number"})
        franchise = Franchise(
            **payload,
            franchisor_id=current_user.id,
            business_registration_number=brn or generate_registration_number(db),
            status=FranchiseStatus.PENDING_APPROVAL,
        )
        db.add(franchise)
        db.commit()
        db.refresh(franchise)
        logger.info(f"Franchisor {current_user.id} registered franchise {franchise.id}")
        return success_response(serialize(FranchiseResponse, franchise), "Franchise registered successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Franchise registration failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to register franchise")


@router.get("/franchise")
@limiter.limit("60/minute")
def get_own_franchise(request: Request, scope: Tenant, current_user: RequireFranchisor):
    return success_response(serialize(FranchiseResponse, scope.require_franchise()))


@router.put("/franchise")
@limiter.limit("30/minute")
def update_own_franchise(
    request: Request,
    data: FranchiseUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
    changes = data.model_dump(exclude_unset=True)
    if "status" in changes:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only an admin can change franchise status")
    for field, value in changes.items():
        setattr(franchise, field, value)
    db.commit()
    db.refresh(franchise)
    return success_response(serialize(FranchiseResponse, franchise), "Franchise updated successfully")


@router.post("/franchise/logo")
@limiter.limit("10/minute")
def upload_logo(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    logo: UploadFile = File(...),
):
    franchise = scope.require_franchise()
    try:
        stored = save_upload(logo, f"franchises/{franchise.id}/logo", ALLOWED_IMAGE_EXTENSIONS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    franchise.logo = stored["url"]
    db.commit()
    db.refresh(franchise)
    return success_response(serialize(FranchiseResponse, franchise), "Logo uploaded successfully")


# ---------- franchisees and units ----------

@router.get("/franchisees")
@limiter.limit("60/minute")
def list_franchisees(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireFranchisor,
    user_status: Optional[UserStatus] = Query(None, alias="status"),
):
    franchise = scope.require_franchise()
    managers = db.query(Unit.franchisee_id).filter(Unit.franchise_id == franchise.id)
    query = db.query(User).filter(User.role == UserRole.FRANCHISEE, User.id.in_(managers))
    query = apply_filters(query, User, {"status": user_status})
    query = apply_search(query, params.search, [User.name, User.email, User.phone, User.city])
    query = apply_sort(query, User, params.sort_by, params.sort_order, USER_SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(UserResponse, items), total, params.page, params.per_page)


@router.post("/franchisees-with-unit", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_franchisee_with_unit(
    request: Request,
    data: FranchiseeWithUnitCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
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


@router.get("/units/statistics")
@limiter.limit("60/minute")
def units_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(DashboardService.units_statistics(db, franchise.id))


# ---------- sales associates ----------

def _get_associate(db, franchise_id: int, associate_id: int) -> User:
    associate = db.query(User).filter(User.id == associate_id).first()
    if associate is None or associate.role not in (UserRole.BROKER, UserRole.SALES):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sales associate not found")
    if associate.franchise_id != franchise_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this resource")
    return associate


@router.get("/sales-associates")
@limiter.limit("60/minute")
def list_sales_associates(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireFranchisor,
    user_status: Optional[UserStatus] = Query(None, alias="status"),
):
    franchise = scope.require_franchise()
    query = db.query(User).filter(
        User.franchise_id == franchise.id, User.role.in_([UserRole.BROKER, UserRole.SALES])
    )
    query = apply_filters(query, User, {"status": user_status})
    query = apply_search(query, params.search, [User.name, User.email, User.phone])
    query = apply_sort(query, User, params.sort_by, params.sort_order, USER_SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(UserResponse, items), total, params.page, params.per_page)


@router.post("/sales-associates", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_sales_associate(
    request: Request,
    data: SalesAssociateCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
    email = data.email.lower()
    if db.query(User.id).filter(User.email == email).first():
        raise HTTPException(status_code=422, detail={"errors": {"email": ["The email has already been taken."]}})
    try:
        associate = User(
            **data.model_dump(exclude={"email", "password"}),
            email=email,
            password_hash=get_password_hash(data.password),
            role=UserRole.BROKER,
            status=UserStatus.ACTIVE,
            franchise_id=franchise.id,
        )
        db.add(associate)
        db.commit()
        db.refresh(associate)
        logger.info(f"Sales associate {associate.id} created in franchise {franchise.id}")
        return success_response(serialize(UserResponse, associate), "Sales associate created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create sales associate: {e}")
        raise HTTPException(status_code=500, detail="Failed to create sales associate")


@router.get("/sales-associates/{associate_id}")
@limiter.limit("60/minute")
def get_sales_associate(request: Request, associate_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    associate = _get_associate(db, franchise.id, associate_id)
    payload = serialize(UserResponse, associate)
    payload["assigned_leads"] = db.query(Lead).filter(Lead.assigned_to == associate.id).count()
    return success_response(payload)


@router.put("/sales-associates/{associate_id}")
@limiter.limit("30/minute")
def update_sales_associate(
    request: Request,
    associate_id: int,
    data: SalesAssociateUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
    associate = _get_associate(db, franchise.id, associate_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(associate, field, value)
    db.commit()
    db.refresh(associate)
    return success_response(serialize(UserResponse, associate), "Sales associate updated successfully")


@router.delete("/sales-associates/{associate_id}")
@limiter.limit("30/minute")
def delete_sales_associate(
    request: Request,
    associate_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
    associate = _get_associate(db, franchise.id, associate_id)
    try:
        released = (
            db.query(Lead)
            .filter(Lead.assigned_to == associate.id)
            .update({Lead.assigned_to: None}, synchronize_session=False)
        )
        db.delete(associate)
        db.commit()
        logger.info(f"Sales associate {associate_id} deleted; {released} leads unassigned")
        return success_response({"unassigned_leads": released}, "Sales associate deleted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete sales associate {associate_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete sales associate")

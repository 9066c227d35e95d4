"""Role-Based Access Control (RBAC) utilities."""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from franchisehub.core.security import decode_access_token
from franchisehub.db.session import DbSession
from franchisehub.models.user import User, UserRole, UserStatus

# Roles that work leads assigned by a franchisor
SALES_ROLES = (UserRole.BROKER, UserRole.SALES)


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access_token cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            return token
    return request.cookies.get("access_token")


def get_current_user(request: Request, db: DbSession) -> User:
    """Resolve the authenticated user from the JWT and reload it from the database.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    token = extract_token(request)
    payload = decode_access_token(token) if token else None
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None or payload.get("role") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user = db.query(User).filter(User.id == int(user_id)).first()
    except ValueError:
        user = None
    if user is None or user.status in (UserStatus.INACTIVE, UserStatus.SUSPENDED):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )
    return user


def require_roles(*roles: UserRole):
    """Dependency that allows only the given roles."""

    def role_checker(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {allowed}",
            )
        return current_user

    return role_checker


CurrentUser = Annotated[User, Depends(get_current_user)]
RequireAdmin = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
RequireFranchisor = Annotated[User, Depends(require_roles(UserRole.FRANCHISOR))]
RequireFranchisorOrAdmin = Annotated[
    User, Depends(require_roles(UserRole.FRANCHISOR, UserRole.ADMIN))
]
RequireFranchisee = Annotated[User, Depends(require_roles(UserRole.FRANCHISEE))]
RequireSales = Annotated[User, Depends(require_roles(*SALES_ROLES))]
RequireManagement = Annotated[
    User,
    Depends(require_roles(UserRole.ADMIN, UserRole.FRANCHISOR, UserRole.FRANCHISEE)),
]

"""API routes."""

import logging
from fastapi import APIRouter

logger = logging.getLogger(__name__)

from franchisehub.api.routes import (
    auth, account, onboarding, notifications,
    franchises, documents, products, units, reviews,
    leads, notes, tasks, technical_requests,
    transactions, royalties, revenues,
    franchisor, unit_manager, employee, admin,
    financial, performance,
)

api_router = APIRouter()

# Account
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(account.router, prefix="/account", tags=["account"])
api_router.include_router(onboarding.router, prefix="/onboarding", tags=["onboarding"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])

# Franchise network
api_router.include_router(franchises.router, prefix="/franchises", tags=["franchises"])
api_router.include_router(
    documents.router, prefix="/franchises/{franchise_id}/documents", tags=["franchises", "documents"]
)
api_router.include_router(
    products.router, prefix="/franchises/{franchise_id}/products", tags=["franchises", "products"]
)
api_router.include_router(units.router, prefix="/units", tags=["units", "staff", "inventory"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])

# Sales pipeline and operations
api_router.include_router(leads.router, prefix="/leads", tags=["leads"])
api_router.include_router(notes.router, prefix="/notes", tags=["leads", "notes"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(technical_requests.router, prefix="/technical-requests", tags=["technical-requests"])

# Ledgers
api_router.include_router(transactions.router, prefix="/transactions", tags=["finance", "transactions"])
api_router.include_router(royalties.router, prefix="/royalties", tags=["finance", "royalties"])
api_router.include_router(revenues.router, prefix="/revenues", tags=["finance", "revenues"])

# Role workspaces
api_router.include_router(franchisor.router, prefix="/franchisor", tags=["franchisor"])
api_router.include_router(unit_manager.router, prefix="/unit-manager", tags=["unit-manager"])
api_router.include_router(employee.router, prefix="/employee", tags=["employee"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

# Reporting
api_router.include_router(financial.router, prefix="/financial", tags=["financial", "reports"])
api_router.include_router(performance.router, prefix="/performance", tags=["performance", "reports"])

logger.debug(f"Registered {len(api_router.routes)} API routes")

"""Database models."""

from franchisehub.models.user import User, UserRole, UserStatus
from franchisehub.models.franchise import (
    BusinessType, Document, DocumentStatus, Franchise, FranchiseStatus, Product, ProductStatus,
)
from franchisehub.models.unit import (
    EmploymentType, Review, ReviewSource, ReviewStatus, Sentiment, Staff, StaffStatus,
    Unit, UnitInventory, UnitPerformance, UnitStatus, UnitType,
)
from franchisehub.models.lead import Lead, LeadSource, LeadStatus, Note, Priority
from franchisehub.models.task import Task, TaskStatus, TaskType
from franchisehub.models.technical_request import RequestCategory, RequestStatus, TechnicalRequest
from franchisehub.models.finance import (
    PaymentMethod, PaymentStatus, Revenue, RevenueCategory, RevenueStatus, RevenueType,
    Royalty, RoyaltyStatus, RoyaltyType, Transaction, TransactionCategory, TransactionStatus,
    TransactionType,
)
from franchisehub.models.notification import Notification

__all__ = [
    "User", "UserRole", "UserStatus",
    "Franchise", "FranchiseStatus", "BusinessType",
    "Document", "DocumentStatus", "Product", "ProductStatus",
    "Unit", "UnitStatus", "UnitType", "UnitInventory", "Staff", "StaffStatus", "EmploymentType",
    "Review", "ReviewSource", "ReviewStatus", "Sentiment", "UnitPerformance",
    "Lead", "LeadSource", "LeadStatus", "Priority", "Note",
    "Task", "TaskStatus", "TaskType",
    "TechnicalRequest", "RequestCategory", "RequestStatus",
    "Transaction", "TransactionType", "TransactionCategory", "TransactionStatus", "PaymentMethod",
    "Revenue", "RevenueType", "RevenueCategory", "RevenueStatus", "PaymentStatus",
    "Royalty", "RoyaltyType", "RoyaltyStatus",
    "Notification",
]

"""Franchise document storage and review."""

import logging
from datetime import date, datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import FileResponse

from franchisehub.core.file_utils import (
    ALLOWED_DOCUMENT_EXTENSIONS, delete_stored_file, save_upload, stored_file_path,
)
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisorOrAdmin, RequireManagement
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import Document, DocumentStatus, Franchise, Unit
from franchisehub.schemas.franchise import DocumentReject, DocumentResponse, DocumentUpdate
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("name", "type", "status", "file_size", "expiry_date", "created_at")


def _get_document(scope: TenantScope, franchise_id: int, document_id: int) -> Document:
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    document = scope.get_or_404(Document, document_id, "Document")
    if document.franchise_id != franchise_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


def _uploader_id(db, document: Document) -> Optional[int]:
    """Franchisee of the document's unit, who is told about review outcomes."""
    if document.unit_id is None:
        return None
    unit = db.query(Unit).filter(Unit.id == document.unit_id).first()
    return unit.franchisee_id if unit else None


@router.get("/")
@limiter.limit("60/minute")
def list_documents(
    request: Request,
    franchise_id: int,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    type: Optional[str] = Query(None),
    document_status: Optional[DocumentStatus] = Query(None, alias="status"),
    confidential: Optional[bool] = Query(None),
):
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    query = scope.apply(db.query(Document), Document).filter(Document.franchise_id == franchise_id)
    query = apply_filters(query, Document, {
        "type": type, "status": document_status, "is_confidential": confidential,
    })
    query = apply_search(query, params.search, [Document.name, Document.description, Document.file_name])
    query = apply_sort(query, Document, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(DocumentResponse, items), total, params.page, params.per_page)


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def upload_document(
    request: Request,
    franchise_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    name: Annotated[str, Form(min_length=1, max_length=255)],
    type: Annotated[str, Form(min_length=1, max_length=100)],
    file: UploadFile = File(...),
    description: Annotated[Optional[str], Form()] = None,
    expiry_date: Annotated[Optional[date], Form()] = None,
    is_confidential: Annotated[bool, Form()] = False,
    unit_id: Annotated[Optional[int], Form()] = None,
):
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    if scope.is_franchisee:
        unit_id = unit_id if unit_id in scope.unit_ids else scope.unit_ids[0]
    elif unit_id is not None:
        unit = db.query(Unit).filter(Unit.id == unit_id, Unit.franchise_id == franchise_id).first()
        if unit is None:
            raise HTTPException(status_code=422, detail="unit_id must belong to this franchise")

    try:
        stored = save_upload(file, f"documents/{franchise_id}", ALLOWED_DOCUMENT_EXTENSIONS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        document = Document(
            franchise_id=franchise_id,
            unit_id=unit_id,
            name=name,
            description=description,
            type=type,
            file_path=stored["path"],
            file_name=stored["file_name"],
            file_extension=stored["extension"],
            file_size=stored["size"],
            mime_type=stored["mime_type"],
            expiry_date=expiry_date,
            is_confidential=is_confidential,
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        logger.info(f"Document {document.id} uploaded to franchise {franchise_id} by user {current_user.id}")
        return success_response(serialize(DocumentResponse, document), "Document uploaded successfully")
    except Exception as e:
        db.rollback()
        delete_stored_file(stored["path"])
        logger.error(f"Failed to store document for franchise {franchise_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload document")


@router.get("/{document_id}")
@limiter.limit("60/minute")
def get_document(request: Request, franchise_id: int, document_id: int, scope: Tenant):
    return success_response(serialize(DocumentResponse, _get_document(scope, franchise_id, document_id)))


@router.get("/{document_id}/download")
@limiter.limit("60/minute")
def download_document(request: Request, franchise_id: int, document_id: int, scope: Tenant):
    document = _get_document(scope, franchise_id, document_id)
    try:
        path = stored_file_path(document.file_path)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(
        path=str(path),
        filename=document.file_name,
        media_type=document.mime_type or "application/octet-stream",
    )


@router.put("/{document_id}")
@limiter.limit("30/minute")
def update_document(
    request: Request,
    franchise_id: int,
    document_id: int,
    data: DocumentUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    document = _get_document(scope, franchise_id, document_id)
    try:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(document, field, value)
        db.commit()
        db.refresh(document)
        return success_response(serialize(DocumentResponse, document), "Document updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update document {document_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update document")


@router.delete("/{document_id}")
@limiter.limit("30/minute")
def delete_document(
    request: Request,
    franchise_id: int,
    document_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    document = _get_document(scope, franchise_id, document_id)
    file_path = document.file_path
    try:
        db.delete(document)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete document {document_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete document")
    delete_stored_file(file_path)
    return success_response(message="Document deleted successfully")


@router.patch("/{document_id}/approve")
@limiter.limit("30/minute")
def approve_document(
    request: Request,
    franchise_id: int,
    document_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    document = _get_document(scope, franchise_id, document_id)
    document.status = DocumentStatus.APPROVED
    document.rejection_reason = None
    document.reviewed_by = current_user.id
    document.reviewed_at = datetime.now(timezone.utc)
    NotificationService.notify(
        db,
        _uploader_id(db, document),
        type="document_approved",
        title="Document approved",
        subtitle=f"{document.name} has been approved",
        icon="tabler-file-check",
        color="success",
    )
    db.commit()
    db.refresh(document)
    logger.info(f"Document {document_id} approved by user {current_user.id}")
    return success_response(serialize(DocumentResponse, document), "Document approved")


@router.patch("/{document_id}/reject")
@limiter.limit("30/minute")
def reject_document(
    request: Request,
    franchise_id: int,
    document_id: int,
    data: DocumentReject,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    document = _get_document(scope, franchise_id, document_id)
    document.status = DocumentStatus.REJECTED
    document.rejection_reason = data.reason
    document.reviewed_by = current_user.id
    document.reviewed_at = datetime.now(timezone.utc)
    NotificationService.notify(
        db,
        _uploader_id(db, document),
        type="document_rejected",
        title="Document rejected",
        subtitle=f"{document.name}: {data.reason}",
        icon="tabler-file-x",
        color="error",
    )
    db.commit()
    db.refresh(document)
    logger.info(f"Document {document_id} rejected by user {current_user.id}")
    return success_response(serialize(DocumentResponse, document), "Document rejected")

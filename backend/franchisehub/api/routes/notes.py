"""Lead notes with file attachments."""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile, status

from franchisehub.core.file_utils import delete_stored_file, save_uploads
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import Franchise, Lead, Note
from franchisehub.schemas.lead import NoteAttachmentRemove, NoteResponse, NoteUpdate
from franchisehub.schemas.pagination import ListParams, apply_search, apply_sort, paginate_query

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_can_modify(scope: TenantScope, db, note: Note) -> None:
    """Only the author, the lead's franchisor or an admin may change a note."""
    if scope.is_admin or note.user_id == scope.user.id:
        return
    lead = db.query(Lead).filter(Lead.id == note.lead_id).first()
    if lead is not None and lead.franchise_id is not None:
        owner = db.query(Franchise.franchisor_id).filter(Franchise.id == lead.franchise_id).scalar()
        if owner == scope.user.id:
            return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot modify this note")


@router.get("/")
@limiter.limit("60/minute")
def list_notes(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    lead_id: Optional[int] = Query(None),
):
    query = scope.apply(db.query(Note), Note)
    if lead_id is not None:
        scope.get_or_404(Lead, lead_id, "Lead")
        query = query.filter(Note.lead_id == lead_id)
    query = apply_search(query, params.search, [Note.title, Note.description])
    query = apply_sort(query, Note, params.sort_by, params.sort_order, ("title", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(NoteResponse, items), total, params.page, params.per_page)


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_note(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: CurrentUser,
    lead_id: Annotated[int, Form()],
    title: Annotated[str, Form(min_length=1, max_length=255)],
    description: Annotated[Optional[str], Form()] = None,
    attachments: Optional[List[UploadFile]] = File(None),
):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    try:
        stored = save_uploads(attachments, f"notes/{lead.id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    try:
        note = Note(
            lead_id=lead.id,
            user_id=current_user.id,
            title=title,
            description=description,
            attachments=stored,
        )
        db.add(note)
        db.commit()
        db.refresh(note)
        return success_response(serialize(NoteResponse, note), "Note created successfully")
    except Exception as e:
        db.rollback()
        for item in stored:
            delete_stored_file(item["path"])
        logger.error(f"Failed to create note for lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create note")


@router.get("/{note_id}")
@limiter.limit("60/minute")
def get_note(request: Request, note_id: int, scope: Tenant):
    return success_response(serialize(NoteResponse, scope.get_or_404(Note, note_id, "Note")))


@router.put("/{note_id}")
@limiter.limit("30/minute")
def update_note(request: Request, note_id: int, data: NoteUpdate, scope: Tenant, db: DbSession):
    note = scope.get_or_404(Note, note_id, "Note")
    _check_can_modify(scope, db, note)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(note, field, value)
    db.commit()
    db.refresh(note)
    return success_response(serialize(NoteResponse, note), "Note updated successfully")


@router.delete("/{note_id}")
@limiter.limit("30/minute")
def delete_note(request: Request, note_id: int, scope: Tenant, db: DbSession):
    note = scope.get_or_404(Note, note_id, "Note")
    _check_can_modify(scope, db, note)
    paths = [a.get("path") for a in note.attachments or [] if isinstance(a, dict)]
    db.delete(note)
    db.commit()
    for path in paths:
        delete_stored_file(path)
    return success_response(message="Note deleted successfully")


@router.delete("/{note_id}/attachments")
@limiter.limit("30/minute")
def remove_note_attachment(
    request: Request,
    note_id: int,
    data: NoteAttachmentRemove,
    scope: Tenant,
    db: DbSession,
):
    note = scope.get_or_404(Note, note_id, "Note")
    _check_can_modify(scope, db, note)
    attachments = list(note.attachments or [])
    remaining = [a for a in attachments if not (isinstance(a, dict) and a.get("path") == data.file_path)]
    if len(remaining) == len(attachments):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
    note.attachments = remaining
    db.commit()
    db.refresh(note)
    delete_stored_file(data.file_path)
    return success_response(serialize(NoteResponse, note), "Attachment removed")

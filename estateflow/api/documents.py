from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from estateflow.api.deps import get_email_service, get_storage, require_org_context
from estateflow.core.config import Settings, get_settings
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.deal import Deal
from estateflow.models.document import Document, DocumentCategory
from estateflow.schemas.deal import DocumentResponse
from estateflow.services.email import EmailService
from estateflow.services.storage import DocumentStorage, content_type_for, sanitize_filename, validate_upload
from estateflow.services.visibility import get_visible_deal

router = APIRouter()


def get_deal_document(db: Session, deal: Deal, document_id: UUID) -> Document:
    document = db.query(Document).filter(Document.id == document_id, Document.deal_id == deal.id).first()
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def _parse_category(category: Optional[str]) -> DocumentCategory:
    normalized = (category or "").strip().lower()
    for member in DocumentCategory:
        if member.value.lower() == normalized:
            return member
    return DocumentCategory.REFERENCE


@router.get("/{deal_id}/documents", response_model=List[DocumentResponse])
def list_documents(deal_id: UUID, ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return get_visible_deal(db, ctx, deal_id).documents


@router.post("/{deal_id}/documents", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
def upload_document(
    deal_id: UUID,
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: DocumentStorage = Depends(get_storage),
    email: EmailService = Depends(get_email_service),
):
    deal = get_visible_deal(db, ctx, deal_id)

    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    extension = validate_upload(file.filename, file.content_type, len(content), settings.MAX_UPLOAD_BYTES)
    safe_filename = sanitize_filename(file.filename, extension)

    document = Document(
        deal_id=deal.id,
        filename=safe_filename,
        file_path=storage.save(deal.id, extension, content),
        category=_parse_category(category),
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    email.send_new_document(deal.client_email, deal.client_name, safe_filename, deal.access_token)
    return document


@router.get("/{deal_id}/documents/{document_id}/download")
def download_document(
    deal_id: UUID,
    document_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
):
    deal = get_visible_deal(db, ctx, deal_id)
    document = get_deal_document(db, deal, document_id)
    content = storage.read(document.file_path)
    return Response(
        content=content,
        media_type=content_type_for(document.filename),
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.delete("/{deal_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    deal_id: UUID,
    document_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
):
    deal = get_visible_deal(db, ctx, deal_id)
    document = get_deal_document(db, deal, document_id)
    paths = [document.file_path, document.signed_file_path]
    db.delete(document)
    db.commit()
    for path in paths:
        storage.delete(path)

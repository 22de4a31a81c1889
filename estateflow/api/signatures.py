"""
E-signature for ToSign documents. The client signs through the provider's
link; status is polled from here and the signed PDF stored beside the original.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from estateflow.api.deps import get_signature_client, get_storage, require_org_context
from estateflow.api.documents import get_deal_document
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.document import DocumentCategory
from estateflow.schemas.deal import SignatureResponse
from estateflow.services.signature import SignatureProviderError, YousignClient
from estateflow.services.storage import DocumentStorage
from estateflow.services.visibility import get_visible_deal
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_DONE = "done"


@router.post("/{deal_id}/documents/{document_id}/signature", response_model=SignatureResponse)
def request_signature(
    deal_id: UUID,
    document_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
    signatures: YousignClient = Depends(get_signature_client),
):
    deal = get_visible_deal(db, ctx, deal_id)
    document = get_deal_document(db, deal, document_id)

    if document.category != DocumentCategory.TO_SIGN:
        raise HTTPException(status_code=400, detail="Document must be in 'ToSign' category")
    if document.signature_request_id:
        raise HTTPException(status_code=400, detail="Signature already requested for this document")
    if not document.filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF documents can be signed")
    if not storage.exists(document.file_path):
        raise HTTPException(status_code=404, detail="File not found on server")

    try:
        result = signatures.create_signature_request(
            file_path=document.file_path,
            signer_email=deal.client_email,
            signer_name=deal.client_name,
            document_name=document.filename,
        )
    except SignatureProviderError as e:
        logger.error("[SIGNATURE] Request failed for document %s: %s", document.id, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create signature request")

    document.signature_request_id = result.signature_request_id
    document.signature_status = result.status
    db.commit()
    db.refresh(document)

    return SignatureResponse(
        document_id=document.id,
        signature_request_id=document.signature_request_id,
        signature_status=document.signature_status,
        signature_link=result.signature_link,
    )


@router.get("/{deal_id}/documents/{document_id}/signature", response_model=SignatureResponse)
def get_signature_status(
    deal_id: UUID,
    document_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
    signatures: YousignClient = Depends(get_signature_client),
):
    deal = get_visible_deal(db, ctx, deal_id)
    document = get_deal_document(db, deal, document_id)

    if not document.signature_request_id:
        raise HTTPException(status_code=404, detail="No signature requested for this document")

    if document.signature_status != SIGNATURE_DONE:
        try:
            current = signatures.get_status(document.signature_request_id)
            if current == SIGNATURE_DONE and not document.signed_file_path:
                signed_path = storage.signed_path_for(document.file_path)
                storage.write(signed_path, signatures.download_signed_document(document.signature_request_id))
                document.signed_file_path = signed_path
                document.signed_at = utcnow()
            document.signature_status = current
            db.commit()
            db.refresh(document)
        except SignatureProviderError as e:
            logger.warning("[SIGNATURE] Status refresh failed for %s: %s", document.signature_request_id, e)

    return SignatureResponse(
        document_id=document.id,
        signature_request_id=document.signature_request_id,
        signature_status=document.signature_status,
        signed_at=document.signed_at,
    )

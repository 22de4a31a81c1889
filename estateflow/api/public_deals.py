"""
Client portal. No authentication: the deal's access token is the credential.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from estateflow.api.deps import get_storage
from estateflow.core.rate_limit import client_ip, rate_limit
from estateflow.db.session import get_db
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.deal_view import DealView, ViewType
from estateflow.models.document import Document
from estateflow.models.organization import Organization
from estateflow.schemas.public import PublicAgent, PublicBrand, PublicDeal
from estateflow.services.storage import DocumentStorage, content_type_for


router = APIRouter()

UNAVAILABLE = "This deal is no longer available"


def _get_public_deal(db: Session, access_token: str) -> Deal:
    deal = db.query(Deal).filter(Deal.access_token == access_token).first()
    if deal is None or deal.status == DealStatus.ARCHIVED:
        raise HTTPException(status_code=404, detail=UNAVAILABLE)
    return deal


def _record_view(db: Session, request: Request, deal: Deal, view_type: ViewType,
                 document_id: Optional[UUID] = None) -> None:
    db.add(DealView(
        deal_id=deal.id,
        view_type=view_type,
        document_id=document_id,
        user_agent=(request.headers.get("user-agent") or "")[:500] or None,
        ip_address=client_ip(request)[:45],
    ))
    db.commit()


@router.get("/{access_token}", response_model=PublicDeal)
@rate_limit(max_requests=60, window_seconds=60)
def get_public_deal(access_token: str, request: Request, db: Session = Depends(get_db)):
    deal = _get_public_deal(db, access_token)

    agent_id = deal.assigned_to_agent_id or deal.created_by_agent_id or deal.agent_id
    agent = db.query(Agent).filter(Agent.id == agent_id).first() if agent_id else None
    org = db.query(Organization).filter(Organization.id == deal.organization_id).first()

    _record_view(db, request, deal, ViewType.PAGE_VIEW)

    return PublicDeal(
        id=deal.id,
        client_name=deal.client_name,
        property_address=deal.property_address,
        property_photo_url=deal.property_photo_url,
        welcome_message=deal.welcome_message,
        status=deal.status,
        agent=PublicAgent(
            full_name=agent.full_name if agent else None,
            email=agent.email if agent else None,
            phone=agent.phone if agent else None,
            photo_url=agent.photo_url if agent else None,
            social_links=agent.social_links if agent else None,
        ),
        brand=PublicBrand(
            name=org.name if org else "",
            brand_color=org.brand_color if org else "#1a1a2e",
            logo_url=org.logo_url if org else None,
        ),
        steps=deal.steps,
        documents=deal.documents,
    )


@router.get("/{access_token}/documents/{document_id}/download")
@rate_limit(max_requests=30, window_seconds=60)
def download_public_document(
    access_token: str,
    document_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
):
    deal = _get_public_deal(db, access_token)
    document = db.query(Document).filter(Document.id == document_id, Document.deal_id == deal.id).first()
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")

    # Serve the signed copy once it exists
    path = document.signed_file_path or document.file_path
    content = storage.read(path)
    filename = document.filename
    if document.signed_file_path:
        filename = filename.rsplit(".", 1)[0] + "_signed.pdf"

    _record_view(db, request, deal, ViewType.DOCUMENT_DOWNLOAD, document.id)
    return Response(
        content=content,
        media_type=content_type_for(filename),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

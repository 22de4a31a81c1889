from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from estateflow.api.deps import require_org_context
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.deal_view import DealView, ViewType
from estateflow.schemas.analytics import DealAnalytics
from estateflow.services.visibility import get_visible_deal

router = APIRouter()

RECENT_VIEWS_LIMIT = 10


@router.get("/{deal_id}/analytics", response_model=DealAnalytics)
def get_deal_analytics(deal_id: UUID, ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    """Portal traffic for one deal: page views, downloads and the latest hits."""
    deal = get_visible_deal(db, ctx, deal_id)
    views = db.query(DealView).filter(DealView.deal_id == deal.id)

    return DealAnalytics(
        total_views=views.filter(DealView.view_type == ViewType.PAGE_VIEW).count(),
        total_downloads=views.filter(DealView.view_type == ViewType.DOCUMENT_DOWNLOAD).count(),
        last_viewed_at=db.query(func.max(DealView.viewed_at)).filter(
            DealView.deal_id == deal.id,
            DealView.view_type == ViewType.PAGE_VIEW,
        ).scalar(),
        recent_views=views.order_by(DealView.viewed_at.desc()).limit(RECENT_VIEWS_LIMIT).all(),
    )

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from estateflow.api.deps import get_request_context
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.timeline_template import TimelineTemplate
from estateflow.schemas.template import TemplateResponse

router = APIRouter()


@router.get("", response_model=List[TemplateResponse])
def list_templates(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    return db.query(TimelineTemplate).order_by(TimelineTemplate.name).all()


@router.get("/{template_id}", response_model=TemplateResponse)
def get_template(template_id: UUID, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    template = db.query(TimelineTemplate).filter(TimelineTemplate.id == template_id).first()
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template

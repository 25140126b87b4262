"""
Project (quote) endpoints.

Projects are owned documents: every lookup is scoped to the current user and
a foreign id reads as 404. Pricing is computed on request and never stored;
the fabric consumption aggregate is stored and refreshed in the background.
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..authorization import AuthorizationPolicy, get_authorization_policy
from ..consumption import recalculate_consumption
from ..database import get_db, get_session_factory
from ..document_store import ProjectStore, project_quote
from ..pdf_generator import generate_quote_pdf
from ..pricing_engine import price_project
from ..summaries import material_purchase_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])
pricing_router = APIRouter(prefix="/pricing", tags=["pricing"])


def get_owned_project(project_id: str, user: models.User, db: Session) -> models.Project:
    project = db.query(models.Project).filter(
        models.Project.id == project_id,
        models.Project.user_id == user.id,
    ).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _tax_percent(user: models.User) -> float:
    return user.tax_percentage or 0.0


def _stored_consumption(project: models.Project) -> schemas.ConsumptionTotals:
    return schemas.ConsumptionTotals(
        total_fabric_length=project.total_fabric_length or 0.0,
        total_fabric_cost=project.total_fabric_cost or 0.0,
    )


def _dump_line_items(line_items: List[schemas.LineItem]) -> list:
    return [item.model_dump(mode="json") for item in line_items]


@router.post("/", response_model=schemas.Project)
def create_project(
    project: schemas.ProjectCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
):
    existing = db.query(models.Project).filter(models.Project.user_id == current_user.id).count()
    if not policy.can_create_project(current_user, existing):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Free plan is limited to {policy.free_project_limit} projects: upgrade to create more",
        )

    db_project = models.Project(
        user_id=current_user.id,
        client_name=project.client_name,
        project_name=project.project_name,
        quote_mode=project.quote_mode.value,
        line_items=_dump_line_items(project.line_items),
        specific_conditions=project.specific_conditions.model_dump(),
    )
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    logger.info("Project %s created by user %s", db_project.id, current_user.id)
    return db_project


@router.get("/", response_model=List[schemas.Project])
def list_projects(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(models.Project)
        .filter(models.Project.user_id == current_user.id)
        .order_by(models.Project.created_at.desc())
        .all()
    )


@router.get("/{project_id}", response_model=schemas.Project)
def get_project(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned_project(project_id, current_user, db)


@router.patch("/{project_id}", response_model=schemas.Project)
def update_project(
    project_id: str,
    update: schemas.ProjectUpdate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """Edit a project. quote_mode is fixed at creation."""
    project = get_owned_project(project_id, current_user, db)
    data = update.model_dump(exclude_unset=True)

    if "line_items" in data:
        project.line_items = _dump_line_items(update.line_items or [])
    if "specific_conditions" in data:
        project.specific_conditions = update.specific_conditions.model_dump() if update.specific_conditions else {}
    for field in ("client_name", "project_name"):
        if field in data:
            setattr(project, field, data[field])
    if update.status is not None:
        project.status = update.status.value

    db.commit()
    db.refresh(project)

    # The base garment's fabric may have changed
    if "line_items" in data:
        background_tasks.add_task(recalculate_consumption, project.id, session_factory)
    return project


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = get_owned_project(project_id, current_user, db)
    db.delete(project)
    db.commit()
    return {"deleted": project_id}


@router.get("/{project_id}/pricing", response_model=schemas.QuotePricing)
def get_project_pricing(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-garment breakdown, size table and totals at the workshop's tax rate."""
    project = get_owned_project(project_id, current_user, db)
    return price_project(project_quote(project), _tax_percent(current_user))


@pricing_router.post("/preview", response_model=schemas.QuotePricing)
def preview_pricing(
    request: schemas.PricingPreviewRequest,
    current_user: models.User = Depends(get_current_user),
):
    """Price unsaved input, e.g. while a quote is being edited."""
    tax_percent = request.tax_percent if request.tax_percent is not None else _tax_percent(current_user)
    return price_project(request, tax_percent)


@router.get("/{project_id}/consumption", response_model=schemas.ConsumptionTotals)
def get_consumption(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _stored_consumption(get_owned_project(project_id, current_user, db))


@router.post("/{project_id}/consumption/recalculate", response_model=schemas.ConsumptionTotals)
def recalculate_project_consumption(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """Run the aggregation now instead of waiting for the next fitting write."""
    get_owned_project(project_id, current_user, db)
    totals = recalculate_consumption(project_id, session_factory)
    if totals is None:
        raise HTTPException(status_code=500, detail="Consumption recalculation failed")
    return totals


@router.get("/{project_id}/materials/summary", response_model=schemas.MaterialPurchaseSummary)
def material_summary(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Purchase list for the workshop: quote materials, fabric estimate vs. stored consumption."""
    project = get_owned_project(project_id, current_user, db)
    fittings = list(ProjectStore(db).iter_fittings(project.id))
    return material_purchase_summary(project_quote(project), fittings, _stored_consumption(project))


@router.get("/{project_id}/pdf")
def download_pdf(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Quote document for the client. Returns application/pdf."""
    project = get_owned_project(project_id, current_user, db)
    pricing = price_project(project_quote(project), _tax_percent(current_user))

    workshop = {
        "name": current_user.name,
        "address": current_user.address,
        "phone": current_user.phone,
        "tax_id": current_user.tax_id,
        "conditions": current_user.conditions,
    }
    project_data = {
        "client_name": project.client_name,
        "project_name": project.project_name,
        "specific_conditions": project.specific_conditions,
        "created_at": project.created_at,
    }
    pdf_bytes = generate_quote_pdf(project_data, pricing, workshop)

    filename = f"Cotizacion-{project.id[:8]}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

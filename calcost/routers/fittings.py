"""
Fitting endpoints: participants' recorded sizes for a project.

Every write bumps the project's fittings revision (so an in-flight
consumption run retries) and schedules a fresh consumption aggregation.
The confirmation endpoint is public: participants open it from an email link.
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..consumption import recalculate_consumption
from ..database import get_db, get_session_factory
from ..document_store import ProjectStore, touch_project
from ..fittings import confirm_fitting, confirmation_url, parse_confirmation_token
from ..notifications import fitting_confirmation_email, send_email
from ..summaries import size_summary
from .projects import get_owned_project

router = APIRouter(prefix="/projects/{project_id}/fittings", tags=["fittings"])
confirmation_router = APIRouter(prefix="/confirm-fitting", tags=["fittings"])

CONFIRMATION_STATUS_CODES = {
    "invalid": 400,
    "not_found": 404,
}


def _get_fitting(project: models.Project, fitting_id: str, db: Session) -> models.Fitting:
    fitting = db.query(models.Fitting).filter(
        models.Fitting.id == fitting_id,
        models.Fitting.project_id == project.id,
    ).first()
    if not fitting:
        raise HTTPException(status_code=404, detail="Fitting not found")
    return fitting


@router.post("/", response_model=schemas.Fitting)
def create_fitting(
    project_id: str,
    fitting: schemas.FittingCreate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    project = get_owned_project(project_id, current_user, db)
    db_fitting = models.Fitting(
        project_id=project.id,
        user_id=current_user.id,
        person_name=fitting.person_name,
        email=fitting.email,
        sizes=fitting.sizes,
    )
    db.add(db_fitting)
    touch_project(project)
    db.commit()
    db.refresh(db_fitting)

    background_tasks.add_task(recalculate_consumption, project.id, session_factory)
    return db_fitting


@router.get("/", response_model=List[schemas.Fitting])
def list_fittings(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = get_owned_project(project_id, current_user, db)
    return (
        db.query(models.Fitting)
        .filter(models.Fitting.project_id == project.id)
        .order_by(models.Fitting.created_at, models.Fitting.id)
        .all()
    )


@router.get("/summary", response_model=List[schemas.GarmentSizeSummary])
def fitting_size_summary(
    project_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Participants per size for each garment, in ladder order."""
    project = get_owned_project(project_id, current_user, db)
    store = ProjectStore(db)
    return size_summary(store.line_items(project), store.iter_fittings(project.id))


@router.patch("/{fitting_id}", response_model=schemas.Fitting)
def update_fitting(
    project_id: str,
    fitting_id: str,
    update: schemas.FittingUpdate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    project = get_owned_project(project_id, current_user, db)
    fitting = _get_fitting(project, fitting_id, db)
    for field, value in update.model_dump(exclude_unset=True).items():
        if value is None and field != "email":
            continue
        setattr(fitting, field, value)
    touch_project(project)
    db.commit()
    db.refresh(fitting)

    background_tasks.add_task(recalculate_consumption, project.id, session_factory)
    return fitting


@router.delete("/{fitting_id}")
def delete_fitting(
    project_id: str,
    fitting_id: str,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    project = get_owned_project(project_id, current_user, db)
    fitting = _get_fitting(project, fitting_id, db)
    db.delete(fitting)
    touch_project(project)
    db.commit()

    background_tasks.add_task(recalculate_consumption, project.id, session_factory)
    return {"deleted": fitting_id}


@router.post("/{fitting_id}/send-confirmation")
def send_confirmation(
    project_id: str,
    fitting_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Email the participant a link to confirm their sizes."""
    project = get_owned_project(project_id, current_user, db)
    fitting = _get_fitting(project, fitting_id, db)
    if not fitting.email:
        raise HTTPException(status_code=400, detail="This fitting has no email address")
    if fitting.confirmed:
        raise HTTPException(status_code=409, detail="Sizes already confirmed")

    garment_names = {item.id: item.name for item in ProjectStore(db).line_items(project)}
    url = confirmation_url(project.id, fitting.id)
    message = fitting_confirmation_email(
        fitting.person_name, project.project_name, fitting.sizes or {}, garment_names, url,
    )
    sent = send_email(
        [fitting.email],
        message["subject"],
        message["html"],
        reply_to=current_user.email_reply_to or current_user.email,
    )
    if not sent:
        raise HTTPException(status_code=502, detail="Confirmation email could not be sent")
    return {"sent": True, "confirmation_url": url}


@confirmation_router.post("/{confirmation_id}", response_model=schemas.ConfirmationResult)
def confirm(
    confirmation_id: str,
    background_tasks: BackgroundTasks,
    session_factory=Depends(get_session_factory),
):
    """Public: confirm the sizes behind an emailed link. Repeat calls are no-ops."""
    result = confirm_fitting(confirmation_id, session_factory)

    if result.status in CONFIRMATION_STATUS_CODES:
        raise HTTPException(status_code=CONFIRMATION_STATUS_CODES[result.status], detail=result.message)

    if result.status == "success":
        project_id, _ = parse_confirmation_token(confirmation_id)
        background_tasks.add_task(recalculate_consumption, project_id, session_factory)
    return result

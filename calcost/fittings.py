"""
Fitting confirmation.

Participants confirm their recorded sizes through a public link carrying the
token "<project_id>_<fitting_id>". Confirmation is a one-way transition done
inside a transaction; a second confirmation is reported, not repeated.
"""

import logging
from datetime import datetime
from typing import Callable, Tuple

from sqlalchemy.orm import Session

from . import models
from .config import settings
from .document_store import run_transaction, touch_project
from .schemas import ConfirmationResult

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "_"


class InvalidConfirmationToken(ValueError):
    pass


def confirmation_token(project_id: str, fitting_id: str) -> str:
    return f"{project_id}{TOKEN_SEPARATOR}{fitting_id}"


def parse_confirmation_token(token: str) -> Tuple[str, str]:
    if not token or TOKEN_SEPARATOR not in token:
        raise InvalidConfirmationToken("Malformed confirmation token")
    project_id, _, fitting_id = token.partition(TOKEN_SEPARATOR)
    if not project_id or not fitting_id:
        raise InvalidConfirmationToken("Confirmation token is missing the project or fitting id")
    return project_id, fitting_id


def confirmation_url(project_id: str, fitting_id: str) -> str:
    base = settings.APP_BASE_URL.rstrip("/")
    return f"{base}/confirm-fitting/{confirmation_token(project_id, fitting_id)}"


def _confirm(session: Session, project_id: str, fitting_id: str) -> ConfirmationResult:
    fitting = session.query(models.Fitting).filter(
        models.Fitting.id == fitting_id,
        models.Fitting.project_id == project_id,
    ).first()
    if fitting is None:
        return ConfirmationResult(status="not_found", message="Fitting record not found.")

    project = fitting.project
    project_name = project.project_name if project else None

    if fitting.confirmed:
        return ConfirmationResult(
            status="already_confirmed",
            message="These sizes were already confirmed.",
            person_name=fitting.person_name,
            project_name=project_name,
        )

    fitting.confirmed = True
    fitting.confirmed_at = datetime.utcnow()
    if project is not None:
        touch_project(project)
    session.flush()

    return ConfirmationResult(
        status="success",
        message="Sizes confirmed.",
        person_name=fitting.person_name,
        project_name=project_name,
    )


def confirm_fitting(confirmation_id: str, session_factory: Callable[[], Session] = None) -> ConfirmationResult:
    """
    Confirm the fitting named by a public confirmation token.

    Returns status "invalid", "not_found", "already_confirmed" or "success".
    Only "success" changes state.
    """
    try:
        project_id, fitting_id = parse_confirmation_token(confirmation_id)
    except InvalidConfirmationToken as e:
        return ConfirmationResult(status="invalid", message=str(e))

    result = run_transaction(
        lambda session: _confirm(session, project_id, fitting_id),
        session_factory=session_factory,
    )
    if result.status == "success":
        logger.info("Fitting %s of project %s confirmed", fitting_id, project_id)
    return result

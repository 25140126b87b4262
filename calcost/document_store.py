"""
Transactional access to project and fitting documents.

run_transaction() gives a unit of work its own session and re-runs it from
scratch when the commit hits a stale-version conflict (optimistic
concurrency through Project.version_id). ProjectStore turns stored rows into
the typed records the calculators work with.
"""

import logging
from typing import Callable, Iterator, List, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import models
from .config import settings
from .database import SessionLocal
from .schemas import ConsumptionTotals, FittingRecord, LineItem, ProjectQuote

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProjectNotFound(Exception):
    def __init__(self, project_id: str):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class TransactionConflict(Exception):
    """Every attempt lost the race against a concurrent writer."""


def run_transaction(
    fn: Callable[[Session], T],
    session_factory: Callable[[], Session] = None,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run fn(session) and commit. The whole of fn is retried on conflict.

    Any other exception rolls back and propagates unchanged.
    """
    session_factory = session_factory or SessionLocal
    max_attempts = max_attempts or settings.TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        session = session_factory()
        try:
            result = fn(session)
            session.commit()
            return result
        except StaleDataError as e:
            session.rollback()
            logger.info("Transaction conflict (attempt %d/%d): %s", attempt, max_attempts, e)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    raise TransactionConflict(f"Transaction gave up after {max_attempts} conflicting attempts")


def touch_project(project: models.Project) -> None:
    """Mark that the project's fittings changed: bumps the row version."""
    project.fittings_revision = (project.fittings_revision or 0) + 1


def project_quote(project: models.Project) -> ProjectQuote:
    """Typed pricing view of a stored project."""
    return ProjectQuote(quote_mode=project.quote_mode, line_items=project.line_items or [])


class ProjectStore:
    """Typed reads and writes for one session/transaction."""

    def __init__(self, session: Session, batch_size: Optional[int] = None):
        self.session = session
        self.batch_size = batch_size or settings.FITTINGS_BATCH_SIZE

    def get_project(self, project_id: str) -> Optional[models.Project]:
        return self.session.query(models.Project).filter(models.Project.id == project_id).first()

    def require_project(self, project_id: str) -> models.Project:
        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def line_items(self, project: models.Project) -> List[LineItem]:
        return [LineItem.model_validate(item) for item in (project.line_items or [])]

    def iter_fittings(self, project_id: str) -> Iterator[FittingRecord]:
        """Every fitting of the project, unfiltered, fetched in batches."""
        query = (
            self.session.query(models.Fitting)
            .filter(models.Fitting.project_id == project_id)
            .order_by(models.Fitting.created_at, models.Fitting.id)
            .yield_per(self.batch_size)
        )
        for fitting in query:
            yield FittingRecord.model_validate(fitting)

    def write_consumption(self, project: models.Project, totals: ConsumptionTotals) -> None:
        project.total_fabric_length = totals.total_fabric_length
        project.total_fabric_cost = totals.total_fabric_cost
        self.session.flush()

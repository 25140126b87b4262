"""
Fabric consumption aggregate for a project.

Uses the project's first line item as the base garment: its fabric length
per unit is scaled by each fitting's size factor and summed over every
fitting on record. The result is stored on the project (rounded to cents).

Only the FIRST fabric entry's unit cost is used as the cost per meter, even
when a garment lists several fabrics. Changing that changes financial output,
so it stays as-is until the product side asks for a blended rate.
"""

import logging
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from .document_store import ProjectStore, run_transaction
from .pricing_engine import round_currency
from .schemas import ConsumptionTotals, FittingRecord, LineItem, MaterialType
from .sizing import PIVOT_SIZE, size_factor

logger = logging.getLogger(__name__)

ZERO_CONSUMPTION = ConsumptionTotals(total_fabric_length=0.0, total_fabric_cost=0.0)


def base_fabric_usage(base_garment: LineItem) -> tuple:
    """(fabric length per garment, cost per meter of the first fabric)."""
    fabric_items = [item for item in base_garment.material_items if item.type == MaterialType.FABRIC]
    length_per_garment = sum(item.quantity for item in fabric_items)
    cost_per_meter = fabric_items[0].unit_cost if fabric_items else 0.0
    return length_per_garment, cost_per_meter


def compute_consumption(
    base_garment: Optional[LineItem],
    fittings: Iterable[FittingRecord],
) -> ConsumptionTotals:
    """Total fabric length and cost across all fittings. Pure."""
    if base_garment is None:
        return ZERO_CONSUMPTION

    length_per_garment, cost_per_meter = base_fabric_usage(base_garment)

    total_length = 0.0
    for fitting in fittings:
        size = fitting.sizes.get(base_garment.id) or PIVOT_SIZE
        total_length += length_per_garment * size_factor(size)

    total_cost = total_length * cost_per_meter
    return ConsumptionTotals(
        total_fabric_length=round_currency(total_length),
        total_fabric_cost=round_currency(total_cost),
    )


def _recalculate(session: Session, project_id: str) -> ConsumptionTotals:
    store = ProjectStore(session)
    project = store.require_project(project_id)

    line_items = store.line_items(project)
    if not line_items:
        logger.info("Project %s has no line items: consumption is zero", project_id)
        store.write_consumption(project, ZERO_CONSUMPTION)
        return ZERO_CONSUMPTION

    totals = compute_consumption(line_items[0], store.iter_fittings(project_id))
    store.write_consumption(project, totals)
    return totals


def recalculate_consumption(
    project_id: str,
    session_factory: Callable[[], Session] = None,
) -> Optional[ConsumptionTotals]:
    """
    Recompute and store total fabric length/cost for a project.

    Background job: runs in its own transaction (retried on conflict) and
    never raises. Returns the stored totals, or None when the run failed;
    the failure is logged, nothing is written.
    """
    try:
        totals = run_transaction(
            lambda session: _recalculate(session, project_id),
            session_factory=session_factory,
        )
    except Exception:
        logger.exception("Failed to recalculate consumption for project %s", project_id)
        return None

    logger.info(
        "Consumption for project %s: %.2f m, %.2f",
        project_id, totals.total_fabric_length, totals.total_fabric_cost,
    )
    return totals

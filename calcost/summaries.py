"""
Read-only summaries for the workshop floor.

size_summary() counts participants per size for each garment, for cutting
lists. material_purchase_summary() says what to buy: the quote's materials
grouped by name, the fabric the quote expects next to the stored consumption
aggregate, and a purchase list sized from the fittings on record.
Nothing here is stored.
"""

from typing import Dict, Iterable, List, Optional

from .models import QuoteMode
from .pricing_engine import round_currency
from .schemas import (
    ConsumptionTotals,
    FittingRecord,
    GarmentSizeSummary,
    LineItem,
    MaterialPurchaseSummary,
    MaterialTotal,
    MaterialType,
    ProjectQuote,
)
from .sizing import PIVOT_SIZE, SIZE_LADDER, normalize_size, size_factor

_LADDER_BY_KEY = {size.upper(): size for size in SIZE_LADDER}


def summary_size_label(label) -> str:
    """Ladder spelling of a label regardless of case; other labels are upper-cased."""
    key = normalize_size(label).upper()
    return _LADDER_BY_KEY.get(key, key)


def _ladder_ordered(counts: Dict[str, int]) -> Dict[str, int]:
    ordered = {size: counts[size] for size in SIZE_LADDER if size in counts}
    # hand-typed sizes keep first-seen order after the ladder
    for size, count in counts.items():
        ordered.setdefault(size, count)
    return ordered


def size_summary(line_items: List[LineItem], fittings: Iterable[FittingRecord]) -> List[GarmentSizeSummary]:
    """Per garment, participants per size. Sizes for unknown garments are ignored."""
    counts = {item.id: {} for item in line_items}
    for fitting in fittings:
        for garment_id, size in fitting.sizes.items():
            if garment_id not in counts or not size:
                continue
            label = summary_size_label(size)
            counts[garment_id][label] = counts[garment_id].get(label, 0) + 1

    return [
        GarmentSizeSummary(
            garment_id=item.id,
            garment_name=item.name,
            sizes=_ladder_ordered(counts[item.id]),
            total=sum(counts[item.id].values()),
        )
        for item in line_items
    ]


def quantity_multiplier(line_item: LineItem, quote_mode: QuoteMode) -> int:
    """Units a garment's materials are bought for: its quantity in batch mode, else 1."""
    return line_item.quantity if quote_mode == QuoteMode.BATCH else 1


def _add(rows: dict, material, quantity: float, cost: float) -> None:
    row = rows.get(material.name)
    if row is None:
        row = rows[material.name] = {
            "name": material.name,
            "type": material.type,
            "unit": material.unit,
            "total_quantity": 0.0,
            "total_cost": 0.0,
        }
    row["total_quantity"] += quantity
    row["total_cost"] += cost


def _rounded(rows: dict) -> List[MaterialTotal]:
    return [
        MaterialTotal(
            name=row["name"],
            type=row["type"],
            unit=row["unit"],
            total_quantity=round_currency(row["total_quantity"]),
            total_cost=round_currency(row["total_cost"]),
        )
        for row in rows.values()
    ]


def quote_materials(quote: ProjectQuote) -> List[MaterialTotal]:
    """Materials across all garments, grouped by name, scaled by the quote-mode multiplier."""
    rows = {}
    for line_item in quote.line_items:
        multiplier = quantity_multiplier(line_item, quote.quote_mode)
        for material in line_item.material_items:
            _add(rows, material, material.quantity * multiplier, material.total * multiplier)
    return _rounded(rows)


def fitting_purchase_list(base_garment: Optional[LineItem], fittings: Iterable[FittingRecord]) -> List[MaterialTotal]:
    """
    The base garment's materials bought once per fitting.

    Fabric scales with each participant's size factor (same sizes and
    defaults as the consumption aggregate); accessories and prints do not.
    """
    if base_garment is None:
        return []
    rows = {}
    for fitting in fittings:
        factor = size_factor(fitting.sizes.get(base_garment.id) or PIVOT_SIZE)
        for material in base_garment.material_items:
            quantity = material.quantity * factor if material.type == MaterialType.FABRIC else material.quantity
            _add(rows, material, quantity, quantity * material.unit_cost)
    return _rounded(rows)


def material_purchase_summary(
    quote: ProjectQuote,
    fittings: List[FittingRecord],
    consumption: ConsumptionTotals,
) -> MaterialPurchaseSummary:
    materials = quote_materials(quote)

    fabric_length = 0.0
    fabric_cost = 0.0
    for line_item in quote.line_items:
        multiplier = quantity_multiplier(line_item, quote.quote_mode)
        for material in line_item.material_items:
            if material.type == MaterialType.FABRIC:
                fabric_length += material.quantity * multiplier
                fabric_cost += material.total * multiplier

    if fabric_length:
        length_difference_pct = (consumption.total_fabric_length - fabric_length) / fabric_length * 100
    else:
        length_difference_pct = 0.0

    base_garment = quote.line_items[0] if quote.line_items else None
    return MaterialPurchaseSummary(
        quote_mode=quote.quote_mode,
        units=sum(quantity_multiplier(item, quote.quote_mode) for item in quote.line_items),
        materials=materials,
        total_purchase_cost=round_currency(sum(material.total_cost for material in materials)),
        estimated_fabric_length=round_currency(fabric_length),
        estimated_fabric_cost=round_currency(fabric_cost),
        consumption=consumption,
        fabric_cost_difference=round_currency(consumption.total_fabric_cost - fabric_cost),
        fabric_length_difference_pct=round_currency(length_difference_pct),
        fittings_count=len(fittings),
        fitting_purchase_list=fitting_purchase_list(base_garment, fittings),
    )

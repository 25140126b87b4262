"""
Pricing Engine.

Turns a project's line items into per-unit costs, a per-size price table and
project totals. Pure math: no database, no I/O. Safe to call on every
keystroke while a quote is being edited.

Per line item:
    subtotal = materials + labor
    tax      = subtotal * tax%
    cost     = subtotal + tax
    profit   = cost * margin%
    base     = ceil(cost + profit)
    size     = ceil(base * (1 + 0.10 * (ladder_index - pivot_index)))

Prices always round UP to whole currency units. Inputs are not validated
here: schemas.py rejects bad numbers at the boundary; anything that slips
through (NaN, inf) propagates into the output.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from .models import QuoteMode
from .schemas import (
    CalculatedLineItem,
    LineItem,
    ProjectQuote,
    ProjectTotals,
    QuotePricing,
    SizePrice,
)
from .sizing import SIZE_LADDER, price_multiplier

# Float products like 100 * 1.1 land a hair above the integer; rounding to
# this many places first keeps ceil from charging an extra unit for noise.
_CEIL_PRECISION = 9


def ceil_currency(amount: float) -> int:
    """Round up to a whole currency unit."""
    if math.isnan(amount) or math.isinf(amount):
        return amount
    return math.ceil(round(amount, _CEIL_PRECISION))


def round_currency(amount: float, places: int = 2) -> float:
    """Half-up rounding to cents (4.575 -> 4.58), immune to float noise."""
    if math.isnan(amount) or math.isinf(amount):
        return amount
    cleaned = Decimal(repr(round(amount, _CEIL_PRECISION)))
    return float(cleaned.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def compute_size_prices(line_item: LineItem, base_price: int) -> list:
    """All 8 ladder sizes in ladder order; unselected sizes price at 0."""
    table = []
    for size in SIZE_LADDER:
        if not line_item.is_size_selected(size):
            table.append(SizePrice.model_construct(size=size, price=0, is_selected=False))
            continue
        price = ceil_currency(base_price * price_multiplier(size))
        table.append(SizePrice.model_construct(size=size, price=price, is_selected=True))
    return table


def compute_line_item_pricing(line_item: LineItem, tax_percent: float) -> CalculatedLineItem:
    """Price one garment type. tax_percent is 0-100."""
    material_cost_per_unit = sum(item.total for item in line_item.material_items)
    labor = line_item.labor_cost
    labor_cost_per_unit = labor.labor + labor.cutting + labor.other

    subtotal_per_unit = material_cost_per_unit + labor_cost_per_unit
    tax_per_unit = subtotal_per_unit * (tax_percent / 100)
    cost_per_unit = subtotal_per_unit + tax_per_unit

    profit_amount = cost_per_unit * (line_item.profit_margin_pct / 100)
    base_price_per_unit = ceil_currency(cost_per_unit + profit_amount)

    return CalculatedLineItem.model_construct(
        id=line_item.id,
        name=line_item.name,
        quantity=line_item.quantity,
        profit_margin_pct=line_item.profit_margin_pct,
        material_cost_per_unit=material_cost_per_unit,
        labor_cost_per_unit=labor_cost_per_unit,
        subtotal_per_unit=subtotal_per_unit,
        tax_per_unit=tax_per_unit,
        cost_per_unit=cost_per_unit,
        profit_amount=profit_amount,
        base_price_per_unit=base_price_per_unit,
        size_price_table=compute_size_prices(line_item, base_price_per_unit),
    )


def _totals_from(calculated: list, quote_mode: QuoteMode) -> ProjectTotals:
    total_cost = 0.0
    total_profit = 0.0
    total_tax = 0.0
    estimated_grand_total = 0.0

    for item in calculated:
        quantity = item.quantity if quote_mode == QuoteMode.BATCH else 1
        total_cost += item.cost_per_unit * quantity
        total_profit += (item.base_price_per_unit - item.cost_per_unit) * quantity
        total_tax += item.tax_per_unit * quantity
        # Buyers pick sizes later in individual mode; this is only a guide.
        estimated_grand_total += item.base_price_per_unit * item.quantity

    is_estimate = quote_mode == QuoteMode.INDIVIDUAL
    return ProjectTotals(
        quote_mode=quote_mode,
        total_cost=round_currency(total_cost),
        total_profit=round_currency(total_profit),
        total_tax=round_currency(total_tax),
        grand_total=round_currency(total_cost + total_profit),
        is_estimate=is_estimate,
        estimated_grand_total=round_currency(estimated_grand_total) if is_estimate else None,
    )


def compute_project_totals(project: ProjectQuote, tax_percent: float) -> ProjectTotals:
    """
    Aggregate cost, profit, tax and grand total for a project.

    batch:      every figure is multiplied by the line item's quantity.
    individual: one unit per line item; the totals are flagged is_estimate
                and estimated_grand_total carries sum(base * quantity).
    grand_total is always total_cost + total_profit.
    """
    calculated = [compute_line_item_pricing(item, tax_percent) for item in project.line_items]
    return _totals_from(calculated, project.quote_mode)


def price_project(project: ProjectQuote, tax_percent: float) -> QuotePricing:
    """Line item breakdown plus totals, as returned by the API and PDF."""
    calculated = [compute_line_item_pricing(item, tax_percent) for item in project.line_items]
    return QuotePricing(
        tax_percent=tax_percent,
        line_items=calculated,
        totals=_totals_from(calculated, project.quote_mode),
    )

"""
Typed records at the API / store boundary.

Stored JSON (line items, fitting sizes) is validated into these models before
the pricing and consumption code sees it. Numeric inputs are rejected here
when negative or non-finite; the calculators themselves do not validate.
"""

import enum
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import (
    MaterialCategory,
    ProjectStatus,
    PublicOrderStatus,
    QuoteMode,
    new_document_id,
)
from .sizing import SIZE_LADDER, normalize_size


def _coerce_quote_mode(value):
    # "group" is the label older projects were saved with
    if isinstance(value, str) and value.strip().lower() == "group":
        return QuoteMode.BATCH
    return value


# --- Line items ---

class MaterialType(str, enum.Enum):
    FABRIC = "Fabric"
    ACCESSORY = "Accessory"
    PRINT = "Print"


class MaterialItem(BaseModel):
    id: str = Field(default_factory=new_document_id)
    name: str = ""
    type: MaterialType = MaterialType.FABRIC
    unit: Optional[str] = None  # "m", "piece", ...
    quantity: float = Field(0.0, ge=0, allow_inf_nan=False)
    unit_cost: float = Field(0.0, ge=0, allow_inf_nan=False)
    total: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    @model_validator(mode="after")
    def _fill_total(self):
        if self.total is None:
            self.total = self.quantity * self.unit_cost
        return self


class LaborCost(BaseModel):
    labor: float = Field(0.0, ge=0, allow_inf_nan=False)
    cutting: float = Field(0.0, ge=0, allow_inf_nan=False)
    other: float = Field(0.0, ge=0, allow_inf_nan=False)


class SizeSelection(BaseModel):
    is_selected: bool = False


class LineItem(BaseModel):
    """One garment type in a quote."""
    id: str = Field(default_factory=new_document_id)
    name: str = ""
    description: Optional[str] = None
    quantity: int = Field(1, ge=1)
    profit_margin_pct: float = Field(0.0, ge=0, allow_inf_nan=False)
    material_items: List[MaterialItem] = []
    labor_cost: LaborCost = Field(default_factory=LaborCost)
    size_prices: Dict[str, SizeSelection] = {}

    @field_validator("size_prices", mode="before")
    @classmethod
    def _normalize_size_prices(cls, value):
        """Accept {label: {...}} or the list form [{size, is_selected}]; normalise labels."""
        if value is None:
            return {}
        if isinstance(value, list):
            value = {
                entry.get("size"): {"is_selected": entry.get("is_selected", entry.get("isSelected", False))}
                for entry in value
                if isinstance(entry, dict)
            }
        normalized = {}
        for label, selection in value.items():
            size = normalize_size(label)
            if size not in SIZE_LADDER:
                raise ValueError(f"Unknown size '{label}': expected one of {SIZE_LADDER}")
            if isinstance(selection, bool):
                selection = {"is_selected": selection}
            normalized[size] = selection
        return normalized

    def is_size_selected(self, size: str) -> bool:
        selection = self.size_prices.get(size)
        return bool(selection and selection.is_selected)


class ProjectQuote(BaseModel):
    """The part of a project the pricing calculator reads."""
    quote_mode: QuoteMode = QuoteMode.INDIVIDUAL
    line_items: List[LineItem] = []

    @field_validator("quote_mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value):
        return _coerce_quote_mode(value)


# --- Pricing output ---

class SizePrice(BaseModel):
    size: str
    price: int
    is_selected: bool


class CalculatedLineItem(BaseModel):
    id: str
    name: str
    quantity: int
    profit_margin_pct: float
    material_cost_per_unit: float
    labor_cost_per_unit: float
    subtotal_per_unit: float
    tax_per_unit: float
    cost_per_unit: float
    profit_amount: float
    base_price_per_unit: int
    size_price_table: List[SizePrice]

    def price_for(self, size: str) -> int:
        size = normalize_size(size)
        for entry in self.size_price_table:
            if entry.size == size:
                return entry.price
        raise KeyError(size)


class ProjectTotals(BaseModel):
    quote_mode: QuoteMode
    total_cost: float
    total_profit: float
    total_tax: float
    grand_total: float
    # Individual-mode totals depend on which sizes buyers eventually pick
    is_estimate: bool = False
    estimated_grand_total: Optional[float] = None


class QuotePricing(BaseModel):
    tax_percent: float
    line_items: List[CalculatedLineItem]
    totals: ProjectTotals


class PricingPreviewRequest(ProjectQuote):
    tax_percent: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)


# --- Projects ---

class SpecificConditions(BaseModel):
    validity: Optional[str] = None
    delivery_time: Optional[str] = None
    delivery_place: Optional[str] = None
    quote_date: Optional[str] = None


class ProjectCreate(ProjectQuote):
    client_name: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    specific_conditions: SpecificConditions = Field(default_factory=SpecificConditions)


class ProjectUpdate(BaseModel):
    """quote_mode is fixed at creation: sending it is a validation error."""
    model_config = ConfigDict(extra="forbid")

    client_name: Optional[str] = Field(None, min_length=1)
    project_name: Optional[str] = Field(None, min_length=1)
    line_items: Optional[List[LineItem]] = None
    specific_conditions: Optional[SpecificConditions] = None
    status: Optional[ProjectStatus] = None


class Project(BaseModel):
    id: str
    client_name: str
    project_name: str
    quote_mode: QuoteMode
    status: ProjectStatus
    line_items: List[LineItem] = []
    specific_conditions: SpecificConditions = Field(default_factory=SpecificConditions)
    total_fabric_length: float = 0.0
    total_fabric_cost: float = 0.0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_validator("specific_conditions", mode="before")
    @classmethod
    def _empty_conditions(cls, value):
        return value or {}


class ConsumptionTotals(BaseModel):
    total_fabric_length: float
    total_fabric_cost: float


# --- Fittings ---

class FittingRecord(BaseModel):
    """What the consumption aggregator reads from one fitting document."""
    id: str
    person_name: str = ""
    sizes: Dict[str, str] = {}
    confirmed: bool = False

    class Config:
        from_attributes = True

    @field_validator("sizes", mode="before")
    @classmethod
    def _normalize_sizes(cls, value):
        if not value:
            return {}
        return {str(garment_id): normalize_size(size) for garment_id, size in value.items()}


class FittingCreate(BaseModel):
    person_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    sizes: Dict[str, str] = {}

    @field_validator("sizes")
    @classmethod
    def _normalize_sizes(cls, value):
        return {garment_id: normalize_size(size) for garment_id, size in value.items()}


class FittingUpdate(BaseModel):
    person_name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    sizes: Optional[Dict[str, str]] = None

    @field_validator("sizes")
    @classmethod
    def _normalize_sizes(cls, value):
        if value is None:
            return value
        return {garment_id: normalize_size(size) for garment_id, size in value.items()}


class Fitting(BaseModel):
    id: str
    project_id: str
    person_name: str
    email: Optional[str] = None
    sizes: Dict[str, str] = {}
    confirmed: bool
    confirmed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ConfirmationResult(BaseModel):
    status: Literal["success", "already_confirmed", "not_found", "invalid"]
    message: str
    person_name: Optional[str] = None
    project_name: Optional[str] = None


# --- Summaries ---

class GarmentSizeSummary(BaseModel):
    """How many participants took each size of one garment."""
    garment_id: str
    garment_name: str
    sizes: Dict[str, int] = {}
    total: int = 0


class MaterialTotal(BaseModel):
    name: str
    type: MaterialType
    unit: Optional[str] = None
    total_quantity: float
    total_cost: float


class MaterialPurchaseSummary(BaseModel):
    """What to buy for a project, from the quote and from the fittings on record."""
    quote_mode: QuoteMode
    units: int
    materials: List[MaterialTotal]
    total_purchase_cost: float
    estimated_fabric_length: float
    estimated_fabric_cost: float
    consumption: ConsumptionTotals
    fabric_cost_difference: float
    fabric_length_difference_pct: float
    fittings_count: int
    fitting_purchase_list: List[MaterialTotal]


# --- Material catalog ---

class CatalogMaterialBase(BaseModel):
    category: MaterialCategory
    name: str = Field(..., min_length=1)
    price: float = Field(0.0, ge=0, allow_inf_nan=False)
    unit: Literal["m", "piece", "fixed", "kg"] = "m"


class CatalogMaterialCreate(CatalogMaterialBase):
    pass


class CatalogMaterialUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    unit: Optional[Literal["m", "piece", "fixed", "kg"]] = None


class CatalogMaterial(CatalogMaterialBase):
    id: int
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Public orders ---

class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)


class OrderItem(BaseModel):
    product_name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    price: float = Field(0.0, ge=0, allow_inf_nan=False)
    size: Optional[str] = None
    type: Literal["sur_mesure", "stock"] = "stock"


class PublicOrderCreate(BaseModel):
    customer: CustomerInfo
    college: str = Field(..., min_length=1)
    items: List[OrderItem] = Field(..., min_length=1)
    payment_proof_url: str = Field(..., min_length=1)


class PublicOrderStatusUpdate(BaseModel):
    status: PublicOrderStatus
    admin_notes: Optional[str] = None


class PublicOrder(BaseModel):
    id: str
    customer: CustomerInfo
    college: str
    items: List[OrderItem]
    status: PublicOrderStatus
    total_amount: float
    payment_proof_url: str
    admin_notes: Optional[str] = None
    payment_verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PublicOrderReceipt(BaseModel):
    """What an anonymous customer may see about their own order."""
    id: str
    college: str
    status: PublicOrderStatus
    total_amount: float
    created_at: datetime

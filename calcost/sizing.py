"""
Fixed garment size ladder shared by pricing and fabric consumption.

Index on the ladder matters: prices scale 10% per step away from the pivot
size, and each size carries its own fabric consumption factor.
"""

SIZE_LADDER = ["6 a 8", "10 a 12", "14", "S,M,L", "XL", "XXL", "XXXL", "XXXXL"]

PIVOT_SIZE = "S,M,L"
PIVOT_INDEX = SIZE_LADDER.index(PIVOT_SIZE)

PRICE_STEP = 0.10

# Fabric used by one garment of a size, relative to the pivot size.
FITTING_SIZE_FACTORS = {
    "6 a 8": 0.85,
    "10 a 12": 0.90,
    "14": 0.95,
    "S,M,L": 1.0,
    "XL": 1.10,
    "XXL": 1.20,
    "XXXL": 1.30,
    "XXXXL": 1.40,
}


def normalize_size(label) -> str:
    """
    Canonical form of a size label.

    Older records store the pivot as "S, M, L"; comma-separated labels lose
    their inner spaces so both spellings land on the same ladder entry.
    """
    if label is None:
        return ""
    text = str(label).strip()
    if "," in text:
        text = ",".join(part.strip() for part in text.split(","))
    return text


def price_multiplier(size: str) -> float:
    """1 + 10% per ladder step from the pivot. Raises ValueError off-ladder."""
    index = SIZE_LADDER.index(normalize_size(size))
    return 1 + (index - PIVOT_INDEX) * PRICE_STEP


def size_factor(size) -> float:
    """Consumption factor for a size; unknown sizes count as the pivot (1.0)."""
    return FITTING_SIZE_FACTORS.get(normalize_size(size), 1.0)

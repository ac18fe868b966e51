"""
Brand → warranty lookup.

The table is checked in order and the first token contained in the detected
model string wins, so brand names come before the product lines that only
appear as part of a longer model name.
"""
from __future__ import annotations

from typing import Optional, Sequence

from models import UNDETERMINED_MODEL

DEFAULT_WARRANTY_MONTHS = 12

# (lower-case token, months)
BRAND_WARRANTY_TABLE: tuple[tuple[str, int], ...] = (
    ("nike",         24),
    ("adidas",       24),
    ("puma",         12),
    ("reebok",       12),
    ("new balance",  12),
    ("vans",         24),
    ("converse",     24),
    ("skechers",     12),
    ("timberland",   12),
    ("dr. martens",  12),
    ("asics",        12),
    ("under armour", 12),
    ("jordan",       24),
    ("air max",      24),
    ("air force",    24),
    ("stan smith",   24),
    ("superstar",    24),
    ("gazelle",      24),
    ("ultra boost",  24),
    ("nmd",          24),
)


def resolve_warranty(
    shoe_model: Optional[str],
    table: Sequence[tuple[str, int]] = BRAND_WARRANTY_TABLE,
    default: int = DEFAULT_WARRANTY_MONTHS,
) -> int:
    """Return the warranty in months for a detected brand/model string."""
    if not shoe_model or shoe_model == UNDETERMINED_MODEL:
        return default
    model_lower = shoe_model.lower()
    for token, months in table:
        if token in model_lower:
            return months
    return default

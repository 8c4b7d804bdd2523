"""
Area unit conversion and display formatting.

Author: Gleba Project
License: AGPL-3.0
"""

import re

## 1 ha = 10,000 m²
SQUARE_METERS_PER_HECTARE = 10_000.0

_AREA_PATTERN = re.compile(r"^[0-9]+(\.[0-9]{1,2})?$")


def square_meters_to_hectares(area_m2: float) -> float:
    return area_m2 / SQUARE_METERS_PER_HECTARE


def hectares_to_square_meters(area_ha: float) -> float:
    return area_ha * SQUARE_METERS_PER_HECTARE


def format_area(area: float, decimals: int = 2) -> str:
    """Format an area (hectares) for display, e.g. 12.3456 -> '12.35'."""
    return f"{area:.{decimals}f}"


def format_percentage(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}%"


def validate_area_format(area_string: str) -> bool:
    """
    Check that a user-typed area has at most two decimal places.

    Args:
        area_string (str): Raw input such as "12.5"

    Returns:
        bool: True for plain non-negative decimals with up to 2 places
    """
    return bool(_AREA_PATTERN.match(area_string or ""))

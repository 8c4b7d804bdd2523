"""
Result Objects of the Validation and Accounting Services

Expected failures (rule violations, missing inputs) are reported through
these objects rather than exceptions. Geometries inside results are shapely
geometries or None.

Author: Gleba Project
License: AGPL-3.0
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict of a validation rule.

    Attributes:
        is_valid (bool): Whether the geometry is acceptable
        message (str): Human-readable explanation
        clip_result: Geometry to store instead of the original, when clipped
    """

    is_valid: bool
    message: str
    clip_result: Optional[Any] = None


@dataclass(frozen=True)
class CoverageResult:
    is_valid: bool
    coverage_percentage: float
    message: str


@dataclass(frozen=True)
class AnthropizedAreaResult:
    area: float
    geometry: Optional[Any] = None


@dataclass(frozen=True)
class OverlapResult:
    geometry: Optional[Any]
    area: float
    has_overlap: bool


@dataclass(frozen=True)
class CoverageBreakdown:
    """
    Covered / uncovered split of a base geometry.

    Attributes:
        coverage_geometry: Union of the coverage geometries clipped to the base
        covered_area (float): Hectares
        uncovered_area (float): Hectares
        coverage_percentage (float): 0-100
    """

    coverage_geometry: Optional[Any]
    covered_area: float
    uncovered_area: float
    coverage_percentage: float


@dataclass(frozen=True)
class UnionFailure:
    """A pairwise union that failed during a fold; `step` indexes the input list."""

    step: int
    error: str


@dataclass
class UnionResult:
    geometry: Optional[Any]
    failures: List[UnionFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

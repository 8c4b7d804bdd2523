"""
@file config.py
@brief Runtime configuration for validation and accounting policies

@details
Collects every tunable policy of the validation/accounting core in a single
immutable object. A Settings instance is built once (usually from the
environment) and passed explicitly to the services and the layer registry,
so nothing in the core reads ambient global state.

**Environment variables:**
- GLEBA_GEOMETRY_TOLERANCE: positional tolerance in metres [0.1]
- GLEBA_COVERAGE_COMPLETE_THRESHOLD: percentage counted as full coverage [99.9]
- GLEBA_MUNICIPALITY_OVERLAP_THRESHOLD: minimum % of the property inside
  the municipality when not fully contained [90]
- GLEBA_STATE_CODE: IBGE state prefix for accepted municipalities ["35"]
- GLEBA_ALLOWED_MUNICIPALITIES: extra IBGE codes, comma separated [""]
- GLEBA_ALLOW_UNVERIFIED_BOUNDARY: accept a property when no municipality
  boundary is available [false]
- GLEBA_REVALIDATE_ON_UPDATE: re-run boundary validation on layer updates [false]
- GLEBA_BOUNDARY_CACHE_TTL: Redis TTL for boundary lookups, seconds [86400]

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import os
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional

from gleba.models.catalog import MUNICIPALITIES


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_codes(name: str) -> FrozenSet[str]:
    raw = os.getenv(name, "")
    return frozenset(code.strip() for code in raw.split(",") if code.strip())


@dataclass(frozen=True)
class Settings:
    """
    @brief Policy constants shared by the validation and accounting services

    @details
    `geometry_tolerance` is the single tolerance threaded through every
    geometry engine call made by the core. Its unit is the engine's length
    unit (metres for both shipped engines).
    """

    geometry_tolerance: float = 0.1
    coverage_complete_threshold: float = 99.9
    municipality_overlap_threshold: float = 90.0
    state_code: str = "35"
    extra_municipalities: FrozenSet[str] = field(default_factory=frozenset)
    allow_unverified_boundary: bool = False
    revalidate_on_update: bool = False
    boundary_cache_ttl: int = 86400

    @property
    def allowed_municipalities(self) -> FrozenSet[str]:
        """Built-in municipality catalog plus configured extras."""
        return frozenset(MUNICIPALITIES) | self.extra_municipalities

    def is_accepted_municipality(self, municipality_id: Optional[str]) -> bool:
        """
        @brief State-membership test for a municipality identifier

        @return True when the id carries the configured state prefix and is
                in the allow-list
        """
        if not municipality_id:
            return False
        code = str(municipality_id).strip()
        return code.startswith(self.state_code) and code in self.allowed_municipalities

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        @brief Build settings from GLEBA_* environment variables
        """
        return cls(
            geometry_tolerance=float(os.getenv("GLEBA_GEOMETRY_TOLERANCE", "0.1")),
            coverage_complete_threshold=float(
                os.getenv("GLEBA_COVERAGE_COMPLETE_THRESHOLD", "99.9")
            ),
            municipality_overlap_threshold=float(
                os.getenv("GLEBA_MUNICIPALITY_OVERLAP_THRESHOLD", "90")
            ),
            state_code=os.getenv("GLEBA_STATE_CODE", "35"),
            extra_municipalities=_env_codes("GLEBA_ALLOWED_MUNICIPALITIES"),
            allow_unverified_boundary=_env_bool("GLEBA_ALLOW_UNVERIFIED_BOUNDARY", False),
            revalidate_on_update=_env_bool("GLEBA_REVALIDATE_ON_UPDATE", False),
            boundary_cache_ttl=int(os.getenv("GLEBA_BOUNDARY_CACHE_TTL", "86400")),
        )


## @brief Settings loaded at import time for the HTTP application
settings = Settings.from_env()

# natal/core/nodes.py
from __future__ import annotations

"""
Mean lunar node (Meeus polynomial in Julian centuries since J2000.0).

This is the *mean* node: no true-node perturbation terms are applied, so the
result can differ from the osculating node by up to ~1.5°. That is an accepted
approximation for sign/house placement, not a defect.
"""

from dataclasses import dataclass
from datetime import datetime

from natal.core.angles import normalize360
from natal.core.errors import InvalidInput

__all__ = [
    "JD_UNIX_EPOCH",
    "JD_J2000",
    "LunarNodes",
    "julian_date",
    "julian_centuries",
    "mean_node_longitude",
    "lunar_nodes",
]

JD_UNIX_EPOCH = 2440587.5   # 1970-01-01T00:00:00Z
JD_J2000 = 2451545.0        # 2000-01-01T12:00:00 (J2000.0)


@dataclass(frozen=True)
class LunarNodes:
    north: float
    south: float


def julian_date(instant: datetime) -> float:
    """Unix-epoch based Julian date of an aware datetime."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidInput("nodes", "instant must be timezone-aware", instant=instant.isoformat())
    return instant.timestamp() / 86400.0 + JD_UNIX_EPOCH


def julian_centuries(jd: float) -> float:
    return (float(jd) - JD_J2000) / 36525.0


def mean_node_longitude(jd: float) -> float:
    T = julian_centuries(jd)
    node = 125.04452 - 1934.136261 * T + 0.0020708 * (T ** 2) + (T ** 3) / 450000.0
    return normalize360(node)


def lunar_nodes(jd: float) -> LunarNodes:
    north = mean_node_longitude(jd)
    return LunarNodes(north=north, south=normalize360(north + 180.0))

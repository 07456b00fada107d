# natal/core/axes.py
from __future__ import annotations

"""
Ascendant / Midheaven from local sidereal time, latitude and obliquity.

    MC  = atan2(sin θ, cos θ · cos ε)
    ASC = atan2(−cos θ, sin θ · cos ε + tan φ · sin ε) + 180°

θ = local sidereal time (deg), φ = geographic latitude, ε = obliquity.
The +180° picks the eastern horizon crossing instead of the antipodal root.

POLAR POLICY
tan φ diverges at the poles, so |φ| beyond POLAR_ABSOLUTE_LIMIT_DEG is rejected
with DomainError. There is no clamping: a clamped latitude would silently move the
observer.
"""

from dataclasses import dataclass
from typing import Final
import math

from natal.core.angles import atan2d, cosd, normalize360, sind, tand
from natal.core.errors import DomainError

__all__ = [
    "OBLIQUITY_DEG",
    "POLAR_ABSOLUTE_LIMIT_DEG",
    "ChartAxes",
    "local_sidereal_deg",
    "midheaven_longitude",
    "ascendant_longitude",
    "solve_axes",
]

OBLIQUITY_DEG: Final[float] = 23.4392911          # mean obliquity at J2000
POLAR_ABSOLUTE_LIMIT_DEG: Final[float] = 89.999999
_DEGENERATE_EPS: Final[float] = 1e-12


@dataclass(frozen=True)
class ChartAxes:
    ascendant: float
    midheaven: float
    lst_deg: float


def local_sidereal_deg(gst_hours: float, longitude_deg: float) -> float:
    """Greenwich sidereal time (hours) + east longitude → local sidereal time (deg)."""
    if not (math.isfinite(gst_hours) and math.isfinite(longitude_deg)):
        raise DomainError("axes", "sidereal time and longitude must be finite",
                          gst_hours=gst_hours, longitude=longitude_deg)
    return normalize360(normalize360(float(gst_hours) * 15.0) + float(longitude_deg))


def _check_latitude(lat: float) -> float:
    lat = float(lat)
    if not math.isfinite(lat):
        raise DomainError("axes", "latitude must be finite", latitude=lat)
    if abs(lat) > POLAR_ABSOLUTE_LIMIT_DEG:
        raise DomainError(
            "axes",
            f"ascendant undefined at polar latitude {lat:+.6f}° (|lat| > {POLAR_ABSOLUTE_LIMIT_DEG}°)",
            latitude=lat,
        )
    return lat


def midheaven_longitude(lst_deg: float, obliquity_deg: float = OBLIQUITY_DEG) -> float:
    return normalize360(atan2d(sind(lst_deg), cosd(lst_deg) * cosd(obliquity_deg)))


def ascendant_longitude(lst_deg: float, latitude_deg: float, obliquity_deg: float = OBLIQUITY_DEG) -> float:
    lat = _check_latitude(latitude_deg)
    y = -cosd(lst_deg)
    x = sind(lst_deg) * cosd(obliquity_deg) + tand(lat) * sind(obliquity_deg)
    if abs(y) < _DEGENERATE_EPS and abs(x) < _DEGENERATE_EPS:
        # ecliptic lies in the horizon plane; no unique rising degree
        raise DomainError("axes", "ascendant undefined: ecliptic coincides with the horizon",
                          lst_deg=lst_deg, latitude=lat)
    return normalize360(atan2d(y, x) + 180.0)


def solve_axes(lst_deg: float, latitude_deg: float, obliquity_deg: float = OBLIQUITY_DEG) -> ChartAxes:
    return ChartAxes(
        ascendant=ascendant_longitude(lst_deg, latitude_deg, obliquity_deg),
        midheaven=midheaven_longitude(lst_deg, obliquity_deg),
        lst_deg=normalize360(lst_deg),
    )

# natal/core/angles.py
from __future__ import annotations

import math

from natal.core.errors import DomainError

__all__ = [
    "normalize360",
    "angular_distance",
    "sind", "cosd", "tand", "atan2d",
]


def normalize360(x: float) -> float:
    """Fold any finite angle into [0, 360)."""
    x = float(x)
    if not math.isfinite(x):
        raise DomainError("angles", "cannot normalize a non-finite angle", value=x)
    v = x % 360.0
    if v < 0.0:
        v += 360.0
    # tiny negatives round up to exactly 360.0 in binary floating point
    return 0.0 if v >= 360.0 else v


def angular_distance(a: float, b: float) -> float:
    """Smallest separation on the circle in [0, 180]; symmetric in (a, b)."""
    d = abs(float(a) - float(b)) % 360.0
    if not math.isfinite(d):
        raise DomainError("angles", "cannot measure distance between non-finite angles", a=a, b=b)
    return 360.0 - d if d > 180.0 else d


# ───────────────────────────── degree trig ─────────────────────────────
def sind(a: float) -> float: return math.sin(math.radians(a))
def cosd(a: float) -> float: return math.cos(math.radians(a))
def tand(a: float) -> float: return math.tan(math.radians(a))
def atan2d(y: float, x: float) -> float: return math.degrees(math.atan2(y, x))

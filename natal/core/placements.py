# natal/core/placements.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Final, Mapping, Tuple

from natal.core.angles import normalize360

__all__ = [
    "SIGNS",
    "ASC", "MC", "NORTH_NODE", "SOUTH_NODE",
    "AXIS_HOUSES",
    "Placement",
    "sign_of",
    "degree_in_sign",
    "equal_house",
    "placement",
    "place_points",
]

SIGNS: Final[Tuple[str, ...]] = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)

ASC: Final[str] = "ASC"
MC: Final[str] = "MC"
NORTH_NODE: Final[str] = "NorthNode"
SOUTH_NODE: Final[str] = "SouthNode"

# The two anchors of the house frame; never pushed through the equal-house formula.
AXIS_HOUSES: Final[Mapping[str, int]] = {ASC: 1, MC: 10}


@dataclass(frozen=True)
class Placement:
    point: str
    sign: str
    degree: float
    house: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def sign_of(longitude: float) -> str:
    return SIGNS[int(normalize360(longitude) // 30.0) % 12]


def degree_in_sign(longitude: float) -> float:
    return round(normalize360(longitude) % 30.0, 2)


def equal_house(longitude: float, ascendant: float) -> int:
    """Equal houses: 30° sectors counted from the Ascendant, 1..12."""
    return int(normalize360(float(longitude) - float(ascendant)) // 30.0) + 1


def placement(point: str, longitude: float, ascendant: float) -> Placement:
    house = AXIS_HOUSES.get(point)
    if house is None:
        house = equal_house(longitude, ascendant)
    return Placement(point=point, sign=sign_of(longitude), degree=degree_in_sign(longitude), house=house)


def place_points(longitudes: Mapping[str, float], ascendant: float) -> Dict[str, Placement]:
    return {name: placement(name, lon, ascendant) for name, lon in longitudes.items()}

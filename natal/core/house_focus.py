# natal/core/house_focus.py
from __future__ import annotations

"""
House emphasis: weight each classical body, sum per house, keep the heaviest houses.

The weight table (Sun 10, Moon 9, Saturn 7, everything else 5) is a product policy
favouring the luminaries and Saturn. It is not an astrological consensus value.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

__all__ = [
    "FOCUS_BODIES",
    "WeightTable",
    "DEFAULT_WEIGHTS",
    "HouseFocusEntry",
    "aggregate_house_focus",
]

FOCUS_BODIES: Tuple[str, ...] = (
    "Sun", "Moon", "Mercury", "Venus", "Mars",
    "Jupiter", "Saturn", "Uranus", "Neptune", "Pluto",
)


def _frozen(m: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(m))


@dataclass(frozen=True)
class WeightTable:
    weights: Mapping[str, float] = field(
        default_factory=lambda: _frozen({"Sun": 10, "Moon": 9, "Saturn": 7})
    )
    default: float = 5

    def __post_init__(self) -> None:
        if not isinstance(self.weights, MappingProxyType):
            object.__setattr__(self, "weights", _frozen(self.weights))

    def weight(self, body: str) -> float:
        return self.weights.get(body, self.default)


DEFAULT_WEIGHTS = WeightTable()


@dataclass(frozen=True)
class HouseFocusEntry:
    house: int
    total_weight: float
    bodies: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {"house": self.house, "total_weight": self.total_weight, "bodies": list(self.bodies)}


def aggregate_house_focus(
    houses: Mapping[str, int],
    weights: WeightTable = DEFAULT_WEIGHTS,
    top_n: int = 3,
) -> List[HouseFocusEntry]:
    """
    `houses` maps body → house (1..12). Only the ten classical bodies count; nodes
    and axes present in the mapping are ignored. Bodies inside an entry follow
    classical order; entries sort by total weight desc, then house number asc.
    """
    totals: Dict[int, float] = {}
    members: Dict[int, List[str]] = {}
    for body in FOCUS_BODIES:
        if body not in houses:
            continue
        h = int(houses[body])
        totals[h] = totals.get(h, 0) + weights.weight(body)
        members.setdefault(h, []).append(body)

    entries = [HouseFocusEntry(house=h, total_weight=totals[h], bodies=tuple(members[h])) for h in totals]
    entries.sort(key=lambda e: (-e.total_weight, e.house))
    return entries[:max(0, int(top_n))]

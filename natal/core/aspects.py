# natal/core/aspects.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from natal.core.angles import angular_distance
from natal.core.errors import InvalidInput

__all__ = [
    "AspectType",
    "AspectMatch",
    "AspectDetector",
    "ASPECT_CATALOG",
    "HARD_ASPECTS",
    "INNER_PAIRS",
    "SATURN_PAIRS",
    "OUTER_PAIRS",
    "rank",
    "top",
]

Pair = Tuple[str, str]

# ─────────────────────────────────────────────────────────────────────────────
# Aspect catalog (fixed; order is the ranking tie-break)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AspectType:
    name: str
    code: str
    exact_deg: float
    tolerance_deg: float


ASPECT_CATALOG: Tuple[AspectType, ...] = (
    AspectType("conjunction", "CONJ", 0.0, 8.0),
    AspectType("sextile", "SEXT", 60.0, 5.0),
    AspectType("square", "SQR", 90.0, 6.0),
    AspectType("trine", "TRI", 120.0, 6.0),
    AspectType("opposition", "OPP", 180.0, 8.0),
)

HARD_ASPECTS: FrozenSet[str] = frozenset({"conjunction", "square", "opposition"})

# ─────────────────────────────────────────────────────────────────────────────
# Pair policies (which named points are compared in each category)
# ─────────────────────────────────────────────────────────────────────────────

INNER_PAIRS: Tuple[Pair, ...] = (
    ("Sun", "Moon"), ("Sun", "Mercury"), ("Sun", "Venus"), ("Sun", "Mars"),
    ("Moon", "Mercury"), ("Moon", "Venus"), ("Moon", "Mars"),
    ("Mercury", "Venus"), ("Mercury", "Mars"),
    ("Venus", "Mars"),
)

SATURN_PAIRS: Tuple[Pair, ...] = (
    ("Saturn", "Sun"), ("Saturn", "Moon"), ("Saturn", "Mercury"),
    ("Saturn", "Venus"), ("Saturn", "Mars"),
)

OUTER_PAIRS: Tuple[Pair, ...] = (
    ("Uranus", "Sun"), ("Neptune", "Sun"), ("Pluto", "Sun"),
    ("Uranus", "Moon"), ("Neptune", "Moon"), ("Pluto", "Moon"),
)

# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AspectMatch:
    point_a: str
    point_b: str
    aspect: str
    code: str
    exact_deg: float
    separation_deg: float          # angular distance in [0, 180]
    orb: float                     # |separation - exact|, 2 decimals
    score: float                   # 10 - orb, 2 decimals
    catalog_index: int = field(default=0, compare=False)
    pair_index: int = field(default=0, compare=False)

    def sort_key(self) -> Tuple[float, int, int]:
        return (-self.score, self.catalog_index, self.pair_index)

    def as_dict(self) -> Dict[str, Any]:
        return {"a": self.point_a, "b": self.point_b, "type": self.aspect,
                "orb": self.orb, "score": self.score}


# ─────────────────────────────────────────────────────────────────────────────
# Detector
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AspectDetector:
    """
    Pairwise aspect finder over an explicit pair list.

    Ranking is a strict total order: score descending, then catalog position,
    then position of the pair in the supplied list. Two matches never share all
    three keys, so output order is fully determined by the input.
    """
    catalog: Tuple[AspectType, ...] = ASPECT_CATALOG

    def match_pair(self, a: str, lon_a: float, b: str, lon_b: float, pair_index: int = 0) -> List[AspectMatch]:
        sep = angular_distance(lon_a, lon_b)
        hits: List[AspectMatch] = []
        for i, kind in enumerate(self.catalog):
            delta = abs(sep - kind.exact_deg)
            if delta <= kind.tolerance_deg:
                orb = round(delta, 2)
                hits.append(AspectMatch(
                    point_a=a, point_b=b,
                    aspect=kind.name, code=kind.code,
                    exact_deg=kind.exact_deg, separation_deg=sep,
                    orb=orb, score=round(10.0 - orb, 2),
                    catalog_index=i, pair_index=pair_index,
                ))
        return hits

    def detect(self, longitudes: Mapping[str, float], pairs: Sequence[Pair]) -> List[AspectMatch]:
        out: List[AspectMatch] = []
        for idx, (a, b) in enumerate(pairs):
            missing = [p for p in (a, b) if p not in longitudes]
            if missing:
                raise InvalidInput("aspects", f"unknown point(s) in pair {a}-{b}",
                                   missing=",".join(missing))
            out.extend(self.match_pair(a, longitudes[a], b, longitudes[b], pair_index=idx))
        return rank(out)


def rank(matches: Iterable[AspectMatch]) -> List[AspectMatch]:
    return sorted(matches, key=AspectMatch.sort_key)


def top(matches: Iterable[AspectMatch], n: int, kinds: Optional[Iterable[str]] = None) -> List[AspectMatch]:
    """First `n` of the ranked list, optionally restricted to aspect names in `kinds`."""
    allowed = None if kinds is None else frozenset(kinds)
    ranked = rank(m for m in matches if allowed is None or m.aspect in allowed)
    return ranked[:max(0, int(n))]

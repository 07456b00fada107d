# natal/core/narrative.py
from __future__ import annotations

"""
Hand-off payload for the narrative generator.

The generator quotes every number, sign and house from this payload verbatim; it
never recomputes them. `compact_chart` keeps only what the prompt needs, and
`localize_signs` swaps sign names for the prompt language.
"""

from typing import Any, Dict, List, Mapping, Optional
import copy

from natal.core.errors import InvalidInput

__all__ = ["SIGN_NAMES", "compact_chart", "localize_signs"]

SIGN_NAMES: Dict[str, Dict[str, str]] = {
    "en": {},
    "zh": {
        "Aries": "白羊座", "Taurus": "金牛座", "Gemini": "双子座", "Cancer": "巨蟹座",
        "Leo": "狮子座", "Virgo": "处女座", "Libra": "天秤座", "Scorpio": "天蝎座",
        "Sagittarius": "射手座", "Capricorn": "摩羯座", "Aquarius": "水瓶座", "Pisces": "双鱼座",
    },
}

_CORE_KEYS = ("sun", "moon", "asc", "mc", "saturn")
_ASPECT_SECTIONS = {
    "inner_hard_aspects": "inner_hard_aspects_top3",
    "saturn_aspects": "saturn_aspects_top",
    "outer_hard_aspects": "outer_hard_aspects_top3",
}


def _pick_aspects(items: Optional[List[Mapping[str, Any]]], limit: int) -> List[Dict[str, Any]]:
    return [
        {"a": a.get("a"), "b": a.get("b"), "type": a.get("type"), "orb": a.get("orb")}
        for a in list(items or [])[:max(0, int(limit))]
    ]


def compact_chart(document: Mapping[str, Any], max_aspects: int = 6, locale: Optional[str] = None) -> Dict[str, Any]:
    """Reduce a ChartModel document to the prompt payload (scores dropped)."""
    core = document.get("core") or {}
    out: Dict[str, Any] = {
        "input": copy.deepcopy(document.get("input") or {}),
        "core": {k: copy.deepcopy(core.get(k)) for k in _CORE_KEYS},
        "house_focus_top3": [
            {"house": h.get("house"), "total_weight": h.get("total_weight"), "bodies": list(h.get("bodies") or [])}
            for h in (document.get("house_focus_top3") or [])
        ],
    }
    for short, full in _ASPECT_SECTIONS.items():
        out[short] = _pick_aspects(document.get(full), max_aspects)
    if document.get("nodes") is not None:
        out["nodes"] = copy.deepcopy(document["nodes"])
    return localize_signs(out, locale) if locale else out


def _translate(placement: Any, table: Mapping[str, str]) -> None:
    if isinstance(placement, dict) and "sign" in placement:
        placement["sign"] = table.get(placement["sign"], placement["sign"])


def localize_signs(document: Mapping[str, Any], locale: str) -> Dict[str, Any]:
    """Copy of `document` with sign names in core, placements and nodes localized."""
    table = SIGN_NAMES.get((locale or "").lower())
    if table is None:
        raise InvalidInput("narrative", f"unsupported locale '{locale}'",
                           locale=locale, supported=",".join(sorted(SIGN_NAMES)))
    out = copy.deepcopy(dict(document))
    for section in ("core", "placements", "nodes"):
        for p in (out.get(section) or {}).values():
            _translate(p, table)
    return out

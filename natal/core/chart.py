# natal/core/chart.py
from __future__ import annotations

"""
Chart assembler: request → ChartModel.

Stages run strictly in sequence:

    AWAITING_INPUTS → RESOLVING_TIME → COMPUTING_AXES → COMPUTING_BODIES
        → COMPUTING_DERIVED → ASSEMBLED

Any ChartError stops the pipeline (FAILED) with the stage recorded on the error;
foreign exceptions from the providers are wrapped in ProviderError. There are no
retries and no partial models.

The assembler keeps only its immutable EngineConfig and provider references; all
intermediate values are locals of `assemble`, so one instance can serve
concurrent requests.
"""

from dataclasses import dataclass, field
from datetime import timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, TypeVar, Union
import logging
import math

from natal.core.angles import normalize360
from natal.core.aspects import (
    ASPECT_CATALOG,
    HARD_ASPECTS,
    INNER_PAIRS,
    OUTER_PAIRS,
    SATURN_PAIRS,
    AspectDetector,
    AspectMatch,
    AspectType,
    top,
)
from natal.core.axes import OBLIQUITY_DEG, local_sidereal_deg, solve_axes
from natal.core.ephemeris import CLASSICAL_BODIES, EphemerisProvider
from natal.core.errors import ChartError, DomainError, ProviderError
from natal.core.house_focus import DEFAULT_WEIGHTS, HouseFocusEntry, WeightTable, aggregate_house_focus
from natal.core.nodes import julian_date, lunar_nodes
from natal.core.placements import ASC, MC, NORTH_NODE, SOUTH_NODE, Placement, place_points
from natal.core.requests import ChartRequest, parse_chart_request
from natal.core.sidereal import SiderealTimeProvider

__all__ = ["ChartStage", "EngineConfig", "ChartModel", "ChartAssembler"]

log = logging.getLogger(__name__)

T = TypeVar("T")
Pair = Tuple[str, str]


class ChartStage(str, Enum):
    AWAITING_INPUTS = "awaiting_inputs"
    RESOLVING_TIME = "resolving_time"
    COMPUTING_AXES = "computing_axes"
    COMPUTING_BODIES = "computing_bodies"
    COMPUTING_DERIVED = "computing_derived"
    ASSEMBLED = "assembled"
    FAILED = "failed"


# ───────────────────────────── config ─────────────────────────────

@dataclass(frozen=True)
class EngineConfig:
    obliquity_deg: float = OBLIQUITY_DEG
    catalog: Tuple[AspectType, ...] = ASPECT_CATALOG
    inner_pairs: Tuple[Pair, ...] = INNER_PAIRS
    saturn_pairs: Tuple[Pair, ...] = SATURN_PAIRS
    outer_pairs: Tuple[Pair, ...] = OUTER_PAIRS
    weights: WeightTable = DEFAULT_WEIGHTS
    top_houses: int = 3
    top_aspects: int = 3
    top_saturn_aspects: int = 3

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping[str, Any]]) -> "EngineConfig":
        """Build from the `engine` section of the service config (missing keys → defaults)."""
        cfg = cfg or {}
        weights = DEFAULT_WEIGHTS
        if cfg.get("weights") is not None or cfg.get("default_weight") is not None:
            weights = WeightTable(
                weights=dict(cfg.get("weights") or DEFAULT_WEIGHTS.weights),
                default=cfg.get("default_weight", DEFAULT_WEIGHTS.default),
            )
        obliq = float(cfg.get("obliquity_deg", OBLIQUITY_DEG))
        if not math.isfinite(obliq) or not (0.0 <= obliq < 90.0):
            raise ValueError(f"engine.obliquity_deg out of range: {obliq}")
        return cls(
            obliquity_deg=obliq,
            weights=weights,
            top_houses=int(cfg.get("top_houses", 3)),
            top_aspects=int(cfg.get("top_aspects", 3)),
            top_saturn_aspects=int(cfg.get("top_saturn_aspects", 3)),
        )


# ───────────────────────────── model ─────────────────────────────

@dataclass(frozen=True)
class ChartModel:
    request: ChartRequest
    placements: Dict[str, Placement]
    house_focus: Tuple[HouseFocusEntry, ...]
    inner_hard_aspects: Tuple[AspectMatch, ...]
    saturn_aspects: Tuple[AspectMatch, ...]
    outer_hard_aspects: Tuple[AspectMatch, ...]
    longitudes: Dict[str, float]
    julian_date: float
    gst_hours: float
    lst_deg: float
    obliquity_deg: float
    warnings: Tuple[str, ...] = field(default=())

    def core(self) -> Dict[str, Any]:
        p = self.placements
        return {
            "sun": p["Sun"].as_dict(),
            "moon": p["Moon"].as_dict(),
            "asc": p[ASC].as_dict(),
            "mc": p[MC].as_dict(),
            "saturn": p["Saturn"].as_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        utc = self.request.utc_instant.astimezone(timezone.utc)
        return {
            "input": self.request.echo(),
            "core": self.core(),
            "placements": {k: v.as_dict() for k, v in self.placements.items()},
            "house_focus_top3": [e.as_dict() for e in self.house_focus],
            "inner_hard_aspects_top3": [m.as_dict() for m in self.inner_hard_aspects],
            "saturn_aspects_top": [m.as_dict() for m in self.saturn_aspects],
            "outer_hard_aspects_top3": [m.as_dict() for m in self.outer_hard_aspects],
            "nodes": {
                "north": self.placements[NORTH_NODE].as_dict(),
                "south": self.placements[SOUTH_NODE].as_dict(),
            },
            "debug": {
                "utc_iso": utc.isoformat().replace("+00:00", "Z"),
                "julian_date": self.julian_date,
                "gst_hours": self.gst_hours,
                "lst_deg": self.lst_deg,
                "obliquity_deg": self.obliquity_deg,
                "longitudes": dict(self.longitudes),
                "asc_lon": self.longitudes[ASC],
                "mc_lon": self.longitudes[MC],
                "north_node_lon": self.longitudes[NORTH_NODE],
                "warnings": list(self.warnings),
            },
        }


# ───────────────────────────── assembler ─────────────────────────────

def _finite(value: Any, what: str, **context: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise ProviderError(what, f"{what} returned a non-numeric value", value=repr(value), **context) from e
    if not math.isfinite(v):
        raise ProviderError(what, f"{what} returned a non-finite value", value=v, **context)
    return v


def _provider_call(what: str, fn: Callable[..., T], *args: Any, **context: Any) -> T:
    try:
        return fn(*args)
    except ChartError:
        raise
    except Exception as e:
        raise ProviderError(what, f"{what} failed: {e}", **context) from e


class ChartAssembler:
    def __init__(
        self,
        ephemeris: EphemerisProvider,
        sidereal: SiderealTimeProvider,
        config: Optional[EngineConfig] = None,
    ):
        self.ephemeris = ephemeris
        self.sidereal = sidereal
        self.config = config or EngineConfig()
        self.detector = AspectDetector(self.config.catalog)

    def assemble(self, request: Union[ChartRequest, Mapping[str, Any]]) -> ChartModel:
        stage = ChartStage.AWAITING_INPUTS

        def advance(nxt: ChartStage) -> ChartStage:
            log.debug("chart stage %s -> %s", stage.value, nxt.value)
            return nxt

        try:
            req = request.validate() if isinstance(request, ChartRequest) else parse_chart_request(request)
            cfg = self.config

            stage = advance(ChartStage.RESOLVING_TIME)
            instant = req.utc_instant.astimezone(timezone.utc)
            jd = julian_date(instant)
            gst_hours = _finite(
                _provider_call("sidereal", self.sidereal.greenwich_sidereal_time_hours, instant),
                "sidereal", instant=instant.isoformat(),
            )

            stage = advance(ChartStage.COMPUTING_AXES)
            lst = local_sidereal_deg(gst_hours, req.longitude)
            axes = solve_axes(lst, req.latitude, cfg.obliquity_deg)

            stage = advance(ChartStage.COMPUTING_BODIES)
            longitudes: Dict[str, float] = {}
            for body in CLASSICAL_BODIES:
                raw = _provider_call("ephemeris", self.ephemeris.ecliptic_longitude, body, instant, body=body)
                longitudes[body] = normalize360(_finite(raw, "ephemeris", body=body))

            stage = advance(ChartStage.COMPUTING_DERIVED)
            nodes = lunar_nodes(jd)
            longitudes[ASC] = axes.ascendant
            longitudes[MC] = axes.midheaven
            longitudes[NORTH_NODE] = nodes.north
            longitudes[SOUTH_NODE] = nodes.south

            placements = place_points(longitudes, axes.ascendant)
            focus = aggregate_house_focus(
                {b: placements[b].house for b in CLASSICAL_BODIES},
                cfg.weights, cfg.top_houses,
            )
            inner = self.detector.detect(longitudes, cfg.inner_pairs)
            saturn = self.detector.detect(longitudes, cfg.saturn_pairs)
            outer = self.detector.detect(longitudes, cfg.outer_pairs)

            model = ChartModel(
                request=req,
                placements=placements,
                house_focus=tuple(focus),
                inner_hard_aspects=tuple(top(inner, cfg.top_aspects, HARD_ASPECTS)),
                saturn_aspects=tuple(top(saturn, cfg.top_saturn_aspects)),
                outer_hard_aspects=tuple(top(outer, cfg.top_aspects, HARD_ASPECTS)),
                longitudes=longitudes,
                julian_date=jd,
                gst_hours=gst_hours,
                lst_deg=axes.lst_deg,
                obliquity_deg=cfg.obliquity_deg,
                warnings=req.warnings,
            )
            stage = advance(ChartStage.ASSEMBLED)
            return model
        except ChartError as e:
            e.with_stage(stage.value)
            log.warning("chart %s at %s: %s", ChartStage.FAILED.value, stage.value, e)
            raise
        except ArithmeticError as e:
            # overflow / zero division inside the geometry
            err = DomainError(stage.value, str(e) or type(e).__name__).with_stage(stage.value)
            log.warning("chart %s at %s: %s", ChartStage.FAILED.value, stage.value, err)
            raise err from e

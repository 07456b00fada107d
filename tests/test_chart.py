# tests/test_chart.py
from __future__ import annotations

import json
import math
from datetime import datetime, timezone

import pytest

from conftest import FakeEphemeris, FakeSidereal
from natal.core.chart import ChartAssembler, ChartStage, EngineConfig
from natal.core.errors import DomainError, InvalidInput, ProviderError
from natal.core.house_focus import WeightTable
from natal.core.requests import ChartRequest

J2000_REQUEST = {"utc_instant": "2000-01-01T12:00:00Z", "latitude": 0.0, "longitude": 0.0, "name": "Ada"}


def test_assembles_full_model(assembler) -> None:
    doc = assembler.assemble(J2000_REQUEST).to_dict()

    assert doc["input"]["name"] == "Ada"
    assert doc["core"]["asc"] == {"point": "ASC", "sign": "Cancer", "degree": 0.0, "house": 1}
    assert doc["core"]["mc"] == {"point": "MC", "sign": "Aries", "degree": 0.0, "house": 10}
    assert doc["core"]["sun"] == {"point": "Sun", "sign": "Aries", "degree": 10.0, "house": 10}
    assert doc["core"]["moon"]["house"] == 1
    assert doc["core"]["saturn"] == {"point": "Saturn", "sign": "Capricorn", "degree": 10.0, "house": 7}

    assert doc["debug"]["utc_iso"] == "2000-01-01T12:00:00Z"
    assert doc["debug"]["julian_date"] == 2451545.0
    assert math.isclose(doc["debug"]["asc_lon"], 90.0, abs_tol=1e-9)
    assert math.isclose(doc["debug"]["mc_lon"], 0.0, abs_tol=1e-9)
    assert math.isclose(doc["debug"]["north_node_lon"], 125.04452, abs_tol=1e-9)
    assert len(doc["placements"]) == 14

    json.dumps(doc)   # JSON-ready


def test_nodes_placed(assembler) -> None:
    doc = assembler.assemble(J2000_REQUEST).to_dict()
    assert doc["nodes"]["north"] == {"point": "NorthNode", "sign": "Leo", "degree": 5.04, "house": 2}
    assert doc["nodes"]["south"] == {"point": "SouthNode", "sign": "Aquarius", "degree": 5.04, "house": 8}


def test_house_focus_top3(assembler) -> None:
    doc = assembler.assemble(J2000_REQUEST).to_dict()
    assert doc["house_focus_top3"] == [
        {"house": 10, "total_weight": 15, "bodies": ["Sun", "Mercury"]},
        {"house": 4, "total_weight": 10, "bodies": ["Mars", "Pluto"]},
        {"house": 8, "total_weight": 10, "bodies": ["Uranus", "Neptune"]},
    ]


def test_aspect_categories(assembler) -> None:
    doc = assembler.assemble(J2000_REQUEST).to_dict()
    inner = [(a["a"], a["b"], a["type"], a["orb"]) for a in doc["inner_hard_aspects_top3"]]
    assert inner == [
        ("Sun", "Moon", "square", 0.0),
        ("Mercury", "Mars", "opposition", 2.0),
        ("Moon", "Mars", "square", 3.0),
    ]
    saturn = [(a["b"], a["type"]) for a in doc["saturn_aspects_top"]]
    assert saturn == [("Sun", "square"), ("Moon", "opposition"), ("Mars", "square")]
    outer = [(a["a"], a["b"], a["type"]) for a in doc["outer_hard_aspects_top3"]]
    # equal scores: square precedes opposition in catalog order
    assert outer == [("Pluto", "Moon", "square"), ("Pluto", "Sun", "opposition")]


def test_deterministic(assembler) -> None:
    a = assembler.assemble(J2000_REQUEST).to_dict()
    b = assembler.assemble(J2000_REQUEST).to_dict()
    assert a == b


def test_accepts_request_object(fake_ephemeris, fake_sidereal) -> None:
    req = ChartRequest(utc_instant=datetime(2000, 1, 1, 12, tzinfo=timezone.utc), latitude=0.0, longitude=0.0)
    model = ChartAssembler(fake_ephemeris, fake_sidereal).assemble(req)
    assert model.request is req
    assert [b for b, _ in fake_ephemeris.calls] == [
        "Sun", "Moon", "Mercury", "Venus", "Mars", "Jupiter", "Saturn", "Uranus", "Neptune", "Pluto",
    ]
    assert fake_sidereal.calls == [req.utc_instant]


def test_sidereal_and_longitude_combine_into_lst(fake_ephemeris) -> None:
    model = ChartAssembler(fake_ephemeris, FakeSidereal(hours=6.0)).assemble(
        {"utc_instant": "2000-01-01T12:00:00Z", "latitude": 0.0, "longitude": -90.0}
    )
    assert model.lst_deg == 0.0
    assert math.isclose(model.longitudes["ASC"], 90.0, abs_tol=1e-9)


def test_provider_longitudes_normalized() -> None:
    lons = {b: v + 720.0 for b, v in FakeEphemeris().longitudes.items()}
    lons["Sun"] = -350.0
    model = ChartAssembler(FakeEphemeris(lons), FakeSidereal()).assemble(J2000_REQUEST)
    assert model.longitudes["Sun"] == 10.0
    assert all(0.0 <= v < 360.0 for v in model.longitudes.values())


def test_engine_config_from_mapping() -> None:
    cfg = EngineConfig.from_mapping({
        "obliquity_deg": 23.44, "top_houses": 1, "top_aspects": 1,
        "weights": {"Venus": 20}, "default_weight": 1,
    })
    assert cfg.obliquity_deg == 23.44
    assert cfg.weights.weight("Venus") == 20
    assert cfg.weights.weight("Sun") == 1
    assert EngineConfig.from_mapping(None) == EngineConfig()
    with pytest.raises(ValueError):
        EngineConfig.from_mapping({"obliquity_deg": 95})


def test_config_drives_top_sizes(fake_ephemeris, fake_sidereal) -> None:
    cfg = EngineConfig(top_houses=1, top_aspects=1, top_saturn_aspects=2, weights=WeightTable({"Venus": 100}))
    doc = ChartAssembler(fake_ephemeris, fake_sidereal, cfg).assemble(J2000_REQUEST).to_dict()
    assert doc["house_focus_top3"] == [{"house": 12, "total_weight": 100, "bodies": ["Venus"]}]
    assert len(doc["inner_hard_aspects_top3"]) == 1
    assert len(doc["saturn_aspects_top"]) == 2


# ─────────────────────────────────────────────────────────────────────────────
# Failure paths: fail fast, stage recorded, no partial model
# ─────────────────────────────────────────────────────────────────────────────

def test_invalid_input_fails_before_providers(fake_ephemeris, fake_sidereal) -> None:
    asm = ChartAssembler(fake_ephemeris, fake_sidereal)
    with pytest.raises(InvalidInput) as ei:
        asm.assemble({"utc_instant": "2000-01-01T12:00:00Z", "city": "Atlantis"})
    assert ei.value.pipeline_stage == ChartStage.AWAITING_INPUTS.value
    assert fake_sidereal.calls == [] and fake_ephemeris.calls == []


def test_unrepresentable_instant_is_invalid_input(fake_ephemeris, fake_sidereal) -> None:
    asm = ChartAssembler(fake_ephemeris, fake_sidereal)
    with pytest.raises(InvalidInput) as ei:
        asm.assemble({"utc_instant": "0001-01-01T00:30:00+01:00", "latitude": 0.0, "longitude": 0.0})
    assert ei.value.http_status == 400
    assert ei.value.stage == "resolving_time"
    assert ei.value.pipeline_stage == ChartStage.AWAITING_INPUTS.value


def test_polar_latitude_is_domain_error(fake_ephemeris, fake_sidereal) -> None:
    asm = ChartAssembler(fake_ephemeris, fake_sidereal)
    with pytest.raises(DomainError) as ei:
        asm.assemble({"utc_instant": "2000-01-01T12:00:00Z", "latitude": 90.0, "longitude": 0.0})
    assert ei.value.pipeline_stage == "computing_axes"
    assert fake_ephemeris.calls == []


def test_sidereal_failure_wrapped(fake_ephemeris) -> None:
    asm = ChartAssembler(fake_ephemeris, FakeSidereal(error=OSError("clock offline")))
    with pytest.raises(ProviderError) as ei:
        asm.assemble(J2000_REQUEST)
    assert ei.value.pipeline_stage == "resolving_time"
    assert isinstance(ei.value.__cause__, OSError)


def test_ephemeris_failure_wrapped(fake_sidereal) -> None:
    eph = FakeEphemeris(fail={"Saturn": RuntimeError("kernel truncated")})
    with pytest.raises(ProviderError) as ei:
        ChartAssembler(eph, fake_sidereal).assemble(J2000_REQUEST)
    assert ei.value.pipeline_stage == "computing_bodies"
    assert ei.value.context["body"] == "Saturn"


@pytest.mark.parametrize("bad", [math.nan, math.inf, "north", None])
def test_non_finite_provider_values_rejected(bad, fake_sidereal) -> None:
    lons = dict(FakeEphemeris().longitudes, Moon=bad)
    with pytest.raises(ProviderError):
        ChartAssembler(FakeEphemeris(lons), fake_sidereal).assemble(J2000_REQUEST)


def test_provider_error_passes_through_unchanged(fake_sidereal) -> None:
    original = ProviderError("ephemeris", "kernel not found")
    eph = FakeEphemeris(fail={"Sun": original})
    with pytest.raises(ProviderError) as ei:
        ChartAssembler(eph, fake_sidereal).assemble(J2000_REQUEST)
    assert ei.value is original
    assert ei.value.stage == "ephemeris"
    assert ei.value.pipeline_stage == "computing_bodies"

# tests/test_ephemeris.py
from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

from natal.core.angles import angular_distance
from natal.core.chart import ChartAssembler
from natal.core.ephemeris import CLASSICAL_BODIES, EphemerisProvider, SkyfieldEphemeris
from natal.core.errors import ProviderError
from natal.core.sidereal import ErfaSiderealTime

J2000_UTC = datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)

_KERNEL = os.getenv("NATAL_EPHEMERIS") or os.path.join("data", "de421.bsp")
needs_kernel = pytest.mark.skipif(not os.path.isfile(_KERNEL), reason="JPL kernel not available")


def test_protocol_conformance() -> None:
    assert isinstance(SkyfieldEphemeris(), EphemerisProvider)


def test_unsupported_body() -> None:
    with pytest.raises(ProviderError) as ei:
        SkyfieldEphemeris().ecliptic_longitude("Ceres", J2000_UTC)
    assert ei.value.context["body"] == "Ceres"


def test_missing_kernel_without_download(tmp_path) -> None:
    eph = SkyfieldEphemeris(directory=str(tmp_path), download=False)
    with pytest.raises(ProviderError) as ei:
        eph.ecliptic_longitude("Sun", J2000_UTC)
    assert "kernel not found" in ei.value.message
    assert not eph.loaded


def test_lfs_pointer_rejected(tmp_path) -> None:
    p = tmp_path / "de421.bsp"
    p.write_bytes(b"version https://git-lfs.github.com/spec/v1\noid sha256:abc\nsize 1\n")
    with pytest.raises(ProviderError):
        SkyfieldEphemeris(path=str(p)).ecliptic_longitude("Sun", J2000_UTC)


def test_naive_instant_rejected() -> None:
    with pytest.raises(ProviderError):
        SkyfieldEphemeris().ecliptic_longitude("Sun", datetime(2000, 1, 1))


@pytest.mark.slow
@needs_kernel
def test_sun_and_moon_at_j2000() -> None:
    eph = SkyfieldEphemeris(path=_KERNEL)
    sun = eph.ecliptic_longitude("Sun", J2000_UTC)
    moon = eph.ecliptic_longitude("Moon", J2000_UTC)
    # apparent geocentric, ecliptic of date
    assert angular_distance(sun, 280.37) < 0.05
    assert 0.0 <= moon < 360.0
    assert eph.loaded


@pytest.mark.slow
@needs_kernel
def test_real_chart_end_to_end() -> None:
    asm = ChartAssembler(SkyfieldEphemeris(path=_KERNEL), ErfaSiderealTime())
    doc = asm.assemble({"birth_datetime": "1990-06-15T12:30", "city": "上海"}).to_dict()
    assert doc["core"]["sun"]["sign"] == "Gemini"
    assert set(doc["debug"]["longitudes"]) >= set(CLASSICAL_BODIES)

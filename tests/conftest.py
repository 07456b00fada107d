# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the natal chart suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass zones explicitly).
- Provides fake ephemeris / sidereal providers so engine and HTTP tests never
  need a JPL kernel on disk.
"""

import os
from datetime import datetime
from typing import Dict, List, Tuple

import pytest
from hypothesis import settings, HealthCheck


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,         # fast local runs
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=200,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Fake providers
# ──────────────────────────────────────────────────────────────────────────────

DEFAULT_LONGITUDES: Dict[str, float] = {
    "Sun": 10.0,
    "Moon": 100.0,       # Sun square Moon, exact
    "Mercury": 15.0,     # Sun conjunct Mercury, orb 5
    "Venus": 70.0,       # Sun sextile Venus, exact
    "Mars": 193.0,       # Sun opposite Mars, orb 3
    "Jupiter": 250.0,
    "Saturn": 280.0,     # Saturn square Sun (90), orb 0
    "Uranus": 312.0,
    "Neptune": 305.0,
    "Pluto": 190.0,      # Pluto opposite Sun and square Moon, both exact
}


class FakeEphemeris:
    def __init__(self, longitudes: Dict[str, float] | None = None, fail: Dict[str, BaseException] | None = None):
        self.longitudes = dict(DEFAULT_LONGITUDES if longitudes is None else longitudes)
        self.fail = dict(fail or {})
        self.calls: List[Tuple[str, datetime]] = []

    def ecliptic_longitude(self, body: str, instant: datetime) -> float:
        self.calls.append((body, instant))
        if body in self.fail:
            raise self.fail[body]
        return self.longitudes[body]


class FakeSidereal:
    def __init__(self, hours: float = 0.0, error: BaseException | None = None):
        self.hours = hours
        self.error = error
        self.calls: List[datetime] = []

    def greenwich_sidereal_time_hours(self, instant: datetime) -> float:
        self.calls.append(instant)
        if self.error is not None:
            raise self.error
        return self.hours


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """Process TZ is UTC so nothing depends on the runner's local zone."""
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture
def fake_ephemeris() -> FakeEphemeris:
    return FakeEphemeris()


@pytest.fixture
def fake_sidereal() -> FakeSidereal:
    return FakeSidereal(hours=0.0)


@pytest.fixture
def assembler(fake_ephemeris, fake_sidereal):
    from natal.core.chart import ChartAssembler
    return ChartAssembler(fake_ephemeris, fake_sidereal)


@pytest.fixture
def client(assembler, tmp_path):
    from natal.main import create_app
    app = create_app(config_path=str(tmp_path / "missing.yaml"), assembler=assembler)
    app.testing = True
    return app.test_client()

# natal/core/sidereal.py
from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable
import logging
import math

import erfa  # pyERFA

from natal.core.angles import normalize360
from natal.core.errors import ProviderError
from natal.core.timescales import DUT1_LIMIT_SECONDS, build_timescales, split_jd

__all__ = ["SiderealTimeProvider", "ErfaSiderealTime"]

log = logging.getLogger(__name__)


@runtime_checkable
class SiderealTimeProvider(Protocol):
    def greenwich_sidereal_time_hours(self, instant: datetime) -> float: ...


class ErfaSiderealTime:
    """Greenwich apparent sidereal time (IAU 2006/2000A, erfa.gst06a) in hours."""

    def __init__(self, dut1_seconds: float = 0.0):
        dut1 = float(dut1_seconds)
        if not math.isfinite(dut1) or abs(dut1) > DUT1_LIMIT_SECONDS:
            raise ValueError(f"sidereal.dut1_seconds out of range (|DUT1| <= {DUT1_LIMIT_SECONDS} s): {dut1}")
        self.dut1_seconds = dut1

    def greenwich_sidereal_time_hours(self, instant: datetime) -> float:
        ts = build_timescales(instant, self.dut1_seconds)
        for w in ts.warnings:
            log.debug("timescale warning for %s: %s", instant.isoformat(), w)
        d1u, d2u = split_jd(ts.jd_ut1)
        d1t, d2t = split_jd(ts.jd_tt)
        try:
            gst_rad = float(erfa.gst06a(d1u, d2u, d1t, d2t))
        except Exception as e:
            raise ProviderError("sidereal", "erfa.gst06a failed", error=str(e), jd_ut1=ts.jd_ut1) from e
        if not math.isfinite(gst_rad):
            raise ProviderError("sidereal", "non-finite sidereal time", jd_ut1=ts.jd_ut1)
        return normalize360(math.degrees(gst_rad)) / 15.0

    def __repr__(self) -> str:
        return f"ErfaSiderealTime(dut1_seconds={self.dut1_seconds})"

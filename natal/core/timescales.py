# natal/core/timescales.py
# -----------------------------------------------------------------------------
# Instant resolution + ERFA timescales for the chart engine
#
# Public API:
#   parse_utc_offset(value)                       -> hours (float)
#   parse_local_datetime(text)                    -> naive datetime
#   resolve_local_instant(local, utc_offset|tz)   -> (aware UTC datetime, warnings)
#   parse_utc_instant(text)                       -> aware UTC datetime
#   build_timescales(instant, dut1_seconds)       -> TimeScales
#
# Guarantees:
#   • ERFA chain UTC (calendar → JD) → TAI → TT (erfa.dtf2d → utctai → taitt),
#     UT1 via erfa.utcut1.
#   • DUT1 must be within ±0.9 s (IERS).
#   • Instants before 1960 are accepted; ERFA's "dubious year" warning is
#     recorded in TimeScales.warnings instead of being raised.
#   • Time zones via zoneinfo; DST-ambiguous local times resolve to fold=0 and
#     are flagged.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import math
import re
import warnings as _warnings

import erfa  # pyERFA

from natal.core.errors import InvalidInput

__all__ = [
    "TimeScales",
    "UTC_OFFSET_RANGE_HOURS",
    "parse_utc_offset",
    "parse_local_datetime",
    "parse_utc_instant",
    "resolve_local_instant",
    "build_timescales",
    "split_jd",
]

UTC_OFFSET_RANGE_HOURS: Tuple[float, float] = (-12.0, 14.0)
DUT1_LIMIT_SECONDS = 0.9

# ───────────────────────────── Dataclass ─────────────────────────────

@dataclass(frozen=True)
class TimeScales:
    jd_utc: float
    jd_tt: float
    jd_ut1: float
    dut1: float            # UT1 − UTC [s]
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["warnings"] = list(self.warnings)
        return d

# ───────────────────────────── Parsing helpers ─────────────────────────────

_OFFSET_RE = re.compile(r"^\s*(?P<sign>[+-])?(?P<h>\d{1,2})(?::?(?P<m>\d{2}))?\s*$")
_LOCAL_RE = re.compile(
    r"^\s*(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,6}))?)?\s*$"
)


def parse_utc_offset(value: Union[str, int, float]) -> float:
    """'+8', '-05:30', '+0530', 8, 5.5 → hours in [-12, +14]."""
    if isinstance(value, bool):
        raise InvalidInput("resolving_time", "utc_offset must be a number or ±HH[:MM]", utc_offset=value)
    if isinstance(value, (int, float)):
        hours = float(value)
    else:
        m = _OFFSET_RE.match(str(value or ""))
        if not m:
            raise InvalidInput("resolving_time", f"unparseable utc_offset '{value}'", utc_offset=value)
        minutes = int(m.group("m") or 0)
        if minutes >= 60:
            raise InvalidInput("resolving_time", f"utc_offset minutes out of range in '{value}'", utc_offset=value)
        hours = int(m.group("h")) + minutes / 60.0
        if m.group("sign") == "-":
            hours = -hours
    lo, hi = UTC_OFFSET_RANGE_HOURS
    if not math.isfinite(hours) or not (lo <= hours <= hi):
        raise InvalidInput("resolving_time", f"utc_offset must be within [{lo:+g}, {hi:+g}] hours",
                           utc_offset=value)
    return hours


def parse_local_datetime(text: str) -> datetime:
    """YYYY-MM-DDTHH:MM[:SS[.ffffff]] (space separator allowed) → naive datetime."""
    m = _LOCAL_RE.match(text or "")
    if not m:
        raise InvalidInput("resolving_time", f"invalid local datetime '{text}': expected YYYY-MM-DDTHH:MM[:SS]",
                           birth_datetime=text)
    y, mo, d, h, mi = (int(m.group(i)) for i in range(1, 6))
    s = int(m.group(6) or 0)
    us = int((m.group(7) or "").ljust(6, "0") or 0)
    try:
        return datetime(y, mo, d, h, mi, s, us)
    except ValueError as e:
        raise InvalidInput("resolving_time", f"invalid local datetime '{text}': {e}", birth_datetime=text) from e


def parse_utc_instant(text: str) -> datetime:
    """ISO-8601 instant with an explicit offset or trailing 'Z' → aware UTC datetime."""
    raw = (text or "").strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError as e:
        raise InvalidInput("resolving_time", f"unparseable instant '{text}'", utc_instant=text) from e
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise InvalidInput("resolving_time", "instant must carry a UTC offset or 'Z'", utc_instant=text)
    return _to_utc(dt, utc_instant=text)

# ───────────────────────────── Time zone / UTC helpers ─────────────────────────────

def _to_utc(dt: datetime, **context: Any) -> datetime:
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        raise InvalidInput("resolving_time", "instant out of representable range",
                           instant=dt.isoformat(), **context) from e


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput("resolving_time", f"unknown IANA time zone '{tz_name}'", tz=tz_name) from e


def resolve_local_instant(
    local: datetime,
    *,
    utc_offset: Optional[Union[str, int, float]] = None,
    tz_name: Optional[str] = None,
) -> Tuple[datetime, List[str]]:
    """
    Local civil time → aware UTC instant. A fixed utc_offset wins over tz_name.
    With an IANA zone, fold=0 is used and 'dst_ambiguous' is reported when the
    two folds disagree; non-existent (gap) local times are reported as 'dst_gap'.
    """
    warnings: List[str] = []
    naive = local.replace(tzinfo=None)
    if utc_offset is not None:
        hours = parse_utc_offset(utc_offset)
        aware = naive.replace(tzinfo=timezone(timedelta(minutes=round(hours * 60))))
        return _to_utc(aware, utc_offset=utc_offset), warnings
    if not tz_name:
        raise InvalidInput("resolving_time", "local time needs utc_offset or tz")

    z = _zone(tz_name)
    aware0 = naive.replace(tzinfo=z, fold=0)
    aware1 = naive.replace(tzinfo=z, fold=1)
    if aware0.utcoffset() != aware1.utcoffset():
        # round-tripping through UTC distinguishes a gap from an overlap
        back = _to_utc(aware0, tz=tz_name).astimezone(z).replace(tzinfo=None)
        warnings.append("dst_gap" if back != naive else "dst_ambiguous")
    return _to_utc(aware0, tz=tz_name), warnings

# ───────────────────────────── ERFA chain ─────────────────────────────

def split_jd(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd)
    return float(d1), float(jd - d1)


def _utc_to_jd_parts(instant: datetime) -> Tuple[float, float]:
    u = instant.astimezone(timezone.utc)
    sec = u.second + u.microsecond / 1e6
    utc1, utc2 = erfa.dtf2d("UTC", u.year, u.month, u.day, u.hour, u.minute, sec)
    return float(utc1), float(utc2)


def build_timescales(instant: datetime, dut1_seconds: float = 0.0) -> TimeScales:
    """UTC instant → JD(UTC), JD(TT), JD(UT1) via ERFA."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidInput("resolving_time", "instant must be timezone-aware", instant=instant.isoformat())
    if isinstance(dut1_seconds, bool) or not isinstance(dut1_seconds, (int, float)):
        raise InvalidInput("resolving_time", "dut1_seconds must be a number (float seconds)", dut1=dut1_seconds)
    if abs(dut1_seconds) > DUT1_LIMIT_SECONDS + 1e-12:
        raise InvalidInput("resolving_time", f"dut1_seconds out of range (|DUT1| ≤ {DUT1_LIMIT_SECONDS} s)",
                           dut1=dut1_seconds)

    with _warnings.catch_warnings(record=True) as caught:
        _warnings.simplefilter("always", erfa.ErfaWarning)
        utc1, utc2 = _utc_to_jd_parts(instant)
        tai1, tai2 = erfa.utctai(utc1, utc2)
        tt1, tt2 = erfa.taitt(tai1, tai2)
        ut11, ut12 = erfa.utcut1(utc1, utc2, float(dut1_seconds))

    notes = tuple(dict.fromkeys(
        f"erfa: {w.message}" for w in caught if issubclass(w.category, erfa.ErfaWarning)
    ))
    for w in caught:
        if not issubclass(w.category, erfa.ErfaWarning):
            _warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
    return TimeScales(
        jd_utc=math.fsum((utc1, utc2)),
        jd_tt=math.fsum((float(tt1), float(tt2))),
        jd_ut1=math.fsum((float(ut11), float(ut12))),
        dut1=float(dut1_seconds),
        warnings=notes,
    )

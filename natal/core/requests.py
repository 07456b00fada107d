# natal/core/requests.py
from __future__ import annotations

"""
Chart request model and payload parsing.

Accepted payload shapes (snake_case or camelCase keys):

    {"utc_instant": "1990-06-15T04:30:00Z", "latitude": 31.23, "longitude": 121.47}
    {"birth_datetime": "1990-06-15T12:30", "utc_offset": "+8", "city": "上海"}
    {"birthDateTime": "1990-06-15T12:30", "tz": "Asia/Shanghai", "latitude": .., "longitude": ..}
    {"birth_datetime": "1990-06-15T12:30", "city": "Beijing"}        # city's own zone

Explicit latitude/longitude win over the city's coordinates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple
import math

from natal.core.cities import City, find_city
from natal.core.errors import InvalidInput
from natal.core.timescales import (
    parse_local_datetime,
    parse_utc_instant,
    parse_utc_offset,
    resolve_local_instant,
)

__all__ = ["ChartRequest", "parse_chart_request"]

_STAGE = "awaiting_inputs"

_ALIASES: Dict[str, Tuple[str, ...]] = {
    "utc_instant": ("utc_instant", "utcInstant", "instant"),
    "birth_datetime": ("birth_datetime", "birthDateTime", "local_datetime"),
    "utc_offset": ("utc_offset", "utcOffset"),
    "tz": ("tz", "timezone"),
    "city": ("city",),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lon", "lng"),
    "display_name": ("display_name", "displayName", "name"),
}


@dataclass(frozen=True)
class ChartRequest:
    utc_instant: datetime
    latitude: float
    longitude: float
    display_name: str = ""
    city: Optional[str] = None
    local_datetime: Optional[str] = None
    utc_offset: Optional[float] = None
    tz: Optional[str] = None
    warnings: Tuple[str, ...] = field(default=())

    def validate(self) -> "ChartRequest":
        if not isinstance(self.utc_instant, datetime):
            raise InvalidInput(_STAGE, "utc_instant must be a datetime")
        if self.utc_instant.tzinfo is None or self.utc_instant.utcoffset() is None:
            raise InvalidInput(_STAGE, "utc_instant must be timezone-aware",
                               utc_instant=self.utc_instant.isoformat())
        _check_coord("latitude", self.latitude, 90.0)
        _check_coord("longitude", self.longitude, 180.0)
        return self

    def echo(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.display_name,
            "utc_instant": self.utc_instant.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.city:
            out["city"] = self.city
        if self.local_datetime:
            out["local_datetime"] = self.local_datetime
        if self.utc_offset is not None:
            out["utc_offset"] = self.utc_offset
        if self.tz:
            out["tz"] = self.tz
        return out


def _check_coord(name: str, value: Any, limit: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(_STAGE, f"{name} must be a number", **{name: value})
    if not math.isfinite(value) or not (-limit <= value <= limit):
        raise InvalidInput(_STAGE, f"{name} must be within [-{limit:g}, {limit:g}]", **{name: value})
    return float(value)


def _pick(payload: Mapping[str, Any], key: str) -> Any:
    for k in _ALIASES[key]:
        v = payload.get(k)
        if v is not None and v != "":
            return v
    return None


def _number(name: str, value: Any) -> float:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as e:
            raise InvalidInput(_STAGE, f"{name} must be a number", **{name: value}) from e
    return value


def parse_chart_request(payload: Mapping[str, Any]) -> ChartRequest:
    if not isinstance(payload, Mapping):
        raise InvalidInput(_STAGE, "request body must be a JSON object")

    city: Optional[City] = None
    city_name = _pick(payload, "city")
    if city_name is not None:
        city = find_city(str(city_name))

    lat = _pick(payload, "latitude")
    lon = _pick(payload, "longitude")
    if (lat is None) != (lon is None):
        raise InvalidInput(_STAGE, "latitude and longitude must be given together")
    if lat is None:
        if city is None:
            raise InvalidInput(_STAGE, "missing location: give city or latitude/longitude")
        lat, lon = city.latitude, city.longitude
    lat = _check_coord("latitude", _number("latitude", lat), 90.0)
    lon = _check_coord("longitude", _number("longitude", lon), 180.0)

    warnings: Tuple[str, ...] = ()
    local_text: Optional[str] = None
    offset_hours: Optional[float] = None
    tz_name: Optional[str] = None

    utc_raw = _pick(payload, "utc_instant")
    local_raw = _pick(payload, "birth_datetime")
    if utc_raw is not None:
        instant = parse_utc_instant(str(utc_raw))
    elif local_raw is not None:
        local_text = str(local_raw)
        local = parse_local_datetime(local_text)
        offset_raw = _pick(payload, "utc_offset")
        if offset_raw is not None:
            offset_hours = parse_utc_offset(offset_raw)
            instant, w = resolve_local_instant(local, utc_offset=offset_hours)
        else:
            tz_name = _pick(payload, "tz") or (city.tz if city else None)
            if not tz_name:
                raise InvalidInput(_STAGE, "local birth time needs utc_offset, tz or a known city",
                                   birth_datetime=local_text)
            instant, w = resolve_local_instant(local, tz_name=str(tz_name))
        warnings = tuple(w)
    else:
        raise InvalidInput(_STAGE, "missing instant: give utc_instant or birth_datetime")

    name = _pick(payload, "display_name")
    return ChartRequest(
        utc_instant=instant,
        latitude=lat,
        longitude=lon,
        display_name="" if name is None else str(name),
        city=city.name if city else None,
        local_datetime=local_text,
        utc_offset=offset_hours,
        tz=str(tz_name) if tz_name else None,
        warnings=warnings,
    ).validate()

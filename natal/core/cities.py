# natal/core/cities.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from natal.core.errors import InvalidInput

__all__ = ["City", "CITIES", "find_city", "list_cities"]


@dataclass(frozen=True)
class City:
    name: str
    latitude: float
    longitude: float
    tz: str = "Asia/Shanghai"
    aliases: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "tz": self.tz,
            "aliases": list(self.aliases),
        }


CITIES: Tuple[City, ...] = (
    City("上海", 31.2304, 121.4737, aliases=("Shanghai",)),
    City("北京", 39.9042, 116.4074, aliases=("Beijing", "Peking")),
    City("深圳", 22.5431, 114.0579, aliases=("Shenzhen",)),
    City("广州", 23.1291, 113.2644, aliases=("Guangzhou", "Canton")),
    City("杭州", 30.2741, 120.1551, aliases=("Hangzhou",)),
    City("成都", 30.5728, 104.0668, aliases=("Chengdu",)),
)

_INDEX: Dict[str, City] = {}
for _c in CITIES:
    for _key in (_c.name, *_c.aliases):
        _INDEX[_key.casefold()] = _c


def find_city(name: Optional[str]) -> City:
    key = (name or "").strip().casefold()
    city = _INDEX.get(key)
    if city is None:
        raise InvalidInput("awaiting_inputs", f"unsupported city '{name}'",
                           city=name, supported=",".join(c.name for c in CITIES))
    return city


def list_cities() -> List[Dict[str, Any]]:
    return [c.as_dict() for c in CITIES]

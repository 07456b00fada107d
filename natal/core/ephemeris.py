# natal/core/ephemeris.py
from __future__ import annotations

"""
Skyfield-backed ephemeris provider.

The JPL kernel (DE421 by default) and the Skyfield timescale are loaded lazily
on first use under a lock; after that the provider is read-only and safe to
share between request threads.

Longitudes are apparent geocentric positions in Skyfield's ecliptic-of-date frame
(`framelib.ecliptic_frame`), which is the frame the Ascendant/MC formulas use.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable
import logging
import math
import os
import threading

from skyfield.api import Loader, load, load_file
from skyfield.framelib import ecliptic_frame

from natal.core.angles import normalize360
from natal.core.errors import ProviderError

__all__ = [
    "BODY_KEYS",
    "CLASSICAL_BODIES",
    "EphemerisProvider",
    "SkyfieldEphemeris",
]

log = logging.getLogger(__name__)

BODY_KEYS: Dict[str, str] = {
    "Sun": "sun",
    "Moon": "moon",
    "Mercury": "mercury",
    "Venus": "venus",
    "Mars": "mars",
    "Jupiter": "jupiter barycenter",
    "Saturn": "saturn barycenter",
    "Uranus": "uranus barycenter",
    "Neptune": "neptune barycenter",
    "Pluto": "pluto barycenter",
}
CLASSICAL_BODIES: Tuple[str, ...] = tuple(BODY_KEYS)


@runtime_checkable
class EphemerisProvider(Protocol):
    def ecliptic_longitude(self, body: str, instant: datetime) -> float: ...


def _looks_like_lfs_pointer(path: str) -> bool:
    try:
        if os.path.getsize(path) <= 512:
            with open(path, "rb") as f:
                return f.read(64).startswith(b"version https://git-lfs.github.com/spec/v1")
    except OSError:
        pass
    return False


class SkyfieldEphemeris:
    def __init__(
        self,
        kernel: str = "de421.bsp",
        directory: Optional[str] = None,
        download: bool = False,
        path: Optional[str] = None,
    ):
        self.kernel = kernel
        self.directory = directory or os.path.join(os.getcwd(), "data")
        self.download = bool(download)
        self.path = path
        self._lock = threading.Lock()
        self._ts: Any = None
        self._eph: Any = None

    # ───────────────────────────── kernel I/O ─────────────────────────────
    def _kernel_path(self) -> str:
        return self.path or os.path.join(self.directory, self.kernel)

    def _load(self) -> Tuple[Any, Any]:
        if self._eph is not None:
            return self._ts, self._eph
        with self._lock:
            if self._eph is not None:
                return self._ts, self._eph
            path = self._kernel_path()
            try:
                if os.path.isfile(path):
                    if _looks_like_lfs_pointer(path):
                        raise ProviderError("ephemeris", f"kernel looks like a Git LFS pointer: {path}", path=path)
                    eph = load_file(path)
                elif self.download and not self.path:
                    log.info("Downloading ephemeris kernel %s into %s", self.kernel, self.directory)
                    eph = Loader(self.directory, verbose=False)(self.kernel)
                else:
                    raise ProviderError(
                        "ephemeris",
                        f"kernel not found: {path} (set NATAL_EPHEMERIS or enable NATAL_EPHEMERIS_DOWNLOAD)",
                        path=path,
                    )
                ts = load.timescale()
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderError("ephemeris", f"Skyfield failed to load kernel: {path}", error=str(e)) from e
            log.info("Ephemeris kernel loaded: %s", path)
            self._ts, self._eph = ts, eph
        return self._ts, self._eph

    @property
    def loaded(self) -> bool:
        return self._eph is not None

    # ───────────────────────────── positions ─────────────────────────────
    def ecliptic_longitude(self, body: str, instant: datetime) -> float:
        key = BODY_KEYS.get(body)
        if key is None:
            raise ProviderError("ephemeris", f"unsupported body '{body}'", body=body)
        if instant.tzinfo is None:
            raise ProviderError("ephemeris", "instant must be timezone-aware", body=body)
        ts, eph = self._load()
        try:
            t = ts.from_datetime(instant.astimezone(timezone.utc))
            astrometric = eph["earth"].at(t).observe(eph[key])
            _lat, lon, _dist = astrometric.apparent().frame_latlon(ecliptic_frame)
            lon_deg = float(lon.degrees)
        except Exception as e:
            raise ProviderError("ephemeris", f"Skyfield position failed for {body}",
                                body=body, instant=instant.isoformat(), error=str(e)) from e
        if not math.isfinite(lon_deg):
            raise ProviderError("ephemeris", f"non-finite longitude for {body}", body=body)
        return normalize360(lon_deg)

    def __repr__(self) -> str:
        return f"SkyfieldEphemeris(kernel={self._kernel_path()!r}, loaded={self.loaded})"

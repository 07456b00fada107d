# natal/utils/config.py
import copy
import logging
import os

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/defaults.yaml"

# Built-in values; the YAML file (if present) is merged over these.
DEFAULTS = {
    "engine": {
        "obliquity_deg": 23.4392911,
        "top_houses": 3,
        "top_aspects": 3,
        "top_saturn_aspects": 3,
        "weights": {"Sun": 10, "Moon": 9, "Saturn": 7},
        "default_weight": 5,
    },
    "ephemeris": {
        "kernel": "de421.bsp",
        "directory": "data",
        "path": None,
        "download": False,
    },
    "sidereal": {
        "dut1_seconds": 0.0,
    },
    "narrative": {
        "max_aspects": 6,
    },
}

_TRUTHY = {"1", "true", "yes", "on"}


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.engine and cfg['engine'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def _merge(base, extra):
    for k, v in (extra or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


def _env_float(name):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def load_config(path=None):
    """
    Load YAML config from `path` (default: $NATAL_CONFIG or config/defaults.yaml)
    merged over the built-in DEFAULTS. A missing file is not an error.
    Environment overrides:
      - NATAL_EPHEMERIS           explicit kernel file path
      - NATAL_EPHEMERIS_DIR       kernel directory
      - NATAL_EPHEMERIS_DOWNLOAD  allow Skyfield to download the kernel (1/true/yes/on)
      - NATAL_DUT1                UT1−UTC seconds
      - NATAL_OBLIQUITY           ecliptic obliquity in degrees
    Returns an AttrDict for convenient access.
    """
    data = copy.deepcopy(DEFAULTS)
    path = path or os.getenv("NATAL_CONFIG", DEFAULT_CONFIG_PATH)
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            _merge(data, yaml.safe_load(f) or {})
    else:
        log.info("Config file %s not found; using built-in defaults", path)

    eph = data["ephemeris"]
    if os.getenv("NATAL_EPHEMERIS"):
        eph["path"] = os.environ["NATAL_EPHEMERIS"]
    if os.getenv("NATAL_EPHEMERIS_DIR"):
        eph["directory"] = os.environ["NATAL_EPHEMERIS_DIR"]
    if os.getenv("NATAL_EPHEMERIS_DOWNLOAD") is not None:
        eph["download"] = os.environ["NATAL_EPHEMERIS_DOWNLOAD"].strip().lower() in _TRUTHY

    dut1 = _env_float("NATAL_DUT1")
    if dut1 is not None:
        data["sidereal"]["dut1_seconds"] = dut1
    obliq = _env_float("NATAL_OBLIQUITY")
    if obliq is not None:
        data["engine"]["obliquity_deg"] = obliq

    return _to_attr(data)

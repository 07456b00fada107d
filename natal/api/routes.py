# natal/api/routes.py
"""
Natal chart API routes
- POST /api/chart           full chart model
- POST /api/chart/compact   narrative hand-off payload (optional locale)
- GET  /api/cities          supported city catalog
- GET  /api/config/aspects  aspect catalog, pair policies, weights

Engine errors (ChartError subclasses) propagate to the app-level handler, which
maps them to 400 / 422 / 502 JSON bodies.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import BadRequest

from natal.core.chart import ChartAssembler
from natal.core.cities import list_cities
from natal.core.narrative import compact_chart
from natal.utils.metrics import MET_CHARTS
from natal.version import VERSION

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)

ASSEMBLER_KEY = "natal.assembler"


# ───────────────────────── helpers ─────────────────────────
def _assembler() -> ChartAssembler:
    return current_app.extensions[ASSEMBLER_KEY]


def _body_json() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def _chart_document(body: Dict[str, Any]) -> Dict[str, Any]:
    model = _assembler().assemble(body)
    return model.to_dict()


# ───────────────────────── routes ─────────────────────────
@api.post("/api/chart")
def chart():
    doc = _chart_document(_body_json())
    MET_CHARTS.labels(route="/api/chart").inc()
    chart_id = str(uuid.uuid4())
    log.info("chart %s assembled for %s", chart_id, doc["debug"]["utc_iso"])
    return jsonify({"ok": True, "id": chart_id, "chart": doc}), 200


@api.post("/api/chart/compact")
def chart_compact():
    body = _body_json()
    locale = body.get("locale")
    cfg = getattr(current_app, "cfg", None) or {}
    raw = body.get("max_aspects")
    if raw is None:
        raw = (cfg.get("narrative") or {}).get("max_aspects", 6)
    try:
        max_aspects = int(raw)
    except (TypeError, ValueError):
        raise BadRequest("max_aspects must be an integer")
    doc = _chart_document(body)
    MET_CHARTS.labels(route="/api/chart/compact").inc()
    return jsonify({"ok": True, "compact": compact_chart(doc, max_aspects=max_aspects, locale=locale)}), 200


@api.get("/api/cities")
def cities():
    return jsonify({"ok": True, "cities": list_cities()}), 200


@api.get("/api/config/aspects")
def aspects_config():
    cfg = _assembler().config
    return jsonify({
        "ok": True,
        "version": VERSION,
        "obliquity_deg": cfg.obliquity_deg,
        "catalog": [
            {"name": a.name, "code": a.code, "exact_deg": a.exact_deg, "tolerance_deg": a.tolerance_deg}
            for a in cfg.catalog
        ],
        "pairs": {
            "inner": [list(p) for p in cfg.inner_pairs],
            "saturn": [list(p) for p in cfg.saturn_pairs],
            "outer": [list(p) for p in cfg.outer_pairs],
        },
        "weights": {"table": dict(cfg.weights.weights), "default": cfg.weights.default},
        "top": {"houses": cfg.top_houses, "aspects": cfg.top_aspects, "saturn_aspects": cfg.top_saturn_aspects},
    }), 200

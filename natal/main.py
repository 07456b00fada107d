# natal/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from natal.api.routes import ASSEMBLER_KEY, api
from natal.core.chart import ChartAssembler, EngineConfig
from natal.core.ephemeris import SkyfieldEphemeris
from natal.core.errors import ChartError
from natal.core.sidereal import ErfaSiderealTime
from natal.utils.config import load_config
from natal.utils.metrics import GAUGE_APP_UP, MET_CHART_FAILURES, MET_REQUESTS, REQ_LATENCY, seed
from natal.version import VERSION

_METERED_EXACT = ("/", "/health", "/healthz", "/metrics")


# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
        logging.getLogger("natal").handlers = gerr.handlers
        logging.getLogger("natal").setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))


def _register_errors(app: Flask) -> None:
    @app.errorhandler(ChartError)
    def _chart(e: ChartError):
        stage = e.pipeline_stage or e.stage or "unknown"
        MET_CHART_FAILURES.labels(stage=stage, kind=e.code).inc()
        app.logger.warning("CHART %s at %s %s [%s]: %s", e.code, request.method, request.path, stage, e.message)
        return jsonify(ok=False, path=request.path, **e.as_dict()), e.http_status

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500


# ───────────────────────── health & metrics ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="natal-chart", version=VERSION, health="/health"), 200

    @app.route("/api/health-check", methods=["GET"])
    def api_health():
        return jsonify(ok=True), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok", version=VERSION), 200

    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)


def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )


def _metered(path: str) -> bool:
    return path.startswith("/api/") or path in _METERED_EXACT


# ───────────────────────── engine wiring ─────────────────────────
def build_assembler(cfg: Any) -> ChartAssembler:
    eph_cfg = cfg.get("ephemeris") or {}
    ephemeris = SkyfieldEphemeris(
        kernel=eph_cfg.get("kernel") or "de421.bsp",
        directory=eph_cfg.get("directory"),
        download=bool(eph_cfg.get("download", False)),
        path=eph_cfg.get("path"),
    )
    sidereal = ErfaSiderealTime(dut1_seconds=float((cfg.get("sidereal") or {}).get("dut1_seconds", 0.0)))
    return ChartAssembler(ephemeris, sidereal, EngineConfig.from_mapping(cfg.get("engine")))


# ───────────────────────── app factory ─────────────────────────
def create_app(config_path: Optional[str] = None, assembler: Optional[ChartAssembler] = None) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    app.cfg = load_config(config_path)  # type: ignore[attr-defined]
    app.extensions[ASSEMBLER_KEY] = assembler or build_assembler(app.cfg)  # type: ignore[attr-defined]

    seed()

    @app.before_request
    def _before():
        p = request.path or ""
        if _metered(p):
            MET_REQUESTS.labels(route=p).inc()
            request._t0 = perf_counter()  # type: ignore[attr-defined]

    @app.after_request
    def _after(resp):
        p = request.path or ""
        t0 = getattr(request, "_t0", None)
        if t0 is not None and _metered(p) and p != "/metrics":
            REQ_LATENCY.labels(route=p).observe(perf_counter() - t0)
        return resp

    _register_health(app)
    _register_errors(app)
    app.register_blueprint(api)

    # CORS for browser UIs
    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.logger.info(
        "App initialized; version=%s; ephemeris=%r; obliquity=%s",
        VERSION, getattr(app.extensions[ASSEMBLER_KEY], "ephemeris", None),
        app.extensions[ASSEMBLER_KEY].config.obliquity_deg,
    )
    return app


# ───────────────────────── app instance ─────────────────────────
app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))

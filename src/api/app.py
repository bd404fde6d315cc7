"""Flask API for tracking, results and request-time assignment."""
import logging
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(ROOT))

from flask import Flask, jsonify, request

from src.abtesting.analyze import run_analysis
from src.abtesting.config import AppConfig, build_event_store
from src.abtesting.event_store import EventStore
from src.abtesting.identity import (
    IDENTITY_COOKIE,
    IDENTITY_HEADER,
    IDENTITY_MAX_AGE,
    IDENTITY_PATH,
)
from src.abtesting.registry import ExperimentRegistry
from src.abtesting.resolver import resolve_assignment
from src.abtesting.tracking import STORE_FAILURE, track

logger = logging.getLogger(__name__)


def create_app(
    registry: Optional[ExperimentRegistry] = None,
    store: Optional[EventStore] = None,
    config: Optional[AppConfig] = None,
) -> Flask:
    """Build the API around a registry and an event store (from config if omitted)."""
    config = config or AppConfig.from_env()
    if registry is None:
        registry = ExperimentRegistry.from_file(config.experiments_path)
    if store is None:
        store = build_event_store(config)

    app = Flask(__name__)
    app.config["AB_REGISTRY"] = registry
    app.config["AB_STORE"] = store

    @app.route("/ping", methods=["GET"])
    def ping():
        return "pong"

    @app.route("/track", methods=["POST"])
    @app.route("/api/ab", methods=["POST"])
    def track_event():
        # sendBeacon posts JSON as text/plain
        data = request.get_json(force=True, silent=True)
        if data is None:
            return jsonify({"error": "Invalid JSON"}), 400
        ok, error = track(store, data)
        if ok:
            return jsonify({"ok": True})
        status = 503 if error == STORE_FAILURE else 400
        return jsonify({"error": error}), status

    @app.route("/results", methods=["GET"])
    @app.route("/api/ab", methods=["GET"])
    def all_results():
        reports = run_analysis(store, registry)
        return jsonify({r.experiment_id: r.to_dict() for r in reports})

    @app.route("/results/<path:experiment_id>", methods=["GET"])
    def experiment_results(experiment_id):
        reports = run_analysis(store, registry, experiment_id=experiment_id)
        if not reports:
            return jsonify({})
        return jsonify(reports[0].to_dict())

    @app.route("/tests", methods=["GET"])
    def list_tests():
        return jsonify([exp.to_dict() for exp in registry.experiments])

    @app.route("/resolve", methods=["GET"])
    def resolve():
        target = request.args.get("target", "")
        if not target:
            return jsonify({"error": "Missing target"}), 400
        existing = request.cookies.get(IDENTITY_COOKIE) or request.headers.get(IDENTITY_HEADER)
        resolution = resolve_assignment(registry, target, existing)

        response = jsonify(resolution.to_dict())
        response.headers[IDENTITY_HEADER] = resolution.identity
        if resolution.is_new_identity:
            response.set_cookie(
                IDENTITY_COOKIE, resolution.identity,
                max_age=IDENTITY_MAX_AGE, path=IDENTITY_PATH,
            )
        return response

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(host="0.0.0.0", port=5000)

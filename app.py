# app.py
from __future__ import annotations

import os

import click
from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from config import config_from_env
from fleet import FleetError, fleet
from realtime import socketio, on_fleet_event as _emit_fleet_event

# Blueprints
from routes.auth import auth_bp
from routes.buses import buses_bp
from routes.transit import transit_bp
from routes.admin import admin_bp

from services import simulator


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)

    # Respect reverse proxy headers (scheme / host) for correct URL generation
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[arg-type]

    # Load config + init extensions
    app.config.from_object(config_object or config_from_env())
    origins = app.config["CORS_ORIGINS"]
    CORS(app, resources={r"/api/*": {"origins": origins}}, supports_credentials=(origins != "*"))
    socketio.init_app(app, cors_allowed_origins=origins)

    fleet.init_app(app)
    fleet.subscribe(_emit_fleet_event)

    # ───────────────────────────────────────────────────────────────
    # ESP MQTT INGEST (optional). Set ESP_MQTT_INGEST=1 to enable.
    # ───────────────────────────────────────────────────────────────
    if app.config.get("ESP_MQTT_INGEST"):
        import esp_ingest
        fleet.subscribe(esp_ingest.on_fleet_event)
        try:
            esp_ingest.start_in_background(app.config)
            app.logger.info("[app] ESP ingest started in background")
        except Exception:
            app.logger.exception("[app] Failed to start ESP ingest")

    if app.config.get("SIMULATION_ENABLED"):
        if simulator.start_in_background(app, fleet, socketio):
            app.logger.info("[app] simulator running every %ss", app.config["SIMULATION_INTERVAL_SEC"])

    # Health check
    @app.route("/")
    def health_check():
        return jsonify(status="ok"), 200

    # ── errors: always {"message": ...} ─────────────────────────────
    @app.errorhandler(ValidationError)
    def handle_validation(e: ValidationError):
        return jsonify(
            message="Invalid input",
            errors=e.errors(include_url=False, include_context=False),
        ), 400

    @app.errorhandler(FleetError)
    def handle_fleet_error(e: FleetError):
        return jsonify(message=e.message), e.status_code

    @app.errorhandler(404)
    def handle_404(e):
        return jsonify(message="Not Found", path=request.path), 404

    @app.errorhandler(Exception)
    def handle_any_error(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify(message=e.description), e.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(message="Internal server error"), 500

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(buses_bp)
    app.register_blueprint(transit_bp)
    app.register_blueprint(admin_bp)

    # CLI: drive the simulator by hand
    @app.cli.command("simulate-step")
    @click.option("--ticks", default=1, show_default=True, help="Number of ticks to run.")
    def simulate_step_cmd(ticks: int):
        buses = []
        for _ in range(max(1, ticks)):
            buses = fleet.simulate_movement()
        for b in buses:
            print(f"{b.bus_number:15s} {b.status.value:11s} ({b.lat:.5f}, {b.lng:.5f}) "
                  f"pax={b.passenger_count:2d} next={b.next_stop} eta={b.eta}")

    @app.cli.command("fleet-status")
    def fleet_status_cmd():
        for key, value in fleet.fleet_summary().items():
            print(f"{key:16s} {value}")

    return app


# Optional local entrypoint (useful for quick dev runs)
if __name__ == "__main__":
    app = create_app()
    socketio.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "5000")),
        allow_unsafe_werkzeug=True,  # dev convenience
        debug=bool(os.environ.get("FLASK_DEBUG", "")),
    )

import logging
import os
import uuid

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.docvault.config import load_config, production_config_errors
from app.docvault.db import check_schema_health, init_db, teardown_db_session
from app.docvault.routes import bp as routes_bp
from app.docvault.store import NotFound
from app.docvault.modules.projects.api import bp as projects_api_bp
from app.docvault.modules.documents.api import bp as documents_api_bp
from app.docvault.modules.versions.api import bp as versions_api_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False  # keep field order of the *_json serializers

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    problems = production_config_errors(app.config)
    if problems:
        for p in problems:
            app.logger.error("CONFIG ERROR: %s", p)
        raise RuntimeError("Refusing to start in production: " + " ".join(problems))

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(projects_api_bp, url_prefix="/api")
    app.register_blueprint(documents_api_bp, url_prefix="/api")
    app.register_blueprint(versions_api_bp, url_prefix="/api")

    @app.before_request
    def _assign_request_id():
        # Per-request id for audit/log correlation; honour an upstream proxy's id.
        g.request_id = (request.headers.get("X-Request-ID") or "").strip()[:64] or uuid.uuid4().hex

    @app.after_request
    def _echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): checked on the first API request, re-checked until it passes.
    app.config.setdefault("_schema_health_ok", False)
    app.config.setdefault("_schema_health_missing", [])
    app.config.setdefault("_schema_health_logged", False)

    @app.before_request
    def _schema_health_guardrail():
        if app.config.get("_schema_health_ok") or not request.path.startswith("/api"):
            return None
        if check_schema_health(app):
            return None
        return jsonify(
            {
                "message": "Database schema out of date; run `alembic upgrade head`.",
                "missing": app.config.get("_schema_health_missing") or [],
            }
        ), 503

    @app.errorhandler(NotFound)
    def _err_not_found(e: NotFound):
        return jsonify({"message": f"{e.kind} not found"}), 404

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        if e.code == 413:
            return jsonify({"message": "Request body too large."}), 413
        return jsonify({"message": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"message": "Internal server error", "request_id": getattr(g, "request_id", None)}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app

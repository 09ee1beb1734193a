"""
Application Factory for playerlink

Implements the Flask application factory pattern with:
- Blueprint registration
- Security configuration (TLS, rate limiting, logging)
- Profile store and ledger client construction
- Error handling for the provisioning error taxonomy
"""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, jsonify

from playerlink.audit_logger import get_audit_logger, init_audit_logger
from playerlink.config import get_config, validate_config
from playerlink.database import get_database_url, init_database, remove_session
from playerlink.db_storage import SqlProfileStore
from playerlink.errors import ProvisioningError
from playerlink.security import init_security
from playerlink.services import Services, build_services

logger = logging.getLogger(__name__)

EXTENSION_KEY = "playerlink"


def create_app(config_override: Optional[Mapping[str, Any]] = None, services: Optional[Services] = None) -> Flask:
    """
    Create and configure the Flask application using the factory pattern.

    Args:
        config_override: Configuration values layered over the environment
        services: Pre-built service graph (tests inject fakes here)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    cfg = {**get_config(), **(config_override or {})}
    validate_config(cfg)
    app.config["APP_CONFIG"] = cfg
    app.secret_key = cfg.get("FLASK_SECRET_KEY")

    init_security(app, cfg)
    init_audit_logger()

    if services is None:
        try:
            init_database(get_database_url(cfg))
            services = build_services(cfg, SqlProfileStore())
            logger.info("Profile store and ledger client initialized")
        except Exception as e:
            logger.error(f"Infrastructure initialization failed: {e}")
            raise

    app.extensions[EXTENSION_KEY] = services
    settings = services.ledger.settings
    get_audit_logger().log_event(
        "service_started",
        cluster=settings.cluster,
        program_id=str(settings.program_id),
        server=str(settings.server_pubkey),
    )

    register_blueprints(app)
    register_error_handlers(app)
    register_request_handlers(app)

    logger.info("Application factory completed successfully")
    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""

    # Player provisioning (web2, web3, client signing)
    from playerlink.blueprints.players import players_bp
    app.register_blueprint(players_bp, url_prefix="/api/players")

    # Program config bootstrap (admin)
    from playerlink.blueprints.program_config import config_bp
    app.register_blueprint(config_bp, url_prefix="/api/config")

    # Prometheus metrics
    from playerlink.blueprints.metrics import metrics_bp
    app.register_blueprint(metrics_bp)

    logger.info("All blueprints registered")


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""

    @app.errorhandler(ProvisioningError)
    def provisioning_error(e: ProvisioningError):
        if e.status_code >= 500:
            logger.error(f"{e.code}: {e.message} ({e.details})")
        else:
            logger.info(f"{e.code}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"success": False, "error": "bad_request", "message": str(e)}), 400

    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"success": False, "error": "unauthorized", "message": "Authentication required"}), 401

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "method_not_allowed", "message": str(e)}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return jsonify({"success": False, "error": "rate_limit_exceeded", "message": str(e)}), 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"success": False, "error": "internal_error", "message": "An unexpected error occurred"}), 500


def register_request_handlers(app: Flask) -> None:
    """Register before/after request handlers."""

    @app.teardown_appcontext
    def cleanup(error=None):
        """Release the database session after each request."""
        if error:
            logger.error(f"Request cleanup with error: {error}")
        remove_session()

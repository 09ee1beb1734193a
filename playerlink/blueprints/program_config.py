"""
Program Config Blueprint - one-time creation of the program config account.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from playerlink.security import limiter, require_admin_token

logger = logging.getLogger(__name__)

config_bp = Blueprint("program_config", __name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"


@config_bp.route("/initialize", methods=["POST"])
@limiter.limit("5 per minute")
def initialize_config():
    """Create the config account unless it already exists."""
    require_admin_token(request.headers.get(ADMIN_TOKEN_HEADER), current_app.config["APP_CONFIG"])
    status = current_app.extensions["playerlink"].bootstrap.ensure_config()
    return jsonify(status.to_response()), 200


@config_bp.route("/initialize", methods=["GET"])
def config_status():
    """Read-only lookup of the config account."""
    bootstrap = current_app.extensions["playerlink"].bootstrap
    address = bootstrap.config_address()
    exists = bootstrap.exists()
    return jsonify({
        "success": True,
        "configAddress": str(address),
        "exists": exists,
        "info": "Config account is initialized" if exists else "POST to this endpoint to initialize the config account",
    }), 200

"""
Players Blueprint - Player Account Provisioning

Creates ledger-side player accounts for authenticated profiles, prepares
client-signed transactions for wallet owners, and reports provisioning state.
"""

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from playerlink.identity import Identity
from playerlink.provisioning import Mode
from playerlink.security import limiter

logger = logging.getLogger(__name__)

players_bp = Blueprint("players", __name__)

# Rate limiting decorators
PROVISION_RATE_LIMIT = "10 per minute"
PREPARE_RATE_LIMIT = "20 per minute"

# Never returned to the client after provisioning
PRIVATE_PROFILE_FIELDS = ("session_private_key",)


def _services():
    return current_app.extensions["playerlink"]


def _body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _identity() -> Identity:
    return _services().identity.resolve(request.headers.get("Authorization"))


def _provision(mode: Mode):
    identity = _identity()
    data = _body()
    result = _services().orchestrator.provision(
        identity,
        name=data.get("name"),
        character_class=data.get("characterClass"),
        mode=mode,
    )
    return jsonify(result.to_response()), 200


@players_bp.route("/initialize-web2", methods=["POST"])
@limiter.limit(PROVISION_RATE_LIMIT)
def initialize_web2():
    """
    Provision the player account for a server-custodied identity.

    Body (optional): {"name": str, "characterClass": 0-3}
    """
    return _provision(Mode.WEB2)


@players_bp.route("/initialize-web3", methods=["POST"])
@limiter.limit(PROVISION_RATE_LIMIT)
def initialize_web3():
    """
    Provision the player account for the caller's linked wallet.

    Body: {"name": str, "characterClass": 0-2}
    """
    return _provision(Mode.WEB3)


@players_bp.route("/initialize-web3-direct", methods=["POST"])
@limiter.limit(PREPARE_RATE_LIMIT)
def initialize_web3_direct():
    """Build a server co-signed transaction for the wallet owner to sign and submit."""
    data = _body()
    prepared = _services().preparer.prepare(
        data.get("walletAddress"),
        data.get("name"),
        data.get("characterClass"),
    )
    return jsonify(prepared.to_response()), 200


@players_bp.route("/confirm-web3", methods=["POST"])
@limiter.limit(PROVISION_RATE_LIMIT)
def confirm_web3():
    """Link a client-submitted player account once its transaction is confirmed."""
    data = _body()
    result = _services().preparer.confirm(data.get("walletAddress"), data.get("signature"))
    return jsonify(result.to_response()), 200


@players_bp.route("/me", methods=["GET"])
def me():
    identity = _identity()
    profile = {key: value for key, value in identity.profile.items() if key not in PRIVATE_PROFILE_FIELDS}
    intents = _services().store.list_intents(identity.user_id)
    return jsonify({
        "success": True,
        "profile": profile,
        "provisioned": bool(profile.get("player_pda")),
        "latestIntent": intents[0] if intents else None,
    }), 200


@players_bp.route("/intents", methods=["GET"])
def intents():
    identity = _identity()
    return jsonify({"success": True, "intents": _services().store.list_intents(identity.user_id)}), 200

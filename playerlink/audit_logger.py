"""
Audit logging for playerlink.

Records every state-changing provisioning event on the ``audit`` logger so an
operator can reconstruct what happened on the ledger and in the profile store.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

_logger = logging.getLogger("audit")
_audit_logger = None  # Will be initialized by init_audit_logger


def init_audit_logger():
    """Initialize the audit logger."""
    global _audit_logger

    _logger.setLevel(logging.INFO)

    # Add console handler if not already present
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - AUDIT - %(levelname)s - %(message)s"))
        _logger.addHandler(handler)

    _audit_logger = AuditLogger()
    _logger.info("Audit logger initialized")


def get_audit_logger():
    """Get the audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        init_audit_logger()
    return _audit_logger


class AuditLogger:
    """Audit logging interface for provisioning events."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _logger

    def log_event(self, event: str, **details: Any) -> None:
        """Generic structured audit event."""

        payload = {"event": event, **details, "timestamp": datetime.now(timezone.utc).isoformat()}
        self.logger.info(json.dumps(payload, default=str))

    def log_provisioning(self, user_id: str, mode: str, outcome: str, player_pda: Optional[str] = None):
        """Log the outcome of a provisioning request."""
        self.logger.info(f"PROVISION | user={user_id} | mode={mode} | outcome={outcome} | pda={player_pda}")

    def log_ledger_call(self, method: str, success: bool, error: Optional[str] = None, kind: Optional[str] = None):
        """Log a ledger RPC call."""
        status = "SUCCESS" if success else "FAILURE"
        msg = f"LEDGER_CALL | method={method} | status={status}"
        if kind:
            msg += f" | fault={kind}"
        if error:
            msg += f" | error={error}"
        self.logger.info(msg)

    def log_recovery(self, user_id: str, player_pda: str, created_token_account: bool):
        """Log a completed reconciliation."""
        self.logger.info(
            f"RECOVERY | user={user_id} | pda={player_pda} | token_account_created={created_token_account}"
        )

    def log_inconsistency(self, user_id: str, player_pda: str, tx_signature: Optional[str], error: str):
        """Log a ledger write that the profile store never caught up with."""
        self.logger.error(
            f"INCONSISTENCY | user={user_id} | pda={player_pda} | tx={tx_signature} | error={error}"
        )

    def log_client_signing(self, wallet_address: str, player_pda: str):
        """Log a transaction handed out for client signing."""
        self.logger.info(f"CLIENT_SIGNING | wallet={wallet_address[:8]}... | pda={player_pda}")

    def log_config_bootstrap(self, config_address: str, already_exists: bool, tx_signature: Optional[str] = None):
        """Log a config bootstrap attempt."""
        self.logger.info(
            f"CONFIG_BOOTSTRAP | address={config_address} | already_exists={already_exists} | tx={tx_signature}"
        )

    def log_auth_failure(self, reason: str, ip_address: Optional[str] = None):
        """Log a rejected credential."""
        self.logger.warning(f"AUTH_FAILURE | reason={reason} | ip={ip_address}")

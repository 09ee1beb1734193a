"""One-time creation of the program configuration account."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from playerlink.addresses import derive_config
from playerlink.audit_logger import get_audit_logger
from playerlink.instructions import initialize_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigStatus:
    address: str
    already_exists: bool
    tx_ref: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        if self.already_exists:
            return {
                "success": True,
                "message": "Config already initialized",
                "configAddress": self.address,
                "alreadyExists": True,
            }
        return {
            "success": True,
            "message": "Config initialized successfully",
            "transaction": self.tx_ref,
            "configAddress": self.address,
            "alreadyExists": False,
        }


class ConfigBootstrapGuard:
    """
    Check-then-act creation of the singleton config account.

    Two concurrent calls can both pass the existence check; the ledger rejects
    the second creation. Only administrators invoke this.
    """

    def __init__(self, ledger):
        self.ledger = ledger
        self._audit = get_audit_logger()

    def config_address(self):
        return derive_config(self.ledger.settings.program_id)

    def exists(self) -> bool:
        return self.ledger.account_exists(self.config_address())

    def ensure_config(self) -> ConfigStatus:
        address = self.config_address()
        if self.ledger.account_exists(address):
            logger.info(f"Config already exists at {address}")
            self._audit.log_config_bootstrap(str(address), already_exists=True)
            return ConfigStatus(address=str(address), already_exists=True)

        signature = self.ledger.submit(
            [initialize_config(self.ledger.settings.program_id, address, self.ledger.server_pubkey)]
        )
        logger.info(f"Config initialized at {address}: {signature}")
        self._audit.log_config_bootstrap(str(address), already_exists=False, tx_signature=signature)
        return ConfigStatus(address=str(address), already_exists=False, tx_ref=signature)

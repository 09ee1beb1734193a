"""
Player account provisioning.

Validates a request, derives the player and cOBX addresses, submits one
transaction that creates both accounts, and links the result to the profile.
A collision on a web2 identity is handed to the recovery reconciler; every
other fault is reported without retry.
"""

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from solders.pubkey import Pubkey

from playerlink import metrics
from playerlink.addresses import PlayerAddresses, derive_config, player_addresses, web2_seed
from playerlink.audit_logger import get_audit_logger
from playerlink.errors import (
    ConflictError,
    FaultKind,
    InconsistencyError,
    LedgerFault,
    StoreError,
    ValidationError,
)
from playerlink.identity import Identity
from playerlink.instructions import initialize_web2_player, initialize_web3_player
from playerlink.models import IntentState

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
DEFAULT_PLAYER_NAME = "New Player"
DEFAULT_CHARACTER_CLASS = 0
FUNDING_MESSAGE = "Server wallet has insufficient funds. Please contact support."


class Mode(str, Enum):
    WEB2 = "web2"
    WEB3 = "web3"


CLASS_RANGES = {
    Mode.WEB2: range(0, 4),
    Mode.WEB3: range(0, 3),
}
CLASS_ERRORS = {
    Mode.WEB2: "Invalid character class. Must be 0-3",
    Mode.WEB3: "Invalid character class. Must be 0 (Warrior), 1 (Mage), or 2 (Ranger)",
}


@dataclass(frozen=True)
class ProvisionResult:
    player_address: str
    cobx_account: str
    tx_ref: Optional[str] = None
    recovered: bool = False
    message: str = "Player account created successfully"

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": True,
            "playerPda": self.player_address,
            "playerCobxAccount": self.cobx_account,
            "message": self.message,
        }
        if self.tx_ref:
            body["transaction"] = self.tx_ref
        if self.recovered:
            body["recovered"] = True
        return body


def validate_name(name: Any, required: bool) -> Optional[str]:
    if name is None or name == "":
        if required:
            raise ValidationError("Missing required parameter: name")
        return None
    if not isinstance(name, str):
        raise ValidationError("Name must be a string")
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    return name


def validate_class(value: Any, mode: Mode, required: bool) -> Optional[int]:
    if value is None:
        if required:
            raise ValidationError("Missing required parameter: characterClass")
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("characterClass must be an integer")
    if value not in CLASS_RANGES[mode]:
        raise ValidationError(CLASS_ERRORS[mode])
    return value


def parse_wallet(wallet_address: Any) -> Pubkey:
    if not isinstance(wallet_address, str) or not wallet_address:
        raise ValidationError("Missing required parameter: walletAddress")
    try:
        return Pubkey.from_string(wallet_address)
    except ValueError:
        raise ValidationError("walletAddress is not a valid public key") from None


def generate_session_credentials() -> Dict[str, str]:
    """Fresh credentials for the real-time session system."""
    private_key = secrets.token_bytes(32)
    return {
        "session_private_key": private_key.hex(),
        "session_identity": hashlib.sha256(private_key).hexdigest(),
    }


class ProvisioningOrchestrator:
    """Creates ledger-side player accounts and links them to profiles."""

    def __init__(self, ledger, store, reconciler, clock: Callable[[], float] = time.time):
        self.ledger = ledger
        self.store = store
        self.reconciler = reconciler
        self.clock = clock
        self._audit = get_audit_logger()

    def provision(
        self,
        identity: Identity,
        name: Any = None,
        character_class: Any = None,
        mode: Mode = Mode.WEB2,
    ) -> ProvisionResult:
        """
        Provision the player account for ``identity``.

        Preconditions are checked in order and the first failure wins; none of
        them has side effects.

        Raises:
            ConflictError: profile already linked, or web3 account already on-chain
            ValidationError: bad name, class, or missing linked wallet
            ConfigurationError: no cOBX mint for the active cluster
            LedgerFault: submission rejected
            InconsistencyError: ledger succeeded but the profile update failed
        """
        mode = Mode(mode)
        profile = identity.profile

        if profile.get("player_pda"):
            raise ConflictError("Player account already exists")

        is_web3 = mode is Mode.WEB3
        name = validate_name(name, required=is_web3)
        character_class = validate_class(character_class, mode, required=is_web3)

        wallet = None
        if is_web3:
            if not profile.get("wallet_address"):
                raise ValidationError("No wallet address found for user. Please connect wallet first.")
            try:
                wallet = Pubkey.from_string(profile["wallet_address"])
            except ValueError:
                raise ValidationError("Linked wallet address is not a valid public key") from None

        settings = self.ledger.settings
        cobx_mint = settings.require_cobx_mint()
        config = derive_config(settings.program_id)

        if wallet is not None:
            addresses = player_addresses(bytes(wallet), settings.program_id)
            instruction = initialize_web3_player(
                settings.program_id,
                config,
                addresses,
                cobx_mint,
                wallet=wallet,
                server=self.ledger.server_pubkey,
                name=name,
                character_class=character_class,
            )
        else:
            seed = web2_seed(
                identity.user_id,
                timestamp_ms=int(self.clock() * 1000),
                salted=settings.salted_web2_seeds,
            )
            addresses = player_addresses(seed, settings.program_id)
            instruction = initialize_web2_player(
                settings.program_id,
                config,
                addresses,
                cobx_mint,
                server=self.ledger.server_pubkey,
                name=name or DEFAULT_PLAYER_NAME,
                character_class=DEFAULT_CHARACTER_CLASS if character_class is None else character_class,
            )

        player_pda = str(addresses.player)
        logger.info(f"Provisioning {mode.value} player {identity.user_id} at {player_pda}")

        intent_id = self.store.record_intent(identity.user_id, mode.value, player_pda)
        self.store.update_intent(intent_id, IntentState.SUBMITTED)

        try:
            signature = self.ledger.submit([instruction])
        except LedgerFault as fault:
            return self._handle_fault(identity, mode, addresses, intent_id, fault)

        return self._link(identity, mode, addresses, intent_id, signature)

    def _handle_fault(
        self,
        identity: Identity,
        mode: Mode,
        addresses: PlayerAddresses,
        intent_id: str,
        fault: LedgerFault,
    ) -> ProvisionResult:
        metrics.ledger_faults.labels(kind=fault.kind.value).inc()
        self.store.update_intent(intent_id, IntentState.FAILED, error=f"{fault.kind.value}: {fault.message}")

        if fault.kind is FaultKind.COLLISION:
            if mode is Mode.WEB2:
                logger.info(f"Player account already in use for {identity.user_id}, reconciling")
                result = self.reconciler.recover(identity, collided=addresses)
                metrics.provisioning_outcomes.labels(mode=mode.value, outcome="recovered").inc()
                return result
            metrics.provisioning_outcomes.labels(mode=mode.value, outcome="conflict").inc()
            raise ConflictError("Player account already exists on-chain")

        metrics.provisioning_outcomes.labels(mode=mode.value, outcome="failed").inc()
        self._audit.log_provisioning(identity.user_id, mode.value, f"ledger_{fault.kind.value}")
        if fault.kind is FaultKind.FUNDING:
            logger.error(f"Server wallet underfunded: {fault.details or fault.message}")
            raise LedgerFault(FUNDING_MESSAGE, kind=FaultKind.FUNDING)

        label = "Web3 player" if mode is Mode.WEB3 else "player"
        raise LedgerFault(f"Failed to create {label} account", kind=fault.kind, details=fault.message)

    def _link(
        self,
        identity: Identity,
        mode: Mode,
        addresses: PlayerAddresses,
        intent_id: str,
        signature: str,
    ) -> ProvisionResult:
        player_pda = str(addresses.player)
        fields: Dict[str, Any] = {
            "player_pda": player_pda,
            "cobx_token_account": str(addresses.cobx_account),
            "pda_status": "active",
            "pda_created_at": datetime.now(timezone.utc),
        }
        if mode is Mode.WEB3:
            fields.update(generate_session_credentials())

        try:
            self.store.update_intent(intent_id, IntentState.CONFIRMED, tx_signature=signature)
            self.store.link_profile(identity.user_id, fields, intent_id=intent_id)
        except StoreError as exc:
            reason = exc.details or exc.message
            self._audit.log_inconsistency(identity.user_id, player_pda, signature, reason)
            metrics.provisioning_outcomes.labels(mode=mode.value, outcome="inconsistent").inc()
            raise InconsistencyError(
                "Failed to update profile",
                details=f"Ledger transaction {signature} confirmed for {player_pda} but the profile update failed: {reason}",
            ) from exc

        self._audit.log_provisioning(identity.user_id, mode.value, "created", player_pda)
        metrics.provisioning_outcomes.labels(mode=mode.value, outcome="created").inc()

        message = "Web3 player account created successfully" if mode is Mode.WEB3 else "Player account created successfully"
        return ProvisionResult(
            player_address=player_pda,
            cobx_account=str(addresses.cobx_account),
            tx_ref=signature,
            message=message,
        )

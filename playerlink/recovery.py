"""
Recovery of partially provisioned web2 players.

Runs when a creation attempt reports that the player address is already in
use. The reconciler re-derives the addresses from the canonical (unsalted)
identity seed, falls back to the address that actually collided when nothing
lives at the canonical one, creates the cOBX account if an earlier attempt
left it missing, and links both addresses to the profile.
"""

import logging
from typing import List, Optional

from playerlink import metrics
from playerlink.addresses import PlayerAddresses, player_addresses, web2_seed
from playerlink.audit_logger import get_audit_logger
from playerlink.errors import FaultKind, InconsistencyError, LedgerFault, StoreError
from playerlink.identity import Identity
from playerlink.instructions import create_token_account
from playerlink.models import IntentState
from playerlink.provisioning import ProvisionResult

logger = logging.getLogger(__name__)

RECOVERY_MODE = "recovery"
RECOVERY_FAILED = "Failed to recover existing player account"


class RecoveryReconciler:
    def __init__(self, ledger, store):
        self.ledger = ledger
        self.store = store
        self._audit = get_audit_logger()

    def recover(self, identity: Identity, collided: Optional[PlayerAddresses] = None) -> ProvisionResult:
        """
        Link the existing player account of ``identity`` to its profile.

        The canonical address wins when an account lives there; otherwise
        ``collided``, the address a failed creation attempt ran into, is used.
        The profile is written exactly once. ``pda_status`` is left as it is.

        Raises:
            ConfigurationError: no cOBX mint for the active cluster
            LedgerFault: no player account at any candidate address, or a
                ledger call failed
            InconsistencyError: ledger state repaired but the profile update failed
        """
        settings = self.ledger.settings
        cobx_mint = settings.require_cobx_mint()
        canonical = player_addresses(web2_seed(identity.user_id), settings.program_id)
        candidates: List[PlayerAddresses] = [canonical]
        if collided is not None and collided.player != canonical.player:
            candidates.append(collided)

        located: Optional[PlayerAddresses] = None
        lookup_fault: Optional[LedgerFault] = None
        try:
            located = self._locate(candidates)
        except LedgerFault as fault:
            lookup_fault = fault

        addresses = located or canonical
        player_pda = str(addresses.player)
        intent_id = self.store.record_intent(identity.user_id, RECOVERY_MODE, player_pda)
        self.store.update_intent(intent_id, IntentState.SUBMITTED)

        if lookup_fault is not None:
            self._fail(identity, intent_id, lookup_fault)

        if located is None:
            self.store.update_intent(intent_id, IntentState.FAILED, error="no player account at a known address")
            searched = ", ".join(str(c.player) for c in candidates)
            raise LedgerFault(RECOVERY_FAILED, details=f"No player account found at {searched}")

        signature: Optional[str] = None
        try:
            signature = self._repair_token_account(addresses, cobx_mint)
        except LedgerFault as fault:
            self._fail(identity, intent_id, fault)

        fields = {
            "player_pda": player_pda,
            "cobx_token_account": str(addresses.cobx_account),
        }
        try:
            self.store.update_intent(intent_id, IntentState.CONFIRMED, tx_signature=signature)
            self.store.link_profile(identity.user_id, fields, intent_id=intent_id)
        except StoreError as exc:
            reason = exc.details or exc.message
            self._audit.log_inconsistency(identity.user_id, player_pda, signature, reason)
            raise InconsistencyError("Failed to update profile during recovery", details=reason) from exc

        created = signature is not None
        self._audit.log_recovery(identity.user_id, player_pda, created)
        metrics.recoveries.labels(token_account_created=str(created).lower()).inc()

        return ProvisionResult(
            player_address=player_pda,
            cobx_account=str(addresses.cobx_account),
            tx_ref=signature,
            recovered=True,
            message="Player account recovered successfully",
        )

    def _locate(self, candidates: List[PlayerAddresses]) -> Optional[PlayerAddresses]:
        for candidate in candidates:
            if self.ledger.account_exists(candidate.player):
                return candidate
        return None

    def _repair_token_account(self, addresses: PlayerAddresses, cobx_mint) -> Optional[str]:
        """Create the cOBX account if missing; return the signature, or None when nothing was sent."""
        if self.ledger.account_exists(addresses.cobx_account):
            return None

        logger.info(f"Creating missing cOBX account {addresses.cobx_account} for {addresses.player}")
        try:
            return self.ledger.submit(
                [
                    create_token_account(
                        payer=self.ledger.server_pubkey,
                        token_account=addresses.cobx_account,
                        owner=addresses.player,
                        mint=cobx_mint,
                    )
                ]
            )
        except LedgerFault as fault:
            # A concurrent request created it between the check and the submit.
            if fault.kind is FaultKind.COLLISION and self.ledger.account_exists(addresses.cobx_account):
                logger.info(f"cOBX account {addresses.cobx_account} was created concurrently")
                return None
            raise

    def _fail(self, identity: Identity, intent_id: str, fault: LedgerFault) -> None:
        self.store.update_intent(intent_id, IntentState.FAILED, error=f"{fault.kind.value}: {fault.message}")
        logger.error(f"Recovery for {identity.user_id} failed: {fault.message}")
        raise LedgerFault(RECOVERY_FAILED, kind=fault.kind, details=fault.details or fault.message) from fault

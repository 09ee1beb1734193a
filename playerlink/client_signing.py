"""
Client-signing handoff for wallet identities.

``prepare`` builds the same creation instruction the server would submit, has
the server co-sign it, and hands the serialized transaction to the wallet
owner. ``confirm`` links the profile once the owner reports the submitted
signature.
"""

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from playerlink.addresses import derive_config, player_addresses
from playerlink.audit_logger import get_audit_logger
from playerlink.errors import ConflictError, InconsistencyError, NotFoundError, StoreError, ValidationError
from playerlink.instructions import initialize_web3_player
from playerlink.models import IntentState
from playerlink.provisioning import (
    Mode,
    ProvisionResult,
    generate_session_credentials,
    parse_wallet,
    validate_class,
    validate_name,
)

logger = logging.getLogger(__name__)

CLIENT_MODE = "web3_client"


@dataclass(frozen=True)
class PreparedTransaction:
    transaction: bytes
    player_address: str
    cobx_account: str

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "needsClientSigning": True,
            "transactionData": list(self.transaction),
            "transactionBase64": base64.b64encode(self.transaction).decode("ascii"),
            "playerPda": self.player_address,
            "playerCobxAccount": self.cobx_account,
            "message": "Transaction ready for client-side signing",
        }


class ClientSigningPreparer:
    def __init__(self, ledger, store):
        self.ledger = ledger
        self.store = store
        self._audit = get_audit_logger()

    def prepare(self, wallet_address: Any, name: Any, character_class: Any) -> PreparedTransaction:
        """
        Build a creation transaction for the wallet to sign and submit.

        The wallet is fee payer; only the server signature is present. No
        profile is touched.
        """
        if not wallet_address or not name or character_class is None:
            raise ValidationError("Missing required parameters: walletAddress, name, characterClass")

        name = validate_name(name, required=True)
        character_class = validate_class(character_class, Mode.WEB3, required=True)
        wallet = parse_wallet(wallet_address)

        settings = self.ledger.settings
        cobx_mint = settings.require_cobx_mint()
        addresses = player_addresses(bytes(wallet), settings.program_id)
        instruction = initialize_web3_player(
            settings.program_id,
            derive_config(settings.program_id),
            addresses,
            cobx_mint,
            wallet=wallet,
            server=self.ledger.server_pubkey,
            name=name,
            character_class=character_class,
            wallet_signs=True,
        )
        payload = self.ledger.build_partially_signed([instruction], fee_payer=wallet)

        self._audit.log_client_signing(str(wallet), str(addresses.player))
        return PreparedTransaction(
            transaction=payload,
            player_address=str(addresses.player),
            cobx_account=str(addresses.cobx_account),
        )

    def confirm(self, wallet_address: Any, signature: Any) -> ProvisionResult:
        """
        Link a client-submitted player account to the wallet's profile.

        Idempotent for a profile already linked to the same address.

        Raises:
            ValidationError: bad input, unconfirmed signature, or no account on-chain
            NotFoundError: no profile carries this wallet
            ConflictError: the profile is linked to a different address
            InconsistencyError: the profile update failed
        """
        wallet = parse_wallet(wallet_address)
        if not isinstance(signature, str) or not signature:
            raise ValidationError("Missing required parameter: signature")

        profile = self.store.get_profile_by_wallet(str(wallet))
        if not profile:
            raise NotFoundError("No profile linked to this wallet")

        addresses = player_addresses(bytes(wallet), self.ledger.settings.program_id)
        player_pda = str(addresses.player)

        existing = profile.get("player_pda")
        if existing == player_pda:
            return ProvisionResult(
                player_address=player_pda,
                cobx_account=str(addresses.cobx_account),
                message="Player account already linked",
            )
        if existing:
            raise ConflictError("Player account already exists")

        if not self.ledger.signature_confirmed(signature):
            raise ValidationError("Transaction is not confirmed")
        if not self.ledger.account_exists(addresses.player):
            raise ValidationError("Player account not found on-chain")

        user_id = profile["id"]
        fields: Dict[str, Any] = {
            "player_pda": player_pda,
            "cobx_token_account": str(addresses.cobx_account),
            "pda_status": "active",
            "pda_created_at": datetime.now(timezone.utc),
            **generate_session_credentials(),
        }
        intent_id = self.store.record_intent(user_id, CLIENT_MODE, player_pda)
        try:
            self.store.update_intent(intent_id, IntentState.CONFIRMED, tx_signature=signature)
            self.store.link_profile(user_id, fields, intent_id=intent_id)
        except StoreError as exc:
            reason = exc.details or exc.message
            self._audit.log_inconsistency(user_id, player_pda, signature, reason)
            raise InconsistencyError("Failed to update profile", details=reason) from exc

        self._audit.log_provisioning(user_id, CLIENT_MODE, "linked", player_pda)
        logger.info(f"Linked client-submitted player {player_pda} to {user_id}")
        return ProvisionResult(
            player_address=player_pda,
            cobx_account=str(addresses.cobx_account),
            tx_ref=signature,
            message="Web3 player account linked successfully",
        )

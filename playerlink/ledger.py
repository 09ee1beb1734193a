"""
Solana ledger client.

Wraps the JSON-RPC client behind the handful of calls provisioning needs and
translates raw RPC failures into ``LedgerFault`` values with a structured
``FaultKind``. Nothing outside this module inspects RPC error text.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus

from playerlink.audit_logger import get_audit_logger
from playerlink.config import as_bool, get_cluster, get_cobx_mint, get_rpc_url
from playerlink.errors import ConfigurationError, FaultKind, LedgerFault

logger = logging.getLogger(__name__)

_FUNDING_MARKERS = (
    "insufficient funds",
    "insufficient lamports",
    "attempt to debit an account but found no record of a prior credit",
)
_COLLISION_MARKERS = ("already in use",)

_LEDGER_ERRORS = (RPCException, UnconfirmedTxError, SolanaRpcException)


def _parse_pubkey(name: str, value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise ConfigurationError("Server configuration error", details=f"{name} is not a valid public key") from None


def load_server_keypair(raw: Optional[str]) -> Keypair:
    """Load the server keypair from a JSON array of 64 secret-key bytes."""
    if not raw:
        raise ConfigurationError(
            "Server configuration error", details="PRIVATE_SERVER_WALLET environment variable not set"
        )
    try:
        secret = bytes(json.loads(raw))
        return Keypair.from_bytes(secret)
    except (TypeError, ValueError):
        raise ConfigurationError("Server configuration error", details="Invalid PRIVATE_SERVER_WALLET format") from None


@dataclass(frozen=True)
class LedgerSettings:
    """Immutable ledger configuration, built once at startup."""

    rpc_url: str
    cluster: str
    commitment: str
    program_id: Pubkey
    server_keypair: Keypair
    cobx_mint: Optional[Pubkey] = None
    cobx_mint_error: Optional[str] = None
    salted_web2_seeds: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "LedgerSettings":
        program_id = config.get("PROGRAM_ID")
        if not program_id:
            raise ConfigurationError("Server configuration error", details="PROGRAM_ID environment variable not set")

        # A missing mint is reported per request, not at startup.
        cobx_mint = None
        cobx_mint_error = None
        try:
            cobx_mint = _parse_pubkey("cOBX mint", get_cobx_mint(config))
        except ConfigurationError as exc:
            cobx_mint_error = exc.details

        return cls(
            rpc_url=get_rpc_url(config),
            cluster=get_cluster(config),
            commitment=str(config.get("SOLANA_COMMITMENT") or "confirmed"),
            program_id=_parse_pubkey("PROGRAM_ID", str(program_id)),
            server_keypair=load_server_keypair(config.get("PRIVATE_SERVER_WALLET")),
            cobx_mint=cobx_mint,
            cobx_mint_error=cobx_mint_error,
            salted_web2_seeds=as_bool(config.get("WEB2_SALTED_SEEDS")),
        )

    @property
    def server_pubkey(self) -> Pubkey:
        return self.server_keypair.pubkey()

    def require_cobx_mint(self) -> Pubkey:
        """Return the cOBX mint or raise ``ConfigurationError``."""
        if self.cobx_mint is None:
            raise ConfigurationError(
                "Server configuration error",
                details=self.cobx_mint_error or f"cOBX mint not configured for cluster: {self.cluster}",
            )
        return self.cobx_mint


def classify_fault(message: str) -> FaultKind:
    """Map RPC error text to a fault kind."""
    lowered = message.lower()
    if any(marker in lowered for marker in _FUNDING_MARKERS):
        return FaultKind.FUNDING
    if any(marker in lowered for marker in _COLLISION_MARKERS):
        return FaultKind.COLLISION
    return FaultKind.OTHER


def describe_error(exc: BaseException) -> str:
    """Flatten an RPC exception, including simulation logs when present."""
    parts = [str(exc)]
    payload = exc.args[0] if exc.args else None
    data = getattr(payload, "data", None)
    logs = getattr(data, "logs", None)
    if logs:
        parts.extend(str(line) for line in logs)
    return "\n".join(parts)


def to_fault(exc: BaseException) -> LedgerFault:
    description = describe_error(exc)
    kind = classify_fault(description)
    return LedgerFault(str(exc) or exc.__class__.__name__, kind=kind, details=description)


class LedgerClient:
    """
    Submits and queries against the player program.

    The underlying RPC client and the server keypair are shared, read-only
    handles; a single instance serves all requests.
    """

    def __init__(self, settings: LedgerSettings, client: Optional[Client] = None):
        self.settings = settings
        self._client = client or Client(settings.rpc_url, commitment=Commitment(settings.commitment))
        self._audit = get_audit_logger()

    @property
    def server_pubkey(self) -> Pubkey:
        return self.settings.server_pubkey

    def account_exists(self, address: Pubkey) -> bool:
        try:
            response = self._client.get_account_info(address)
        except _LEDGER_ERRORS as exc:
            self._audit.log_ledger_call("get_account_info", success=False, error=str(exc))
            raise to_fault(exc) from exc
        return response.value is not None

    def latest_blockhash(self) -> Hash:
        try:
            response = self._client.get_latest_blockhash()
        except _LEDGER_ERRORS as exc:
            self._audit.log_ledger_call("get_latest_blockhash", success=False, error=str(exc))
            raise to_fault(exc) from exc
        return response.value.blockhash

    def submit(self, instructions: Sequence[Instruction], extra_signers: Sequence[Keypair] = ()) -> str:
        """
        Sign with the server key, send, and wait for confirmation.

        Args:
            instructions: Instructions to pack into one transaction
            extra_signers: Additional keypairs required by the instructions

        Returns:
            Base58 transaction signature

        Raises:
            LedgerFault: if the transaction is rejected or never confirms
        """
        server = self.settings.server_keypair
        blockhash = self.latest_blockhash()
        message = Message.new_with_blockhash(list(instructions), server.pubkey(), blockhash)
        transaction = Transaction([server, *extra_signers], message, blockhash)

        try:
            sent = self._client.send_raw_transaction(
                bytes(transaction),
                opts=TxOpts(skip_confirmation=True, preflight_commitment=Commitment(self.settings.commitment)),
            )
            signature = sent.value
            confirmation = self._client.confirm_transaction(signature, Commitment(self.settings.commitment))
        except _LEDGER_ERRORS as exc:
            fault = to_fault(exc)
            self._audit.log_ledger_call("send_transaction", success=False, error=fault.message, kind=fault.kind.value)
            raise fault from exc

        statuses = confirmation.value or []
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            fault = LedgerFault(f"Transaction {signature} failed", kind=classify_fault(str(status.err)), details=str(status.err))
            self._audit.log_ledger_call("send_transaction", success=False, error=fault.details, kind=fault.kind.value)
            raise fault

        self._audit.log_ledger_call("send_transaction", success=True)
        logger.info(f"Transaction confirmed: {signature}")
        return str(signature)

    def build_partially_signed(self, instructions: Sequence[Instruction], fee_payer: Pubkey) -> bytes:
        """Serialize a transaction carrying only the server signature."""
        blockhash = self.latest_blockhash()
        message = Message.new_with_blockhash(list(instructions), fee_payer, blockhash)
        transaction = Transaction.new_unsigned(message)
        transaction.partial_sign([self.settings.server_keypair], blockhash)
        return bytes(transaction)

    def signature_confirmed(self, signature: str) -> bool:
        """Return True when ``signature`` landed without error at confirmed or finalized commitment."""
        try:
            parsed = Signature.from_string(signature)
        except ValueError:
            return False

        try:
            response = self._client.get_signature_statuses([parsed], search_transaction_history=True)
        except _LEDGER_ERRORS as exc:
            self._audit.log_ledger_call("get_signature_statuses", success=False, error=str(exc))
            raise to_fault(exc) from exc

        status = response.value[0] if response.value else None
        if status is None or status.err is not None:
            return False
        return status.confirmation_status in (
            TransactionConfirmationStatus.Confirmed,
            TransactionConfirmationStatus.Finalized,
        )

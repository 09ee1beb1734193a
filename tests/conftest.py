"""
Pytest configuration and shared fixtures for playerlink tests.
"""

import json
import os
import threading
from typing import List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair

# Set test environment before importing playerlink
SERVER_KEYPAIR = Keypair()
PROGRAM_KEYPAIR = Keypair()
COBX_MINT_KEYPAIR = Keypair()

os.environ["FLASK_ENV"] = "testing"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["SOLANA_CLUSTER"] = "devnet"
os.environ["SOLANA_RPC_URL"] = "http://127.0.0.1:8899"
os.environ["PROGRAM_ID"] = str(PROGRAM_KEYPAIR.pubkey())
os.environ["COBX_MINT_DEVNET"] = str(COBX_MINT_KEYPAIR.pubkey())
os.environ["PRIVATE_SERVER_WALLET"] = json.dumps(list(bytes(SERVER_KEYPAIR)))
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("WEB2_SALTED_SEEDS", None)

# Import playerlink after setting environment
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from playerlink.config import get_config  # noqa: E402
from playerlink.errors import FaultKind, LedgerFault  # noqa: E402
from playerlink.identity import Identity, issue_token  # noqa: E402
from playerlink.ledger import LedgerSettings  # noqa: E402
from playerlink.storage import MemoryProfileStore  # noqa: E402


class FakeLedger:
    """
    In-process stand-in for ``LedgerClient``.

    Enforces create-once: every writable, non-signing account an instruction
    names is created by it, and naming an existing one fails the whole
    submission with an "already in use" collision.
    """

    def __init__(self, settings: LedgerSettings):
        self.settings = settings
        self.accounts = set()
        self.submissions: List[list] = []
        self.confirmed_signatures = set()
        self.fail_next: Optional[LedgerFault] = None
        self._lock = threading.Lock()

    @property
    def server_pubkey(self):
        return self.settings.server_pubkey

    def account_exists(self, address) -> bool:
        with self._lock:
            return str(address) in self.accounts

    def latest_blockhash(self) -> Hash:
        return Hash.default()

    def submit(self, instructions, extra_signers=()) -> str:
        with self._lock:
            if self.fail_next is not None:
                fault, self.fail_next = self.fail_next, None
                raise fault

            created = [
                str(meta.pubkey)
                for instruction in instructions
                for meta in instruction.accounts
                if meta.is_writable and not meta.is_signer
            ]
            in_use = [address for address in created if address in self.accounts]
            if in_use:
                raise LedgerFault(
                    f"Allocate: account Address {{ address: {in_use[0]} }} already in use",
                    kind=FaultKind.COLLISION,
                )

            self.accounts.update(created)
            self.submissions.append(list(instructions))
            signature = f"sig{len(self.submissions)}"
            self.confirmed_signatures.add(signature)
            return signature

    def build_partially_signed(self, instructions, fee_payer) -> bytes:
        self.prepared = list(instructions)
        return b"\x01" + bytes(fee_payer)

    def signature_confirmed(self, signature: str) -> bool:
        return signature in self.confirmed_signatures

    def seed(self, *addresses) -> None:
        """Pretend ``addresses`` already exist on-chain."""
        with self._lock:
            self.accounts.update(str(address) for address in addresses)


@pytest.fixture
def test_config():
    """Configuration as loaded from the test environment."""
    return dict(get_config())


@pytest.fixture
def ledger_settings(test_config):
    return LedgerSettings.from_config(test_config)


@pytest.fixture
def ledger(ledger_settings):
    return FakeLedger(ledger_settings)


@pytest.fixture
def store():
    """Fresh in-memory profile store."""
    return MemoryProfileStore()


@pytest.fixture
def services(test_config, store, ledger):
    from playerlink.services import build_services

    return build_services(test_config, store, ledger=ledger)


@pytest.fixture
def app(services):
    """Create and configure a test Flask application instance."""
    from playerlink.factory import create_app

    flask_app = create_app({"TESTING": True}, services=services)
    flask_app.config.update({"TESTING": True})

    with flask_app.app_context():
        yield flask_app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def web2_profile(store):
    return store.create_profile("user-web2", username="ava", user_type="WEB2")


@pytest.fixture
def wallet():
    return Keypair().pubkey()


@pytest.fixture
def web3_profile(store, wallet):
    return store.create_profile("user-web3", username="wren", user_type="WEB3", wallet_address=str(wallet))


@pytest.fixture
def web2_identity(web2_profile):
    return Identity(user_id=web2_profile["id"], profile=web2_profile)


@pytest.fixture
def web3_identity(web3_profile):
    return Identity(user_id=web3_profile["id"], profile=web3_profile)


@pytest.fixture
def make_auth_headers():
    """Build bearer headers for a user id."""

    def _make(user_id: str):
        token = issue_token(user_id, "test-jwt-secret")
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    return _make


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "slow: tests that take a long time to run")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add 'integration' marker to tests in integration/ directory
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

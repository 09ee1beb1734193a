"""
Unit tests for recovery of partially provisioned web2 players.
"""

from unittest.mock import patch

import pytest
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID

from playerlink.addresses import player_addresses, web2_seed
from playerlink.errors import FaultKind, InconsistencyError, LedgerFault, StoreError
from playerlink.models import IntentState


@pytest.fixture
def canonical(ledger, web2_identity):
    return player_addresses(web2_seed(web2_identity.user_id), ledger.settings.program_id)


class TestRecoveryReconciler:
    def test_links_existing_accounts_with_one_write(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account)

        result = services.reconciler.recover(web2_identity)

        assert result.recovered is True
        assert result.player_address == str(canonical.player)
        assert result.tx_ref is None
        assert result.message == "Player account recovered successfully"
        # No token account submission when it already existed
        assert ledger.submissions == []
        assert store.writes == [
            {
                "user_id": web2_identity.user_id,
                "player_pda": str(canonical.player),
                "cobx_token_account": str(canonical.cobx_account),
            }
        ]

    def test_creates_missing_token_account(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player)

        result = services.reconciler.recover(web2_identity)

        assert result.tx_ref == "sig1"
        assert len(ledger.submissions) == 1
        assert ledger.submissions[0][0].program_id == ASSOCIATED_TOKEN_PROGRAM_ID
        assert ledger.account_exists(canonical.cobx_account)
        assert len(store.writes) == 1

    def test_leaves_pda_status_untouched(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account)

        services.reconciler.recover(web2_identity)

        assert store.get_profile(web2_identity.user_id)["pda_status"] == "pending"

    def test_missing_player_account_fails(self, services, web2_identity, ledger, store):
        with pytest.raises(LedgerFault, match="Failed to recover existing player account"):
            services.reconciler.recover(web2_identity)

        assert store.writes == []
        assert store.list_intents(web2_identity.user_id)[0]["state"] == IntentState.FAILED

    def test_token_account_creation_fault(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player)
        ledger.fail_next = LedgerFault("insufficient funds", kind=FaultKind.FUNDING)

        with pytest.raises(LedgerFault, match="Failed to recover") as excinfo:
            services.reconciler.recover(web2_identity)

        assert excinfo.value.kind is FaultKind.FUNDING
        assert store.writes == []

    def test_store_failure_is_inconsistency(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account)

        with patch.object(store, "link_profile", side_effect=StoreError("Failed to update profile", details="locked")):
            with pytest.raises(InconsistencyError, match="during recovery"):
                services.reconciler.recover(web2_identity)

    def test_intent_recorded_as_recovery(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account)

        services.reconciler.recover(web2_identity)

        intent = store.list_intents(web2_identity.user_id)[0]
        assert intent["mode"] == "recovery"
        assert intent["state"] == IntentState.LINKED


class TestCollisionRouting:
    def test_web2_collision_routes_to_recovery(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account)

        result = services.orchestrator.provision(web2_identity, name="Ava", character_class=1)

        assert result.recovered is True
        assert result.to_response()["recovered"] is True
        assert store.get_profile(web2_identity.user_id)["player_pda"] == str(canonical.player)

        states = [intent["state"] for intent in store.list_intents(web2_identity.user_id)]
        # newest first: the recovery intent, then the failed creation attempt
        assert states == [IntentState.LINKED, IntentState.FAILED]

    def test_token_account_created_concurrently(self, services, web2_identity, canonical, ledger, store):
        # Another request creates the token account between the check and the submit
        ledger.seed(canonical.player, canonical.cobx_account)

        with patch.object(ledger, "account_exists", side_effect=[True, False, True]):
            result = services.reconciler.recover(web2_identity)

        assert result.recovered is True
        assert result.tx_ref is None
        assert ledger.submissions == []
        assert len(store.writes) == 1
        assert store.list_intents(web2_identity.user_id)[0]["state"] == IntentState.LINKED

    def test_token_account_collision_without_account_fails(self, services, web2_identity, canonical, ledger, store):
        ledger.seed(canonical.player)
        ledger.fail_next = LedgerFault("account already in use", kind=FaultKind.COLLISION)

        with pytest.raises(LedgerFault, match="Failed to recover") as excinfo:
            services.reconciler.recover(web2_identity)

        assert excinfo.value.kind is FaultKind.COLLISION
        assert store.writes == []
        assert store.list_intents(web2_identity.user_id)[0]["state"] == IntentState.FAILED


class TestCollidedAddress:
    @pytest.fixture
    def salted(self, ledger, web2_identity):
        seed = web2_seed(web2_identity.user_id, timestamp_ms=1700000000000, salted=True)
        return player_addresses(seed, ledger.settings.program_id)

    def test_falls_back_to_collided_address(self, services, web2_identity, salted, ledger, store):
        ledger.seed(salted.player, salted.cobx_account)

        result = services.reconciler.recover(web2_identity, collided=salted)

        assert result.recovered is True
        assert result.player_address == str(salted.player)
        assert result.cobx_account == str(salted.cobx_account)
        assert store.get_profile(web2_identity.user_id)["player_pda"] == str(salted.player)
        assert store.list_intents(web2_identity.user_id)[0]["player_pda"] == str(salted.player)

    def test_canonical_address_wins(self, services, web2_identity, canonical, salted, ledger, store):
        ledger.seed(canonical.player, canonical.cobx_account, salted.player, salted.cobx_account)

        result = services.reconciler.recover(web2_identity, collided=salted)

        assert result.player_address == str(canonical.player)

    def test_no_account_at_either_address(self, services, web2_identity, canonical, salted, store):
        with pytest.raises(LedgerFault) as excinfo:
            services.reconciler.recover(web2_identity, collided=salted)

        assert str(canonical.player) in excinfo.value.details
        assert str(salted.player) in excinfo.value.details
        assert store.list_intents(web2_identity.user_id)[0]["state"] == IntentState.FAILED

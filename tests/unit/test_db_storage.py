"""
Unit tests for the SQLAlchemy profile store against in-memory SQLite.
"""

from datetime import datetime, timezone

import pytest

from playerlink.database import close_database, init_database, session_scope
from playerlink.db_storage import SqlProfileStore
from playerlink.errors import StoreError
from playerlink.models import IntentState, Profile


@pytest.fixture
def sql_store():
    close_database()
    init_database("sqlite:///:memory:")
    yield SqlProfileStore()
    close_database()


class TestSqlProfiles:
    def test_create_and_get(self, sql_store):
        sql_store.create_profile("user-1", username="ava", wallet_address="Wallet111")

        profile = sql_store.get_profile("user-1")
        assert profile["username"] == "ava"
        assert profile["pda_status"] == "pending"
        assert profile["user_type"] == "WEB2"
        assert sql_store.get_profile_by_wallet("Wallet111")["id"] == "user-1"
        assert sql_store.get_profile("missing") is None

    def test_update_profile(self, sql_store):
        sql_store.create_profile("user-1")
        moment = datetime(2024, 1, 2, 3, 4, 5)

        updated = sql_store.update_profile(
            "user-1", {"player_pda": "Pda111", "pda_status": "active", "pda_created_at": moment}
        )

        assert updated["player_pda"] == "Pda111"
        assert updated["pda_created_at"] == moment.isoformat()

    def test_update_missing_profile(self, sql_store):
        with pytest.raises(StoreError, match="Failed to update profile"):
            sql_store.update_profile("missing", {"pda_status": "active"})

    def test_update_unknown_column(self, sql_store):
        sql_store.create_profile("user-1")

        with pytest.raises(StoreError):
            sql_store.update_profile("user-1", {"not_a_column": 1})

    def test_rejects_unknown_pda_status(self, sql_store):
        sql_store.create_profile("user-1")

        with pytest.raises(StoreError):
            sql_store.update_profile("user-1", {"pda_status": "bogus"})
        assert sql_store.get_profile("user-1")["pda_status"] == "pending"

    def test_player_pda_is_unique(self, sql_store):
        sql_store.create_profile("user-1", player_pda="Pda111")
        sql_store.create_profile("user-2")

        with pytest.raises(StoreError):
            sql_store.update_profile("user-2", {"player_pda": "Pda111"})

        assert sql_store.get_profile("user-2")["player_pda"] is None


class TestSqlIntents:
    def test_link_marks_intent_linked_atomically(self, sql_store):
        sql_store.create_profile("user-1")
        intent_id = sql_store.record_intent("user-1", "web2", "Pda111")
        sql_store.update_intent(intent_id, IntentState.CONFIRMED, tx_signature="sig1")

        sql_store.link_profile(
            "user-1",
            {"player_pda": "Pda111", "pda_created_at": datetime.now(timezone.utc)},
            intent_id=intent_id,
        )

        intent = sql_store.get_intent(intent_id)
        assert intent["state"] == IntentState.LINKED
        assert intent["tx_signature"] == "sig1"
        with session_scope() as session:
            assert session.get(Profile, "user-1").player_pda == "Pda111"

    def test_failed_link_keeps_intent_confirmed(self, sql_store):
        sql_store.create_profile("user-1", player_pda="Pda111")
        sql_store.create_profile("user-2")
        intent_id = sql_store.record_intent("user-2", "web2", "Pda111")
        sql_store.update_intent(intent_id, IntentState.CONFIRMED)

        with pytest.raises(StoreError):
            sql_store.link_profile("user-2", {"player_pda": "Pda111"}, intent_id=intent_id)

        assert sql_store.get_intent(intent_id)["state"] == IntentState.CONFIRMED

    def test_list_intents(self, sql_store):
        sql_store.create_profile("user-1")
        sql_store.create_profile("user-2")
        sql_store.record_intent("user-1", "web2", "Pda111")
        sql_store.record_intent("user-2", "web2", "Pda222")

        intents = sql_store.list_intents("user-1")

        assert [intent["player_pda"] for intent in intents] == ["Pda111"]
        assert intents[0]["state"] == IntentState.REQUESTED

    def test_update_missing_intent(self, sql_store):
        with pytest.raises(StoreError):
            sql_store.update_intent("missing", IntentState.FAILED)

"""In-memory profile store for tests and local development.

This module mirrors the interface of ``playerlink.db_storage`` but keeps
everything in Python dictionaries, so the test-suite needs neither PostgreSQL
nor a ledger node.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from playerlink.errors import StoreError
from playerlink.models import PDA_STATUSES, IntentState

_PROFILE_DEFAULTS: Dict[str, Any] = {
    "username": None,
    "user_type": "WEB2",
    "wallet_address": None,
    "player_pda": None,
    "cobx_token_account": None,
    "pda_status": "pending",
    "pda_created_at": None,
    "character_name": "Unnamed Player",
    "character_class": 0,
    "session_private_key": None,
    "session_identity": None,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalise(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class MemoryProfileStore:
    """Dictionary-backed profile store."""

    def __init__(self):
        self._lock = threading.Lock()
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.intents: Dict[str, Dict[str, Any]] = {}
        # Every profile patch, in order; tests inspect this.
        self.writes: List[Dict[str, Any]] = []

    def reset(self) -> None:
        with self._lock:
            self.profiles.clear()
            self.intents.clear()
            self.writes.clear()

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            profile = self.profiles.get(user_id)
            return copy.deepcopy(profile) if profile else None

    def get_profile_by_wallet(self, wallet_address: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for profile in self.profiles.values():
                if profile.get("wallet_address") == wallet_address:
                    return copy.deepcopy(profile)
        return None

    def create_profile(self, user_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
        user_id = user_id or str(uuid.uuid4())
        with self._lock:
            if user_id in self.profiles:
                raise StoreError("Failed to create profile", details=f"profile {user_id} already exists")
            profile = {"id": user_id, **_PROFILE_DEFAULTS, "created_at": _now(), "updated_at": _now()}
            profile.update({key: _normalise(value) for key, value in fields.items()})
            self.profiles[user_id] = profile
            return copy.deepcopy(profile)

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            return self._patch(user_id, fields)

    def link_profile(self, user_id: str, fields: Dict[str, Any], intent_id: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            profile = self._patch(user_id, fields)
            if intent_id and intent_id in self.intents:
                self.intents[intent_id]["state"] = IntentState.LINKED
                self.intents[intent_id]["updated_at"] = _now()
            return profile

    def _patch(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        profile = self.profiles.get(user_id)
        if profile is None:
            raise StoreError("Failed to update profile", details=f"profile {user_id} not found")
        unknown = set(fields) - set(profile)
        if unknown:
            raise StoreError("Failed to update profile", details=f"unknown profile fields: {sorted(unknown)}")
        if "pda_status" in fields and fields["pda_status"] not in PDA_STATUSES:
            raise StoreError("Failed to update profile", details=f"invalid pda_status: {fields['pda_status']}")
        profile.update({key: _normalise(value) for key, value in fields.items()})
        profile["updated_at"] = _now()
        self.writes.append({"user_id": user_id, **copy.deepcopy(fields)})
        return copy.deepcopy(profile)

    def record_intent(self, user_id: str, mode: str, player_pda: str) -> str:
        intent_id = str(uuid.uuid4())
        with self._lock:
            self.intents[intent_id] = {
                "id": intent_id,
                "user_id": user_id,
                "mode": mode,
                "player_pda": player_pda,
                "state": IntentState.REQUESTED,
                "tx_signature": None,
                "error": None,
                "created_at": _now(),
                "updated_at": _now(),
                "seq": len(self.intents),
            }
        return intent_id

    def update_intent(
        self, intent_id: str, state: str, tx_signature: Optional[str] = None, error: Optional[str] = None
    ) -> None:
        with self._lock:
            intent = self.intents.get(intent_id)
            if intent is None:
                raise StoreError("Failed to update provisioning intent", details=f"intent {intent_id} not found")
            intent["state"] = state
            if tx_signature:
                intent["tx_signature"] = tx_signature
            if error:
                intent["error"] = error
            intent["updated_at"] = _now()

    def get_intent(self, intent_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            intent = self.intents.get(intent_id)
            return self._public_intent(intent) if intent else None

    def list_intents(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [intent for intent in self.intents.values() if intent["user_id"] == user_id]
            rows.sort(key=lambda intent: intent["seq"], reverse=True)
            return [self._public_intent(intent) for intent in rows]

    @staticmethod
    def _public_intent(intent: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in intent.items() if key != "seq"}

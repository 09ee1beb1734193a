"""
Database-backed profile store for playerlink - Production version.

Mirrors the interface of ``playerlink.storage`` with SQLAlchemy persistence.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from playerlink.database import session_scope
from playerlink.errors import StoreError
from playerlink.models import IntentState, Profile, ProvisioningIntent

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = set(Profile.__table__.columns.keys())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def profile_to_dict(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "username": profile.username,
        "user_type": profile.user_type,
        "wallet_address": profile.wallet_address,
        "player_pda": profile.player_pda,
        "cobx_token_account": profile.cobx_token_account,
        "pda_status": profile.pda_status,
        "pda_created_at": _iso(profile.pda_created_at),
        "character_name": profile.character_name,
        "character_class": profile.character_class,
        "session_private_key": profile.session_private_key,
        "session_identity": profile.session_identity,
        "created_at": _iso(profile.created_at),
        "updated_at": _iso(profile.updated_at),
    }


def intent_to_dict(intent: ProvisioningIntent) -> Dict[str, Any]:
    return {
        "id": intent.id,
        "user_id": intent.user_id,
        "mode": intent.mode,
        "player_pda": intent.player_pda,
        "state": intent.state,
        "tx_signature": intent.tx_signature,
        "error": intent.error,
        "created_at": _iso(intent.created_at),
        "updated_at": _iso(intent.updated_at),
    }


def _apply_fields(profile: Profile, fields: Dict[str, Any]) -> None:
    unknown = set(fields) - _PROFILE_COLUMNS
    if unknown:
        raise StoreError("Failed to update profile", details=f"unknown profile fields: {sorted(unknown)}")
    for key, value in fields.items():
        setattr(profile, key, value)


class SqlProfileStore:
    """Profile store backed by the ``profiles`` and ``provisioning_intents`` tables."""

    # ========================================================================
    # Profiles
    # ========================================================================

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            with session_scope() as session:
                profile = session.get(Profile, user_id)
                return profile_to_dict(profile) if profile else None
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load profile", details=str(exc)) from exc

    def get_profile_by_wallet(self, wallet_address: str) -> Optional[Dict[str, Any]]:
        try:
            with session_scope() as session:
                profile = session.query(Profile).filter_by(wallet_address=wallet_address).first()
                return profile_to_dict(profile) if profile else None
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load profile", details=str(exc)) from exc

    def create_profile(self, user_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
        """Insert a profile row. Used by tooling and tests; the identity system owns creation."""
        try:
            with session_scope() as session:
                profile = Profile(id=user_id) if user_id else Profile()
                _apply_fields(profile, fields)
                session.add(profile)
                session.flush()
                return profile_to_dict(profile)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to create profile", details=str(exc)) from exc

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Patch profile columns in one transaction.

        Raises:
            StoreError: if the row is missing or the write fails
        """
        try:
            with session_scope() as session:
                profile = session.get(Profile, user_id)
                if profile is None:
                    raise StoreError("Failed to update profile", details=f"profile {user_id} not found")
                _apply_fields(profile, fields)
                session.flush()
                return profile_to_dict(profile)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to update profile", details=str(exc)) from exc

    def link_profile(self, user_id: str, fields: Dict[str, Any], intent_id: Optional[str] = None) -> Dict[str, Any]:
        """Patch the profile and mark ``intent_id`` linked in a single transaction."""
        try:
            with session_scope() as session:
                profile = session.get(Profile, user_id)
                if profile is None:
                    raise StoreError("Failed to update profile", details=f"profile {user_id} not found")
                _apply_fields(profile, fields)
                if intent_id:
                    intent = session.get(ProvisioningIntent, intent_id)
                    if intent is not None:
                        intent.state = IntentState.LINKED
                session.flush()
                return profile_to_dict(profile)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to update profile", details=str(exc)) from exc

    # ========================================================================
    # Provisioning intents
    # ========================================================================

    def record_intent(self, user_id: str, mode: str, player_pda: str) -> str:
        try:
            with session_scope() as session:
                intent = ProvisioningIntent(user_id=user_id, mode=mode, player_pda=player_pda)
                session.add(intent)
                session.flush()
                return intent.id
        except SQLAlchemyError as exc:
            raise StoreError("Failed to record provisioning intent", details=str(exc)) from exc

    def update_intent(
        self, intent_id: str, state: str, tx_signature: Optional[str] = None, error: Optional[str] = None
    ) -> None:
        try:
            with session_scope() as session:
                intent = session.get(ProvisioningIntent, intent_id)
                if intent is None:
                    raise StoreError("Failed to update provisioning intent", details=f"intent {intent_id} not found")
                intent.state = state
                if tx_signature:
                    intent.tx_signature = tx_signature
                if error:
                    intent.error = error
        except SQLAlchemyError as exc:
            raise StoreError("Failed to update provisioning intent", details=str(exc)) from exc

    def get_intent(self, intent_id: str) -> Optional[Dict[str, Any]]:
        try:
            with session_scope() as session:
                intent = session.get(ProvisioningIntent, intent_id)
                return intent_to_dict(intent) if intent else None
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load provisioning intent", details=str(exc)) from exc

    def list_intents(self, user_id: str) -> List[Dict[str, Any]]:
        """Return the user's intents, newest first."""
        try:
            with session_scope() as session:
                rows = (
                    session.query(ProvisioningIntent)
                    .filter_by(user_id=user_id)
                    .order_by(ProvisioningIntent.created_at.desc())
                    .all()
                )
                return [intent_to_dict(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load provisioning intents", details=str(exc)) from exc

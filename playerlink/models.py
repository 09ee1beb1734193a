"""
SQLAlchemy database models for playerlink.

The ``profiles`` table is owned by the identity system; this service only
patches the ledger-linkage columns. ``provisioning_intents`` is this service's
own log of provisioning attempts.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

PDA_STATUSES = ("none", "pending", "creating", "active", "failed")


class IntentState:
    REQUESTED = "requested"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    LINKED = "linked"
    FAILED = "failed"


def generate_uuid():
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


def utc_now():
    """Generate timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Profile(Base):
    """
    Per-user profile row, one per identity.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(
            "pda_status IN (" + ", ".join(f"'{status}'" for status in PDA_STATUSES) + ")",
            name="ck_profiles_pda_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(255))
    user_type = Column(String(10), default="WEB2", nullable=False)
    wallet_address = Column(String(44), index=True)
    player_pda = Column(String(44), unique=True)
    cobx_token_account = Column(String(44))
    pda_status = Column(String(16), default="pending", nullable=False)
    pda_created_at = Column(DateTime)
    character_name = Column(Text, default="Unnamed Player")
    character_class = Column(Integer, default=0)
    session_private_key = Column(String(64))
    session_identity = Column(String(64))
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Profile(id={self.id}, pda={self.player_pda}, status={self.pda_status})>"


class ProvisioningIntent(Base):
    """
    One provisioning attempt and how far it got.

    States move requested -> submitted -> confirmed -> linked, or end in failed.
    A row left in ``confirmed`` marks a ledger write whose profile link never
    completed.
    """

    __tablename__ = "provisioning_intents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    mode = Column(String(16), nullable=False)
    player_pda = Column(String(44), nullable=False)
    state = Column(String(16), default=IntentState.REQUESTED, nullable=False)
    tx_signature = Column(String(128))
    error = Column(Text)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("idx_intent_user", "user_id"),
        Index("idx_intent_state", "state"),
    )

    def __repr__(self):
        return f"<ProvisioningIntent(id={self.id}, user={self.user_id}, state={self.state})>"

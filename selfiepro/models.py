from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, String, Text, text

from selfiepro.database import Base

UNKNOWN = "UNKNOWN"
PLACEHOLDER_PREFIX = "MANUAL-"


def generate_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
    )

    user_id = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    country = Column(String, nullable=True)
    credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Plan(Base):
    __tablename__ = "plans"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    credits = Column(Integer, nullable=False)


_NOT_PLACEHOLDER_SQLITE = "is_placeholder = 0"
_NOT_PLACEHOLDER_PG = "NOT is_placeholder"
_METADATA_KNOWN = f"sender_name != '{UNKNOWN}' AND receipt_timestamp_text != '{UNKNOWN}'"


class Transaction(Base):
    """An accepted payment receipt. Rows are never updated or deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        # System-generated placeholder ids never collide; receipt ids always do,
        # whatever they look like
        Index(
            "uq_transactions_external_id",
            "external_transaction_id",
            unique=True,
            sqlite_where=text(_NOT_PLACEHOLDER_SQLITE),
            postgresql_where=text(_NOT_PLACEHOLDER_PG),
        ),
        # Same sender + exact receipt time is the same real-world transfer
        Index(
            "uq_transactions_sender_timestamp",
            "sender_name",
            "receipt_timestamp_text",
            unique=True,
            sqlite_where=text(_METADATA_KNOWN),
            postgresql_where=text(_METADATA_KNOWN),
        ),
    )

    id = Column(String, primary_key=True, default=generate_id)
    external_transaction_id = Column(String, nullable=False)
    is_placeholder = Column(Boolean, nullable=False, default=False)
    sender_name = Column(String, nullable=False, default=UNKNOWN)
    receipt_timestamp_text = Column(String, nullable=False, default=UNKNOWN)
    amount = Column(Integer, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class Generation(Base):
    __tablename__ = "generations"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=False, index=True)
    template = Column(String, nullable=False)
    image_data = Column(Text, nullable=False)  # data URL
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class TrackedPurchase(Base):
    __tablename__ = "tracked_purchases"

    transaction_id = Column(String, primary_key=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

"""
Credit ledger.

The only writer of user credit balances outside the admin override.

grant():  appends the accepted receipt and increments the balance in ONE
          database transaction. The unique indexes on `transactions` decide
          races between two submissions of the same receipt. The detector's
          earlier read is only a pre-check.
debit():  single conditional UPDATE (credits >= amount), never read-then-write,
          so concurrent spends on one user cannot drive the balance negative.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from selfiepro import models
from selfiepro.services.history import TransactionHistory

logger = logging.getLogger("selfiepro.ledger")


class LedgerError(Exception):
    pass


class InsufficientCredits(LedgerError):
    def __init__(self, user_id: str, requested: int, available: Optional[int] = None):
        self.user_id = user_id
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient credits: requested {requested}, available {available}")


CONFLICT_EXTERNAL_ID = "external_id"
CONFLICT_METADATA = "metadata"


class PersistenceConflict(LedgerError):
    """Another submission of the same receipt was committed first."""

    def __init__(self, message: str, kind: str = CONFLICT_EXTERNAL_ID):
        self.kind = kind
        super().__init__(message)


class AccountNotFound(ValueError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Account {user_id} not found")


class LedgerUnavailable(RuntimeError):
    pass


def _conflict_kind(error: IntegrityError) -> str:
    # SQLite names the columns, PostgreSQL names the index
    detail = str(error.orig)
    if "sender_name" in detail or "uq_transactions_sender_timestamp" in detail:
        return CONFLICT_METADATA
    return CONFLICT_EXTERNAL_ID


def _balance(db: Session, user_id: str) -> Optional[int]:
    return db.query(models.Profile.credits).filter(
        models.Profile.user_id == user_id
    ).scalar()


def get_profile(db: Session, user_id: str) -> models.Profile:
    profile = db.query(models.Profile).filter(models.Profile.user_id == user_id).first()
    if profile is None:
        raise AccountNotFound(user_id)
    return profile


def get_balance(db: Session, user_id: str) -> int:
    return get_profile(db, user_id).credits


def open_account(db: Session, user_id: str, full_name: str = None, country: str = None) -> models.Profile:
    """Create the user's balance row at 0 credits. Returns the existing row if already open."""
    existing = db.query(models.Profile).filter(models.Profile.user_id == user_id).first()
    if existing is not None:
        return existing

    profile = models.Profile(user_id=user_id, full_name=full_name, country=country, credits=0)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # opened concurrently by another request
        db.rollback()
        return get_profile(db, user_id)
    db.refresh(profile)
    logger.info("Opened account %s", user_id)
    return profile


def grant(db: Session, user_id: str, record: models.Transaction, credits_to_grant: int) -> int:
    """
    Record an accepted receipt and add credits, atomically.

    Raises:
        PersistenceConflict: a colliding receipt was committed first
        AccountNotFound: the user has no balance row
        LedgerUnavailable: storage failure (nothing is written)
    """
    if credits_to_grant < 0:
        raise ValueError("credits_to_grant must not be negative")

    record.user_id = user_id
    history = TransactionHistory(db)
    try:
        history.append(record)
        updated = db.query(models.Profile).filter(
            models.Profile.user_id == user_id
        ).update(
            {models.Profile.credits: models.Profile.credits + credits_to_grant},
            synchronize_session=False,
        )
        if updated == 0:
            db.rollback()
            raise AccountNotFound(user_id)
        new_balance = _balance(db, user_id)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info(
            "Grant for %s lost the race on receipt %s",
            user_id, record.external_transaction_id,
        )
        raise PersistenceConflict(
            f"Receipt {record.external_transaction_id} was already recorded",
            kind=_conflict_kind(e),
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Grant for %s failed: %s", user_id, e.__class__.__name__)
        raise LedgerUnavailable("Credit ledger unavailable") from e

    logger.info(
        "Granted %d credits to %s for receipt %s (balance %d)",
        credits_to_grant, user_id, record.external_transaction_id, new_balance,
    )
    return new_balance


def debit(db: Session, user_id: str, amount: int) -> int:
    """
    Spend credits. Never leaves a negative balance.

    Raises:
        InsufficientCredits: amount exceeds the current balance (nothing changes)
        AccountNotFound: the user has no balance row
        LedgerUnavailable: storage failure
    """
    if amount <= 0:
        raise ValueError("Debit amount must be positive")

    try:
        updated = db.query(models.Profile).filter(
            models.Profile.user_id == user_id,
            models.Profile.credits >= amount,
        ).update(
            {models.Profile.credits: models.Profile.credits - amount},
            synchronize_session=False,
        )
        if updated == 0:
            available = _balance(db, user_id)
            db.rollback()
            if available is None:
                raise AccountNotFound(user_id)
            raise InsufficientCredits(user_id, amount, available)
        new_balance = _balance(db, user_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Debit for %s failed: %s", user_id, e.__class__.__name__)
        raise LedgerUnavailable("Credit ledger unavailable") from e

    logger.info("Debited %d credits from %s (balance %d)", amount, user_id, new_balance)
    return new_balance

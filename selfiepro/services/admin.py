"""
Privileged operations for the admin panel.

Nothing in the user-facing payment or generation flows imports this module.
Routes reach it only through the admin-token dependency.
"""
import logging
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from selfiepro import models
from selfiepro.services.ledger import AccountNotFound, LedgerUnavailable

logger = logging.getLogger("selfiepro.admin")


def admin_set_balance(db: Session, user_id: str, new_balance: int) -> int:
    """Overwrite a user's credit balance (support correction). Bypasses grant/debit rules."""
    if new_balance < 0:
        raise ValueError("Balance must not be negative")

    try:
        updated = db.query(models.Profile).filter(
            models.Profile.user_id == user_id
        ).update({models.Profile.credits: new_balance}, synchronize_session=False)
        if updated == 0:
            db.rollback()
            raise AccountNotFound(user_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise LedgerUnavailable("Credit ledger unavailable") from e

    logger.warning("Admin override: balance of %s set to %d", user_id, new_balance)
    return new_balance


def list_profiles(db: Session) -> List[models.Profile]:
    return db.query(models.Profile).order_by(models.Profile.created_at.desc()).all()


def stats(db: Session) -> Dict[str, int]:
    total_users = db.query(func.count(models.Profile.user_id)).scalar() or 0
    total_transactions = db.query(func.count(models.Transaction.id)).scalar() or 0
    total_revenue = db.query(func.coalesce(func.sum(models.Transaction.amount), 0)).scalar() or 0
    return {
        "total_users": total_users,
        "total_transactions": total_transactions,
        "total_revenue": int(total_revenue),
    }

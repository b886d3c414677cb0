"""
Transaction history store.

Append-only log of accepted payment receipts. The detector reads it for its
duplicate pre-checks. The ledger appends to it inside the grant transaction,
where the unique indexes on `transactions` are the real enforcement point.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from selfiepro import models
from selfiepro.models import UNKNOWN


class TransactionHistory:
    def __init__(self, db: Session):
        self.db = db

    def append(self, record: models.Transaction) -> models.Transaction:
        """Stage a record in the caller's transaction. Only the ledger calls this."""
        self.db.add(record)
        self.db.flush()
        return record

    def find_by_external_id(self, external_id: str) -> Optional[models.Transaction]:
        """Receipt ids only; system-generated placeholders never match."""
        if not external_id or external_id == UNKNOWN:
            return None
        return self.db.query(models.Transaction).filter(
            models.Transaction.external_transaction_id == external_id,
            models.Transaction.is_placeholder.is_(False),
        ).first()

    def find_by_metadata(self, sender_name: str, timestamp_text: str) -> Optional[models.Transaction]:
        if sender_name == UNKNOWN or timestamp_text == UNKNOWN:
            return None
        return self.db.query(models.Transaction).filter(
            models.Transaction.sender_name == sender_name,
            models.Transaction.receipt_timestamp_text == timestamp_text,
        ).first()

    def list_for_user(self, user_id: str) -> List[models.Transaction]:
        return self.db.query(models.Transaction).filter(
            models.Transaction.user_id == user_id
        ).order_by(models.Transaction.created_at.desc()).all()

    def list_all(self) -> List[models.Transaction]:
        return self.db.query(models.Transaction).order_by(
            models.Transaction.created_at.desc()
        ).all()

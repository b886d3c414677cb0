import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from selfiepro import config, models

logger = logging.getLogger("selfiepro.tracking")


class PurchaseTracker:
    """
    Records completed credit purchases for marketing attribution.

    Each transaction id is recorded at most once; the primary key of
    `tracked_purchases` is the guard, so repeated calls (retries, page reloads)
    are no-ops.
    """

    def __init__(self, pixel_ids=None, currency: str = None):
        self.pixel_ids = dict(pixel_ids or {})
        self.currency = currency or config.CURRENCY

    def already_recorded(self, db: Session, transaction_id: str) -> bool:
        return db.get(models.TrackedPurchase, transaction_id) is not None

    def record_purchase(self, db: Session, transaction_id: str, amount: int, currency: str = None) -> bool:
        """Returns False when this transaction was already recorded."""
        if self.already_recorded(db, transaction_id):
            logger.info("Purchase %s already tracked, skipping", transaction_id)
            return False

        db.add(models.TrackedPurchase(
            transaction_id=transaction_id,
            amount=amount,
            currency=currency or self.currency,
        ))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False

        for vendor, pixel_id in self.pixel_ids.items():
            logger.info(
                "Purchase event %s -> %s pixel %s (%d %s)",
                transaction_id, vendor, pixel_id, amount, currency or self.currency,
            )
        return True

"""
Receipt verification service.

Orchestrates:
1. Send the receipt to the vision analyzer (bounded by VISION_TIMEOUT_SECONDS)
2. Evaluate the claim against transaction history (detector)
3. On accept, record the receipt and grant credits atomically (ledger)
4. Record the purchase for tracking (best effort)

Nothing is written unless step 3 commits, so any failure before that point
can be retried with the same receipt.
"""
import asyncio
import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from selfiepro import config, models
from selfiepro.adapters.base import AnalysisUnavailable, BaseReceiptAnalyzer
from selfiepro.models import UNKNOWN, PLACEHOLDER_PREFIX
from selfiepro.services import ledger
from selfiepro.services.detector import (
    METADATA_MESSAGE,
    Accept,
    ReasonCode,
    duplicate_id_message,
    evaluate,
)
from selfiepro.services.history import TransactionHistory
from selfiepro.services.tracking import PurchaseTracker

logger = logging.getLogger("selfiepro.verification")

ANALYSIS_UNAVAILABLE_MESSAGE = (
    "Receipt analysis unavailable. Please try again in a moment; "
    "no credits were charged and nothing was recorded."
)
LEDGER_UNAVAILABLE_MESSAGE = (
    "We could not record your payment right now. Please try again; "
    "no credits were added and nothing was recorded."
)


class VerificationOutcome:
    def __init__(
        self,
        decision: str,
        reason_code: ReasonCode,
        message: str,
        credits_granted: int = 0,
        balance: Optional[int] = None,
        transaction: Optional[models.Transaction] = None,
    ):
        self.decision = decision
        self.reason_code = reason_code
        self.message = message
        self.credits_granted = credits_granted
        self.balance = balance
        self.transaction = transaction

    @property
    def accepted(self) -> bool:
        return self.decision == "accept"


def _reject(reason_code: ReasonCode, message: str) -> VerificationOutcome:
    return VerificationOutcome(decision="reject", reason_code=reason_code, message=message)


def placeholder_transaction_id() -> str:
    return f"{PLACEHOLDER_PREFIX}{int(time.time() * 1000)}"


async def verify_receipt(
    db: Session,
    analyzer: BaseReceiptAnalyzer,
    user_id: str,
    image_bytes: bytes,
    mime_type: str,
    plan: models.Plan,
    tolerance: int = None,
    tracker: Optional[PurchaseTracker] = None,
    timeout: float = None,
) -> VerificationOutcome:
    """
    Verify one receipt submission for `plan` and grant its credits when accepted.

    Raises:
        AccountNotFound: the user has no balance row
    """
    tolerance = config.AMOUNT_TOLERANCE if tolerance is None else tolerance
    timeout = config.VISION_TIMEOUT_SECONDS if timeout is None else timeout

    # Fail before the (slow, billed) vision call when there is nowhere to put credits
    ledger.get_profile(db, user_id)

    try:
        claim = await asyncio.wait_for(
            analyzer.extract(image_bytes, mime_type, plan.price, tolerance),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Receipt analysis timed out after %ss for %s", timeout, user_id)
        return _reject(ReasonCode.TRANSPORT_FAILURE, ANALYSIS_UNAVAILABLE_MESSAGE)
    except AnalysisUnavailable as e:
        logger.warning("Receipt analysis unavailable for %s: %s", user_id, e)
        return _reject(ReasonCode.TRANSPORT_FAILURE, ANALYSIS_UNAVAILABLE_MESSAGE)

    history = TransactionHistory(db)
    decision = evaluate(claim, plan.price, tolerance, history, plan.credits)
    if not isinstance(decision, Accept):
        logger.info("Receipt rejected for %s: %s", user_id, decision.reason_code.value)
        return _reject(decision.reason_code, decision.message)

    is_placeholder = claim.transaction_id == UNKNOWN
    external_id = placeholder_transaction_id() if is_placeholder else claim.transaction_id

    record = models.Transaction(
        external_transaction_id=external_id,
        is_placeholder=is_placeholder,
        sender_name=claim.sender_name,
        receipt_timestamp_text=claim.timestamp_text,
        amount=plan.price,
    )
    try:
        balance = ledger.grant(db, user_id, record, decision.credits_to_grant)
    except ledger.PersistenceConflict as e:
        # Another submission of this receipt committed between our read and our write
        logger.info("Receipt for %s lost an insert race (%s)", user_id, e.kind)
        if e.kind == ledger.CONFLICT_METADATA:
            return _reject(ReasonCode.PERSISTENCE_CONFLICT, METADATA_MESSAGE)
        return _reject(ReasonCode.PERSISTENCE_CONFLICT, duplicate_id_message(external_id))
    except ledger.LedgerUnavailable:
        return _reject(ReasonCode.TRANSPORT_FAILURE, LEDGER_UNAVAILABLE_MESSAGE)

    db.refresh(record)

    if tracker is not None:
        try:
            tracker.record_purchase(db, record.external_transaction_id, record.amount)
        except Exception:
            logger.exception("Purchase tracking failed for %s", record.external_transaction_id)

    return VerificationOutcome(
        decision="accept",
        reason_code=ReasonCode.ACCEPTED,
        message=f"Payment verified. {decision.credits_to_grant} credits added to your account.",
        credits_granted=decision.credits_to_grant,
        balance=balance,
        transaction=record,
    )

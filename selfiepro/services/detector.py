"""
Fraud / duplicate detection for payment receipt claims.

Rules run in a fixed order and the first failure wins:
  1. AMOUNT_MISMATCH     the model did not see the plan amount (± tolerance)
  2. FORGERY_SUSPECTED   the model saw signs of editing (never overridden by confidence)
  3. DUPLICATE_ID        the receipt's transaction id was already accepted
  4. DUPLICATE_METADATA  same sender + exact receipt time was already accepted under
                         another id, which means the id was edited on a reused screenshot

UNKNOWN fields never take part in a duplicate check.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Union

from selfiepro.adapters.base import VerificationClaim
from selfiepro.models import UNKNOWN
from selfiepro.services.history import TransactionHistory


class ReasonCode(str, Enum):
    ACCEPTED = "ACCEPTED"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    FORGERY_SUSPECTED = "FORGERY_SUSPECTED"
    DUPLICATE_ID = "DUPLICATE_ID"
    DUPLICATE_METADATA = "DUPLICATE_METADATA"
    PERSISTENCE_CONFLICT = "PERSISTENCE_CONFLICT"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"


@dataclass
class Accept:
    credits_to_grant: int


@dataclass
class Reject:
    reason_code: ReasonCode
    message: str


Decision = Union[Accept, Reject]


def duplicate_id_message(transaction_id: str) -> str:
    return f"This Transaction ID ({transaction_id}) has already been used."


def _amount_message(claim: VerificationClaim, expected_amount: int, tolerance: int) -> str:
    return (
        f"Verification failed: {claim.reason} (Confidence: {claim.confidence}%). "
        f"Expected an amount between {expected_amount - tolerance} and {expected_amount + tolerance}."
    )


FORGERY_MESSAGE = (
    "Security alert: we detected signs of digital editing on this receipt. "
    "Please upload the original, unedited screenshot."
)

METADATA_MESSAGE = (
    "Duplicate detected: a transaction with this exact timestamp and sender was already "
    "processed under a different ID. This receipt appears to be edited."
)


def evaluate(
    claim: VerificationClaim,
    expected_amount: int,
    tolerance: int,
    history: TransactionHistory,
    credits_to_grant: int,
) -> Decision:
    if not claim.amount_verified:
        return Reject(ReasonCode.AMOUNT_MISMATCH, _amount_message(claim, expected_amount, tolerance))

    if claim.is_edited:
        return Reject(ReasonCode.FORGERY_SUSPECTED, FORGERY_MESSAGE)

    if claim.transaction_id != UNKNOWN:
        if history.find_by_external_id(claim.transaction_id) is not None:
            return Reject(ReasonCode.DUPLICATE_ID, duplicate_id_message(claim.transaction_id))

    if claim.sender_name != UNKNOWN and claim.timestamp_text != UNKNOWN:
        if history.find_by_metadata(claim.sender_name, claim.timestamp_text) is not None:
            return Reject(ReasonCode.DUPLICATE_METADATA, METADATA_MESSAGE)

    return Accept(credits_to_grant)

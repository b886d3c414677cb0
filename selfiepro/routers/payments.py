from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from selfiepro.adapters.base import BaseReceiptAnalyzer
from selfiepro.database import get_db
from selfiepro.dependencies import get_current_user_id, get_purchase_tracker, get_receipt_analyzer
from selfiepro.schemas.requests import VerifyReceiptRequest
from selfiepro.schemas.responses import TransactionResponse, VerificationResponse
from selfiepro.services import plans
from selfiepro.services.detector import ReasonCode
from selfiepro.services.history import TransactionHistory
from selfiepro.services.ledger import AccountNotFound
from selfiepro.services.tracking import PurchaseTracker
from selfiepro.services.verification import verify_receipt

router = APIRouter()


@router.post("/verify", response_model=VerificationResponse)
async def verify(
    request: VerifyReceiptRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    analyzer: BaseReceiptAnalyzer = Depends(get_receipt_analyzer),
    tracker: PurchaseTracker = Depends(get_purchase_tracker),
):
    """
    Verify a payment receipt screenshot for a plan and grant its credits.

    - The vision model reads amount, transaction id, sender, time and editing signs
    - The claim is checked for amount, forgery, reused id and reused sender+time
    - Accepted receipts are recorded and credited atomically

    Rejections are returned with 200 and a reason_code; only an unavailable
    analysis service yields 502 (safe to retry with the same receipt).
    """
    try:
        plan = plans.get_plan(db, request.plan_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        outcome = await verify_receipt(
            db,
            analyzer,
            user_id,
            request.image_bytes(),
            request.mime_type,
            plan,
            tracker=tracker,
        )
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    if outcome.reason_code == ReasonCode.TRANSPORT_FAILURE:
        raise HTTPException(status_code=502, detail=outcome.message)

    return VerificationResponse(
        decision=outcome.decision,
        reason_code=outcome.reason_code.value,
        message=outcome.message,
        credits_granted=outcome.credits_granted,
        balance=outcome.balance,
        transaction=(
            TransactionResponse.model_validate(outcome.transaction)
            if outcome.transaction is not None else None
        ),
    )


@router.get("/transactions", response_model=List[TransactionResponse])
def my_transactions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Accepted payments for the current user, newest first."""
    return TransactionHistory(db).list_for_user(user_id)

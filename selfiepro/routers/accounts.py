from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from selfiepro.database import get_db
from selfiepro.dependencies import get_current_user_id
from selfiepro.schemas.requests import OpenAccountRequest
from selfiepro.schemas.responses import PlanResponse, ProfileResponse
from selfiepro.services import ledger, plans

router = APIRouter()


@router.post("/accounts", response_model=ProfileResponse, status_code=201)
def open_account(
    request: OpenAccountRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create the caller's credit balance (0 credits). Idempotent."""
    return ledger.open_account(db, user_id, request.full_name, request.country)


@router.get("/accounts/me", response_model=ProfileResponse)
def me(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return ledger.get_profile(db, user_id)
    except ledger.AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/plans", response_model=List[PlanResponse])
def list_plans(db: Session = Depends(get_db)):
    return plans.list_plans(db)

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from selfiepro.database import get_db
from selfiepro.dependencies import require_admin
from selfiepro.schemas.requests import SetCreditsRequest, UpdatePlanRequest
from selfiepro.schemas.responses import (
    AdminStats,
    BalanceResponse,
    PlanResponse,
    ProfileResponse,
    TransactionResponse,
)
from selfiepro.services import admin, plans
from selfiepro.services.history import TransactionHistory
from selfiepro.services.ledger import AccountNotFound, LedgerUnavailable

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/users", response_model=List[ProfileResponse])
def users(db: Session = Depends(get_db)):
    return admin.list_profiles(db)


@router.get("/transactions", response_model=List[TransactionResponse])
def transactions(db: Session = Depends(get_db)):
    """Every accepted payment, newest first."""
    return TransactionHistory(db).list_all()


@router.get("/stats", response_model=AdminStats)
def stats(db: Session = Depends(get_db)):
    return AdminStats(**admin.stats(db))


@router.put("/users/{user_id}/credits", response_model=BalanceResponse)
def set_credits(user_id: str, request: SetCreditsRequest, db: Session = Depends(get_db)):
    """Overwrite a user's balance (support correction)."""
    try:
        credits = admin.admin_set_balance(db, user_id, request.credits)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LedgerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return BalanceResponse(user_id=user_id, credits=credits)


@router.put("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(plan_id: str, request: UpdatePlanRequest, db: Session = Depends(get_db)):
    try:
        return plans.update_plan(db, plan_id, request.price, request.credits)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

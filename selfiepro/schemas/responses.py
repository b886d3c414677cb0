from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: int
    credits: int


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    full_name: Optional[str] = None
    country: Optional[str] = None
    credits: int
    created_at: datetime


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_transaction_id: str
    is_placeholder: bool
    sender_name: str
    receipt_timestamp_text: str
    amount: int
    user_id: str
    created_at: datetime


class VerificationResponse(BaseModel):
    decision: str  # "accept" | "reject"
    reason_code: str
    message: str
    credits_granted: int = 0
    balance: Optional[int] = None
    transaction: Optional[TransactionResponse] = None


class GenerationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    template: str
    image_data: str
    created_at: datetime


class GenerationResult(BaseModel):
    generation: GenerationResponse
    balance: int


class AdminStats(BaseModel):
    total_users: int
    total_transactions: int
    total_revenue: int


class BalanceResponse(BaseModel):
    user_id: str
    credits: int

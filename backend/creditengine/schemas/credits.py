from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    balance: int
    lifetime_earned: int


class CreditTransactionResponse(BaseModel):
    id: int
    type: str
    amount: int
    balance_after: int
    reason: str
    event_key: Optional[str] = None
    video_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="entry_metadata")
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "populate_by_name": True}


class CreditPackageResponse(BaseModel):
    id: str
    label: str
    credits: int
    bonus: int
    total_credits: int
    price: int
    currency: str


class PaymentIntentCreate(BaseModel):
    package_id: str = Field(min_length=1, max_length=64)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    package: CreditPackageResponse


class PurchaseCompleteRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=255)


class PurchaseResponse(BaseModel):
    status: str
    credits: int
    balance: int
    package_id: str


class BoostRequest(BaseModel):
    video_id: str = Field(min_length=1, max_length=255)
    amount: int
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=128)


class BoostResponse(BaseModel):
    status: str
    balance: int
    video_id: str
    boost_amount: int

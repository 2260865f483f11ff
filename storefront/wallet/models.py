from typing import Optional
from pydantic import BaseModel, Field
from storefront.schema.full_schema import TransactionType, WalletStatus


class TopupIn(BaseModel):
    amount: int

    model_config = {"extra": "forbid"}


class TopupVerifyIn(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=64)
    razorpay_signature: str = Field(..., min_length=1, max_length=256)

    model_config = {"extra": "forbid"}


class WalletAdjustIn(BaseModel):
    amount: int
    type: TransactionType
    description: str = Field(..., min_length=3, max_length=250)

    model_config = {"extra": "forbid"}


class WalletStatusIn(BaseModel):
    status: WalletStatus
    reason: Optional[str] = Field(None, max_length=255)

    model_config = {"extra": "forbid"}

from pydantic import BaseModel, Field


class CreatePaymentOrderIn(BaseModel):
    order_number: str = Field(..., min_length=8, max_length=32)

    model_config = {"extra": "forbid"}


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=64)
    razorpay_signature: str = Field(..., min_length=1, max_length=256)

    model_config = {"extra": "forbid"}

from typing import Optional
from pydantic import BaseModel, Field
from storefront.schema.full_schema import OrderStatus, PaymentGateway
from storefront.user.models import AddressIn


class OrderCreateIn(BaseModel):
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    payment_gateway: PaymentGateway
    notes: Optional[str] = Field(None, max_length=1000)

    model_config = {"extra": "forbid"}


class CancelOrderIn(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)

    model_config = {"extra": "forbid"}


class ReturnRequestIn(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)

    model_config = {"extra": "forbid"}


class OrderUpdateIn(BaseModel):
    shipping_address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None
    notes: Optional[str] = Field(None, max_length=2000)
    tracking_number: Optional[str] = Field(None, max_length=64)
    shipping_carrier: Optional[str] = Field(None, max_length=64)
    shipping_cost: Optional[int] = None
    tax_amount: Optional[int] = None
    discount_amount: Optional[int] = None

    model_config = {"extra": "forbid"}


class OrderStatusIn(BaseModel):
    order_status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=64)
    shipping_carrier: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class RefundIn(BaseModel):
    amount: int
    reason: str = Field(..., min_length=3, max_length=500)
    to_wallet: bool = True

    model_config = {"extra": "forbid"}

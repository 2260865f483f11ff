from pydantic import BaseModel, Field
from storefront.cart.constants import MAX_LINE_QUANTITY


class CartItemIn(BaseModel):
    product_variant_id: str
    quantity: int = Field(1, ge=1, le=MAX_LINE_QUANTITY)

    model_config = {"extra": "forbid"}


class CartItemUpdateIn(BaseModel):
    quantity: int = Field(..., ge=0, le=MAX_LINE_QUANTITY)

    model_config = {"extra": "forbid"}

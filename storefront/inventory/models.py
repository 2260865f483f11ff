from typing import Optional
from pydantic import BaseModel, Field, model_validator


class InventoryUpdateIn(BaseModel):
    """Either an absolute quantity or a signed adjustment."""
    stock_quantity: Optional[int] = Field(None, ge=0)
    adjustment: Optional[int] = None
    min_stock_level: Optional[int] = Field(None, ge=0)
    reason: Optional[str] = Field(None, max_length=255)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def one_of_quantity_or_adjustment(self):
        if self.stock_quantity is not None and self.adjustment is not None:
            raise ValueError("Provide stock_quantity or adjustment, not both")
        if self.stock_quantity is None and self.adjustment is None and self.min_stock_level is None:
            raise ValueError("Nothing to update")
        return self

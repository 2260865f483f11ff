from typing import List, Optional
from pydantic import BaseModel, Field


class ProductCreateIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    supplier_id: Optional[str] = None

    model_config = {"extra": "forbid"}


class ProductUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    supplier_id: Optional[str] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}


class OptionValueIn(BaseModel):
    option_type: str = Field(..., min_length=1, max_length=50)
    option_value: str = Field(..., min_length=1, max_length=100)

    model_config = {"extra": "forbid"}


class VariantCreateIn(BaseModel):
    sku_code: str = Field(..., min_length=2, max_length=64)
    price: int = Field(..., ge=0)
    option_values: List[OptionValueIn] = Field(default_factory=list)
    base_unit_variant_id: Optional[str] = None
    pack_multiplier: int = Field(1, ge=1)
    sort_order: int = 0
    initial_stock: int = Field(0, ge=0)
    min_stock_level: int = Field(5, ge=0)

    model_config = {"extra": "forbid"}


class VariantUpdateIn(BaseModel):
    sku_code: Optional[str] = Field(None, min_length=2, max_length=64)
    price: Optional[int] = Field(None, ge=0)
    option_values: Optional[List[OptionValueIn]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}

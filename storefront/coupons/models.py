import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from storefront.coupons.constants import COUPON_CODE_PATTERN, ELIGIBILITY_CRITERIA
from storefront.schema.full_schema import DiscountType


def _check_criteria(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return values
    values = [v.upper() for v in values]
    unknown = sorted(set(values) - set(ELIGIBILITY_CRITERIA))
    if unknown:
        raise ValueError(f"Unknown eligibility criteria: {', '.join(unknown)}")
    return values or ["NONE"]


class CampaignCreateIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=160)
    description: Optional[str] = Field(None, max_length=2000)
    code_prefix: str = Field("CPN", pattern=r"^[A-Z0-9]{2,20}$")
    discount_type: DiscountType
    discount_value: int = Field(..., ge=0)
    min_purchase_amount: int = Field(0, ge=0)
    max_coupon_discount: Optional[int] = Field(None, gt=0)
    valid_from: datetime
    valid_until: datetime
    max_global_usage: Optional[int] = Field(None, ge=1)
    max_usage_per_user: int = Field(1, ge=1)
    is_unique_per_user: bool = True
    eligibility_criteria: List[str] = Field(default_factory=lambda: ["NONE"])
    applicable_category_ids: List[str] = Field(default_factory=list)
    applicable_variant_ids: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("eligibility_criteria")
    @classmethod
    def check_criteria(cls, v):
        return _check_criteria(v)

    @model_validator(mode="after")
    def check_window_and_value(self):
        if self.valid_from >= self.valid_until:
            raise ValueError("valid_from must be before valid_until")
        if self.discount_type == DiscountType.PERCENTAGE and not 0 < self.discount_value <= 100:
            raise ValueError("Percentage discount must be in (0, 100]")
        if self.discount_type == DiscountType.AMOUNT and self.discount_value <= 0:
            raise ValueError("Amount discount must be positive")
        return self


class CampaignUpdateIn(BaseModel):
    description: Optional[str] = Field(None, max_length=2000)
    discount_value: Optional[int] = Field(None, ge=0)
    min_purchase_amount: Optional[int] = Field(None, ge=0)
    max_coupon_discount: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_global_usage: Optional[int] = Field(None, ge=1)
    max_usage_per_user: Optional[int] = Field(None, ge=1)
    eligibility_criteria: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    applicable_variant_ids: Optional[List[str]] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}

    @field_validator("eligibility_criteria")
    @classmethod
    def check_criteria(cls, v):
        return _check_criteria(v)


class AssignCouponsIn(BaseModel):
    user_ids: List[str] = Field(..., min_length=1, max_length=1000)
    expires_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}


class CouponCodeIn(BaseModel):
    coupon_code: str = Field(..., min_length=4, max_length=50)

    model_config = {"extra": "forbid"}

    @field_validator("coupon_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not re.match(COUPON_CODE_PATTERN, v):
            raise ValueError("Invalid coupon code format")
        return v

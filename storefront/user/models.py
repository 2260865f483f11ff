from typing import List, Optional
from pydantic import BaseModel, Field


class ChangePasswordIn(BaseModel):
    current_password: str = Field(..., examples=["CurrentStrongPassw0rd!"])
    new_password: str = Field(..., examples=["NewStrongPassw0rd!"])


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = Field(None, max_length=128)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")

    model_config = {"extra": "forbid"}


class AddressIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=128)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=r"^[0-9]{6}$")
    country: str = Field("India", max_length=64)
    phone_number: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")

    model_config = {"extra": "forbid"}


class AddressCreateIn(AddressIn):
    is_default: bool = False


class AddressUpdateIn(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=128)
    address_line1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^[0-9]{6}$")
    country: Optional[str] = Field(None, max_length=64)
    phone_number: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    is_default: Optional[bool] = None

    model_config = {"extra": "forbid"}


class UserStatusIn(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=255)


class SetRolesIn(BaseModel):
    role_names: List[str] = Field(..., min_length=1)
    reason: Optional[str] = None

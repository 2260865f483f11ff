from typing import Literal, Optional
from pydantic import BaseModel, Field


class SignupIn(BaseModel):
    email: str = Field(..., examples=["user@example.com"])
    password: str = Field(..., examples=["StrongPassw0rd!"])
    name: Optional[str] = Field(None, max_length=128, examples=["Full Name"])
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")

    model_config = {"extra": "forbid"}


class SignIn(BaseModel):
    email: str = Field(...)
    password: str = Field(...)


class RefreshIn(BaseModel):
    refresh_token: str = Field(..., min_length=16)


class VerifyRequestIn(BaseModel):
    channel: Literal["email", "sms"] = "email"


class VerifyConfirmIn(BaseModel):
    channel: Literal["email", "sms"] = "email"
    code: str = Field(..., pattern=r"^[0-9]{6}$")

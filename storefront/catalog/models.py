from typing import Optional
from pydantic import BaseModel, Field


class CategoryCreateIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    parent_id: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=1024)

    model_config = {"extra": "forbid"}


class CategoryUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    parent_id: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=1024)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}


class BrandCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    logo_url: Optional[str] = Field(None, max_length=1024)

    model_config = {"extra": "forbid"}


class BrandUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    logo_url: Optional[str] = Field(None, max_length=1024)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}


class SupplierCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=160)
    email: Optional[str] = Field(None, max_length=320)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    address: Optional[str] = Field(None, max_length=1000)

    model_config = {"extra": "forbid"}


class SupplierUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    email: Optional[str] = Field(None, max_length=320)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    address: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}

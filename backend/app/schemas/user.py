"""User schemas used for registration, responses and owner settings."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.app.core.settings import get_settings


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None
    company_name: Optional[str] = None


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    company_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OwnerSettingsBase(BaseModel):
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    phone: Optional[str] = None
    tax_id: Optional[str] = None


class OwnerSettingsUpdate(OwnerSettingsBase):
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        code = value.upper()
        if code not in get_settings().supported_currencies:
            raise ValueError(f"Unsupported currency: {value}")
        return code


class OwnerSettingsRead(OwnerSettingsBase):
    id: int
    email: EmailStr
    currency: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

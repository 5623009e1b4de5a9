"""Client schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ClientBase(BaseModel):
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    notes: Optional[str] = None


class ClientCreate(ClientBase):
    name: str = Field(min_length=1)
    email: EmailStr


class ClientUpdate(ClientBase):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None


class ClientRead(ClientBase):
    id: int
    owner_id: int
    name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientPage(BaseModel):
    items: List[ClientRead]
    total: int
    page: int
    page_size: int
    total_pages: int

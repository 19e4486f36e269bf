from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import CustomerStatus


class CustomerPreferences(BaseModel):
    language: str = "en"
    notifications: bool = True
    timezone: str = "UTC"


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    company: Optional[str] = None
    avatar: Optional[str] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    avatar: Optional[str] = None
    status: Optional[CustomerStatus] = None
    preferences: Optional[CustomerPreferences] = None


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    avatar: Optional[str] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)
    created_at: datetime
    updated_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True

from __future__ import annotations

import uuid
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.artifacts.base import BaseValidator
from app.registry.artifacts import validator


class ContactPayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    type: Literal["customer", "vendor", "driver"] = "customer"

    @field_validator("email")
    @classmethod
    def _email_has_at(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        text = value.strip().lower()
        if "@" not in text:
            raise ValueError("must be an email address")
        return text


@validator("Contact")
class ContactValidator(BaseValidator):
    schema = ContactPayload


class OrderCreatePayload(BaseModel):
    currency: str = Field(min_length=3, max_length=3)
    total: int = Field(default=0, ge=0)
    customer_uuid: Optional[uuid.UUID] = None
    status: str = "created"
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _currency_upper(cls, value: str) -> str:
        return value.upper()


@validator("Order", action="create")
class CreateOrderValidator(BaseValidator):
    schema = OrderCreatePayload

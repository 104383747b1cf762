import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from tennisflow.models.stringing import PickupMethod

_PHONE_RE = re.compile(r"^\d{10,11}$")
_POSTAL_RE = re.compile(r"^\d{5}$")


class Bank(str, Enum):
    """무통장 입금 허용 은행"""

    SHINHAN = "shinhan"
    KOOKMIN = "kookmin"
    WOORI = "woori"


def normalize_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value or "")
    if not _PHONE_RE.match(digits):
        raise ValueError("phone must contain 10-11 digits")
    return digits


class PaymentInfo(BaseModel):
    method: Literal["bank_transfer"] = "bank_transfer"
    bank: Bank
    depositor: str = Field(..., min_length=1, max_length=50)


class ShippingInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    phone: str
    address: Optional[str] = Field(None, max_length=200)
    address_detail: Optional[str] = Field(None, max_length=200)
    postal_code: Optional[str] = None
    request: Optional[str] = Field(None, max_length=200)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("postal_code")
    @classmethod
    def _postal(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip()
        if not _POSTAL_RE.match(v):
            raise ValueError("postal_code must be 5 digits")
        return v


class StringingRequest(BaseModel):
    """대여/주문과 함께 신청하는 스트링 교체 서비스"""

    string_product_id: int = Field(..., gt=0)
    pickup_method: PickupMethod = PickupMethod.SHOP_VISIT
    tension: Optional[str] = Field(None, max_length=50)
    memo: Optional[str] = Field(None, max_length=500)


class RentalCreateRequest(BaseModel):
    racket_id: int = Field(..., gt=0)
    days: Literal[7, 15, 30]
    payment: Optional[PaymentInfo] = None
    shipping: Optional[ShippingInfo] = None
    stringing: Optional[StringingRequest] = None
    points_to_use: int = Field(0, ge=0)


class RentalPayRequest(BaseModel):
    payment: PaymentInfo


class RentalResponse(BaseModel):
    id: int
    racket_id: int
    user_id: Optional[int] = None
    days: int
    fee: int
    deposit: int
    service_price: int
    original_total: int
    points_used: int
    total: int
    status: str
    payment: Optional[Dict[str, Any]] = None
    shipping: Optional[Dict[str, Any]] = None
    stringing_application_id: Optional[int] = None
    idempotency_key: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

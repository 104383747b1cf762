from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from tennisflow.models.order import DeliveryMethod, OrderStatus
from tennisflow.models.stringing import PickupMethod
from tennisflow.schemas.rental import PaymentInfo, ShippingInfo


class CancelReason(str, Enum):
    CHANGED_MIND = "단순 변심"
    WRONG_ITEM = "상품 정보 상이"
    DELAYED = "배송 지연"
    OTHER = "기타"


class OrderItemRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0, le=99)


class OrderShippingInfo(ShippingInfo):
    delivery_method: DeliveryMethod = DeliveryMethod.COURIER

    @model_validator(mode="after")
    def _address_for_courier(self):
        if self.delivery_method == DeliveryMethod.COURIER and not (
            self.address and self.postal_code
        ):
            raise ValueError("address and postal_code are required for courier delivery")
        return self


class OrderCreateRequest(BaseModel):
    items: List[OrderItemRequest] = Field(..., min_length=1)
    shipping_info: OrderShippingInfo
    payment_info: Optional[PaymentInfo] = None
    with_string_service: bool = False
    stringing_pickup_method: PickupMethod = PickupMethod.SHOP_VISIT
    points_to_use: int = Field(0, ge=0)


class OrderStatusUpdateRequest(BaseModel):
    """관리자/주문자 상태 변경. client_seen_date 가 낙관적 잠금 토큰"""

    status: OrderStatus
    cancel_reason: Optional[CancelReason] = None
    cancel_reason_detail: Optional[str] = Field(None, max_length=200)
    client_seen_date: Optional[datetime] = None
    if_unmodified_since: Optional[datetime] = None

    @model_validator(mode="after")
    def _cancel_reason_required(self):
        if self.status == OrderStatus.CONFIRMED:
            raise ValueError("use the confirm endpoint for 구매확정")
        if self.status == OrderStatus.CANCELED:
            if self.cancel_reason is None:
                raise ValueError("cancel_reason is required when canceling")
            if self.cancel_reason == CancelReason.OTHER and not (
                self.cancel_reason_detail and self.cancel_reason_detail.strip()
            ):
                raise ValueError("cancel_reason_detail is required for 기타")
        return self


class OrderResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    items: List[Dict[str, Any]]
    shipping_info: Dict[str, Any]
    payment_info: Optional[Dict[str, Any]] = None
    subtotal: int
    service_fee: int
    shipping_fee: int
    original_total: int
    points_used: int
    total_price: int
    status: str
    payment_status: str
    cancel_reason: Optional[str] = None
    cancel_reason_detail: Optional[str] = None
    history: List[Dict[str, Any]] = []
    idempotency_key: Optional[str] = None
    stringing_application_id: Optional[int] = None
    user_confirmed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Integer, String, Text

from tennisflow.models.base import BaseModel, BigIntPK


class OrderStatus(str, Enum):
    """주문 상태"""

    PENDING = "대기중"
    PAID = "결제완료"
    SHIPPING = "배송중"
    DELIVERED = "배송완료"
    CONFIRMED = "구매확정"
    CANCELED = "취소"
    REFUNDED = "환불"


class PaymentStatus(str, Enum):
    AWAITING = "결제대기"
    PAID = "결제완료"
    CANCELED = "결제취소"
    REFUNDED = "환불"


class DeliveryMethod(str, Enum):
    COURIER = "택배수령"
    VISIT = "방문수령"


class Order(BaseModel):
    __tablename__ = "orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    # 비회원 주문은 NULL
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)

    # 주문 시점의 상품 스냅샷 [{product_id, name, price, quantity, mounting_fee}]
    items = Column(JSON, nullable=False)
    shipping_info = Column(JSON, nullable=False)
    payment_info = Column(JSON, nullable=True)

    subtotal = Column(Integer, nullable=False, default=0)
    service_fee = Column(Integer, nullable=False, default=0)
    shipping_fee = Column(Integer, nullable=False, default=0)
    original_total = Column(Integer, nullable=False, default=0)
    points_used = Column(Integer, nullable=False, default=0)
    # 실 결제 금액 (original_total - points_used)
    total_price = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(
        String(20), nullable=False, default=PaymentStatus.AWAITING.value
    )
    cancel_reason = Column(String(50), nullable=True)
    cancel_reason_detail = Column(Text, nullable=True)
    history = Column(JSON, nullable=False, default=list)

    idempotency_key = Column(String(100), unique=True, nullable=True)
    stringing_application_id = Column(BigInteger, nullable=True)
    user_confirmed_at = Column(DateTime(timezone=True), nullable=True)

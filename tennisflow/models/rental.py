from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, ForeignKey, Integer, String

from tennisflow.models.base import BaseModel, BigIntPK


class RentalStatus(str, Enum):
    """대여 상태"""

    PENDING = "pending"
    PAID = "paid"
    OUT = "out"
    RETURNED = "returned"
    CANCELED = "canceled"


# 재고를 점유하는 대여 상태
ACTIVE_RENTAL_STATUSES = (RentalStatus.PAID.value, RentalStatus.OUT.value)


class RentalOrder(BaseModel):
    __tablename__ = "rental_orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    racket_id = Column(
        BigInteger, ForeignKey("used_rackets.id"), nullable=False, index=True
    )
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    days = Column(Integer, nullable=False)

    fee = Column(Integer, nullable=False, default=0)
    deposit = Column(Integer, nullable=False, default=0)
    service_price = Column(Integer, nullable=False, default=0)
    original_total = Column(Integer, nullable=False, default=0)
    points_used = Column(Integer, nullable=False, default=0)
    # 결제할 금액 (original_total - points_used)
    total = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=RentalStatus.PENDING.value)
    payment = Column(JSON, nullable=True)
    shipping = Column(JSON, nullable=True)

    idempotency_key = Column(String(100), unique=True, nullable=True)
    stringing_application_id = Column(BigInteger, nullable=True)

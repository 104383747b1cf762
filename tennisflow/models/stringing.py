from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, ForeignKey, Integer, String

from tennisflow.models.base import BaseModel, BigIntPK


class PickupMethod(str, Enum):
    """라켓 입고 방식"""

    SELF_SEND = "SELF_SEND"  # 고객 직접 발송
    SHOP_VISIT = "SHOP_VISIT"  # 매장 방문
    COURIER_VISIT = "COURIER_VISIT"  # 기사 방문 수거


class StringingApplication(BaseModel):
    """스트링 교체 서비스 신청서. 주문/대여 생성 시 draft 로 함께 만들어진다."""

    __tablename__ = "stringing_applications"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    # 원천 문서당 신청서 1건
    order_id = Column(BigInteger, ForeignKey("orders.id"), unique=True, nullable=True)
    rental_id = Column(
        BigInteger, ForeignKey("rental_orders.id"), unique=True, nullable=True
    )
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)

    status = Column(String(20), nullable=False, default="draft")
    service_amount = Column(Integer, nullable=False, default=0)
    # "order:<id>" | "rental:<id>"
    payment_source = Column(String(50), nullable=False)
    pickup_method = Column(String(20), nullable=False)
    meta = Column(JSON, nullable=True)
    history = Column(JSON, nullable=False, default=list)

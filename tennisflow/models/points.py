"""
포인트 시스템 데이터 모델

사용자 포인트의 모든 거래 내역을 저장하는 원장(Ledger) 테이블을 정의합니다.
사용자 테이블의 points_balance / points_debt 는 이 원장의 캐시일 뿐이며,
정합성의 기준은 항상 원장입니다.
"""

from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.schema import UniqueConstraint

from tennisflow.models.base import Base, BigIntPK, utc_now


class PointTransactionType(str, Enum):
    """포인트 거래 사유"""

    ORDER_REWARD = "order_reward"  # 구매확정 적립
    SPEND_ON_ORDER = "spend_on_order"  # 주문 결제 사용
    SPEND_ON_RENTAL = "spend_on_rental"  # 대여 결제 사용
    ADMIN_ADJUST = "admin_adjust"  # 관리자 조정
    REVIEW_REWARD_PRODUCT = "review_reward_product"
    REVIEW_REWARD_SERVICE = "review_reward_service"
    SIGNUP_BONUS = "signup_bonus"
    REVERSAL = "reversal"  # 취소/환불에 따른 복원 또는 회수


class PointTransactionStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"  # 향후 검수 흐름용. 현재는 기록하지 않음


class PointTransaction(Base):
    """
    포인트 원장 테이블 - 모든 포인트 거래 내역을 저장

    원칙:
    1. 불변성(Immutable): 한번 생성된 레코드는 수정/삭제되지 않음
    2. 완전성(Complete): 모든 포인트 변동사항이 기록됨
    3. 멱등성(Idempotent): ref_key 유니크 제약으로 중복 처리 방지

    ref_key는 NULL 허용 유니크 컬럼이라 키가 없는 거래끼리는 충돌하지 않는다.
    """

    __tablename__ = "points_transactions"
    __table_args__ = (
        UniqueConstraint("ref_key", name="uq_points_transactions_ref_key"),
        Index("idx_points_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False)

    # 양수면 적립, 음수면 차감. 0은 기록하지 않음
    amount = Column(BigInteger, nullable=False)
    type = Column(String(40), nullable=False)
    status = Column(
        String(20), nullable=False, default=PointTransactionStatus.CONFIRMED.value
    )

    # 형식 예시: "rental:12:spend", "order_reward:34", "review:56"
    ref_key = Column(Text, nullable=True)
    # 원천 객체 참조 (정보용)
    ref = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

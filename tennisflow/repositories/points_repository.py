"""
포인트 리포지토리 - 원장(Ledger)과 사용자 포인트 캐시 접근

1. 원장 기록: ref_key 유니크 제약 기반 멱등성. 중복은 예외가 아닌
   InsertOutcome.ALREADY_EXISTS 로 돌려준다.
2. 캐시 갱신: users.points_balance / points_debt 를 단일 조건부 UPDATE 로만
   변경한다 (읽기-수정-쓰기 금지). 같은 UPDATE 의 우변은 모두 갱신 전 값을 본다.
3. 조회: 요약, 최신순 페이지네이션, 정합성 검증용 원장 재생
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tennisflow.models.points import PointTransaction as PointTransactionModel
from tennisflow.models.points import PointTransactionStatus
from tennisflow.models.user import User as UserModel
from tennisflow.repositories.base import BaseRepository
from tennisflow.schemas.points import PointTransactionEntry

logger = logging.getLogger(__name__)


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass
class InsertResult:
    outcome: InsertOutcome
    entry: PointTransactionModel

    @property
    def inserted(self) -> bool:
        return self.outcome is InsertOutcome.INSERTED


class PointsRepository(BaseRepository[PointTransactionModel, PointTransactionEntry]):
    """포인트 원장 + 캐시 리포지토리. commit 은 호출자(서비스)의 몫이다."""

    def __init__(self, db: Session):
        super().__init__(PointTransactionModel, PointTransactionEntry, db)

    # ------------------------------------------------------------------
    # 원장
    # ------------------------------------------------------------------

    def get_by_ref_key(self, ref_key: str) -> Optional[PointTransactionModel]:
        return (
            self.db.query(PointTransactionModel)
            .filter(PointTransactionModel.ref_key == ref_key)
            .first()
        )

    def insert_transaction(
        self,
        user_id: int,
        amount: int,
        type: str,
        ref_key: Optional[str] = None,
        ref: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> InsertResult:
        """원장 항목 추가

        ref_key 가 이미 있으면 아무것도 쓰지 않고 기존 항목을 ALREADY_EXISTS 로 반환.
        유니크 위반은 SAVEPOINT 안에서 잡으므로 바깥 트랜잭션은 그대로 유지된다.
        """
        if ref_key is not None:
            existing = self.get_by_ref_key(ref_key)
            if existing is not None:
                return InsertResult(InsertOutcome.ALREADY_EXISTS, existing)

        entry = PointTransactionModel(
            user_id=user_id,
            amount=amount,
            type=type,
            status=PointTransactionStatus.CONFIRMED.value,
            ref_key=ref_key,
            ref=ref,
            reason=reason,
        )
        try:
            with self.db.begin_nested():
                self.db.add(entry)
                self.db.flush()
        except IntegrityError:
            # 동시 요청이 같은 ref_key 를 먼저 기록한 경우
            if ref_key is None:
                raise
            existing = self.get_by_ref_key(ref_key)
            if existing is None:
                raise
            logger.info(f"ref_key {ref_key} inserted concurrently, treating as duplicate")
            return InsertResult(InsertOutcome.ALREADY_EXISTS, existing)

        return InsertResult(InsertOutcome.INSERTED, entry)

    def list_for_user(
        self, user_id: int, limit: int, offset: int
    ) -> Tuple[int, List[PointTransactionEntry]]:
        query = self.db.query(PointTransactionModel).filter(
            PointTransactionModel.user_id == user_id
        )
        total = query.count()
        rows = (
            query.order_by(
                desc(PointTransactionModel.created_at), desc(PointTransactionModel.id)
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return total, [self._to_schema(row) for row in rows]

    def confirmed_amounts(self, user_id: int) -> List[int]:
        """정합성 검증용 - 확정 항목의 금액을 기록 순서대로"""
        rows = (
            self.db.query(PointTransactionModel.amount)
            .filter(
                PointTransactionModel.user_id == user_id,
                PointTransactionModel.status == PointTransactionStatus.CONFIRMED.value,
            )
            .order_by(PointTransactionModel.id)
            .all()
        )
        return [int(row[0]) for row in rows]

    # ------------------------------------------------------------------
    # 캐시
    # ------------------------------------------------------------------

    def user_exists(self, user_id: int) -> bool:
        return (
            self.db.query(UserModel.id).filter(UserModel.id == user_id).first()
            is not None
        )

    def get_cache(self, user_id: int) -> Optional[Tuple[int, int]]:
        """(balance, debt). 사용자가 없으면 None"""
        row = (
            self.db.query(UserModel.points_balance, UserModel.points_debt)
            .filter(UserModel.id == user_id)
            .first()
        )
        if row is None:
            return None
        return int(row[0] or 0), int(row[1] or 0)

    def credit_cache(self, user_id: int, amount: int) -> int:
        """부채 우선 상환 후 남은 금액을 잔액에 적립. 매칭된 행 수 반환"""
        debt = UserModel.points_debt
        balance = UserModel.points_balance
        return (
            self.db.query(UserModel)
            .filter(UserModel.id == user_id)
            .update(
                {
                    UserModel.points_debt: case((debt >= amount, debt - amount), else_=0),
                    UserModel.points_balance: balance
                    + case((debt >= amount, 0), else_=amount - debt),
                },
                synchronize_session=False,
            )
        )

    def debit_cache_strict(self, user_id: int, amount: int) -> int:
        """잔액 충분 AND 부채 0 일 때만 차감"""
        return (
            self.db.query(UserModel)
            .filter(
                UserModel.id == user_id,
                UserModel.points_balance >= amount,
                UserModel.points_debt == 0,
            )
            .update(
                {UserModel.points_balance: UserModel.points_balance - amount},
                synchronize_session=False,
            )
        )

    def debit_cache_forced(self, user_id: int, amount: int) -> int:
        """잔액을 0까지 차감하고 부족분은 부채로 적재"""
        debt = UserModel.points_debt
        balance = UserModel.points_balance
        return (
            self.db.query(UserModel)
            .filter(UserModel.id == user_id)
            .update(
                {
                    UserModel.points_balance: case(
                        (balance >= amount, balance - amount), else_=0
                    ),
                    UserModel.points_debt: case(
                        (balance >= amount, debt), else_=debt + (amount - balance)
                    ),
                },
                synchronize_session=False,
            )
        )

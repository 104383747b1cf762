import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from tennisflow.config import Settings, settings as default_settings
from tennisflow.core.exceptions import (
    BaseAPIException,
    InsufficientPointsError,
    InvalidAmountError,
    PointsDebtExistsError,
    UserNotFoundError,
    ValidationError,
)
from tennisflow.core import points_policy
from tennisflow.models.points import PointTransactionType
from tennisflow.repositories.points_repository import PointsRepository
from tennisflow.schemas.points import (
    AdminPointsAdjustmentRequest,
    AdminPointsAdjustmentResponse,
    PointsIntegrityCheckResponse,
    PointsOperationResult,
    PointsSummaryResponse,
    PointTransactionPage,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 50


def normalize_amount(amount: Any) -> int:
    """정수로 절삭한 양수 금액. 아니면 INVALID_AMOUNT"""
    if isinstance(amount, bool):
        raise InvalidAmountError(details={"amount": amount})
    try:
        value = int(amount)
    except (TypeError, ValueError, OverflowError):
        raise InvalidAmountError(details={"amount": str(amount)})
    if value <= 0:
        raise InvalidAmountError(details={"amount": value})
    return value


def normalize_pagination(page: Any, limit: Any):
    """page 는 1 미만이면 1, limit 은 1..50 밖이면 20. 예외를 던지지 않는다."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_LIMIT
    if page < 1:
        page = 1
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        limit = DEFAULT_PAGE_LIMIT
    return page, limit


class PointService:
    """포인트 적립/차감/조회 서비스

    적립과 차감은 "원장 기록 + 캐시 갱신" 을 하나의 SAVEPOINT 로 묶는다.
    캐시 갱신이 0건이면 SAVEPOINT 를 롤백하므로 고아 원장 항목이 남지 않는다.
    commit=False 로 호출하면 호출자의 트랜잭션(주문/대여 생성 등)에 합류한다.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.points_repo = PointsRepository(db)

    # ------------------------------------------------------------------
    # 적립 / 차감
    # ------------------------------------------------------------------

    def grant_points(
        self,
        user_id: int,
        amount: Any,
        type: PointTransactionType,
        ref_key: Optional[str] = None,
        ref: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        commit: bool = True,
    ) -> PointsOperationResult:
        """포인트 적립 (부채 우선 상환)

        Args:
            user_id: 사용자 ID
            amount: 양의 정수 (소수는 절삭)
            type: 거래 사유
            ref_key: 멱등성 키. 이미 처리된 키면 duplicated=True
            commit: False 면 호출자의 트랜잭션에 맡긴다

        Raises:
            InvalidAmountError, UserNotFoundError
        """
        amount = normalize_amount(amount)
        return self._apply(
            user_id=user_id,
            amount=amount,
            type=type,
            ref_key=ref_key,
            ref=ref,
            reason=reason,
            commit=commit,
            apply_cache=partial(self.points_repo.credit_cache, user_id, amount),
        )

    def deduct_points(
        self,
        user_id: int,
        amount: Any,
        type: PointTransactionType,
        ref_key: Optional[str] = None,
        ref: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        allow_negative_balance: bool = False,
        commit: bool = True,
    ) -> PointsOperationResult:
        """포인트 차감

        strict(기본): 잔액이 충분하고 부채가 없을 때만 차감. 아니면 INSUFFICIENT_POINTS
        forced(allow_negative_balance=True): 잔액을 0까지 차감하고 부족분은 부채로.
            취소/환불 회수용이며 잔액 부족으로 실패하지 않는다.
        """
        amount = normalize_amount(amount)
        if allow_negative_balance:
            apply_cache = partial(self.points_repo.debit_cache_forced, user_id, amount)
        else:
            apply_cache = partial(self.points_repo.debit_cache_strict, user_id, amount)

        return self._apply(
            user_id=user_id,
            amount=-amount,
            type=type,
            ref_key=ref_key,
            ref=ref,
            reason=reason,
            commit=commit,
            apply_cache=apply_cache,
            strict_debit=not allow_negative_balance,
        )

    def _apply(
        self,
        user_id: int,
        amount: int,
        type: PointTransactionType,
        ref_key: Optional[str],
        ref: Optional[Dict[str, Any]],
        reason: Optional[str],
        commit: bool,
        apply_cache,
        strict_debit: bool = False,
    ) -> PointsOperationResult:
        type_value = type.value if isinstance(type, PointTransactionType) else str(type)
        savepoint = self.db.begin_nested()
        try:
            inserted = self.points_repo.insert_transaction(
                user_id=user_id,
                amount=amount,
                type=type_value,
                ref_key=ref_key,
                ref=ref,
                reason=reason,
            )
            if not inserted.inserted:
                savepoint.commit()
                logger.info(
                    f"Points {type_value} for user {user_id} skipped, ref_key {ref_key} already applied"
                )
                return PointsOperationResult(
                    duplicated=True,
                    transaction_id=inserted.entry.id,
                    amount=inserted.entry.amount,
                )

            matched = apply_cache()
            if matched == 0:
                if not self.points_repo.user_exists(user_id):
                    raise UserNotFoundError(details={"user_id": user_id})
                if strict_debit:
                    raise InsufficientPointsError(
                        details={"user_id": user_id, "required": -amount}
                    )
                raise UserNotFoundError(details={"user_id": user_id})

            transaction_id = inserted.entry.id
            savepoint.commit()
        except IntegrityError:
            # FK 위반 (없는 사용자) 은 USER_NOT_FOUND 로
            self._rollback_savepoint(savepoint, user_id, ref_key)
            if not self.points_repo.user_exists(user_id):
                raise UserNotFoundError(details={"user_id": user_id})
            raise
        except Exception:
            self._rollback_savepoint(savepoint, user_id, ref_key)
            raise

        if commit:
            self.db.commit()

        logger.info(
            f"Points {type_value} {amount:+d} applied for user {user_id} (tx={transaction_id}, ref_key={ref_key})"
        )
        return PointsOperationResult(
            duplicated=False, transaction_id=transaction_id, amount=amount
        )

    def _rollback_savepoint(
        self, savepoint: SessionTransaction, user_id: int, ref_key: Optional[str]
    ) -> None:
        """원장 기록 되돌리기. 롤백 자체의 실패는 기록만 하고 원래 예외를 우선한다."""
        if not savepoint.is_active:
            return
        try:
            savepoint.rollback()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to roll back ledger entry for user {user_id} (ref_key={ref_key}): {str(e)}"
            )

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_balance(self, user_id: int) -> int:
        cache = self.points_repo.get_cache(user_id)
        return cache[0] if cache else 0

    def get_points_summary(self, user_id: int) -> PointsSummaryResponse:
        """잔액/부채/사용가능. 사용자가 없으면 0/0/0"""
        balance, debt = self.points_repo.get_cache(user_id) or (0, 0)
        return PointsSummaryResponse(
            balance=balance, debt=debt, available=max(0, balance - debt)
        )

    def list_point_transactions(
        self, user_id: int, page: Any = 1, limit: Any = DEFAULT_PAGE_LIMIT
    ) -> PointTransactionPage:
        """최신순 거래 내역. 잘못된 page/limit 은 기본값으로 대체"""
        page, limit = normalize_pagination(page, limit)
        total, items = self.points_repo.list_for_user(
            user_id=user_id, limit=limit, offset=(page - 1) * limit
        )
        return PointTransactionPage(total=total, items=items, page=page, limit=limit)

    def plan_points_spend(
        self, user_id: Optional[int], requested: Any, eligible_total: int
    ) -> int:
        """결제 시 실제로 사용할 포인트 계산 (트랜잭션 밖 사전 검사)

        Args:
            requested: 사용자가 요청한 포인트
            eligible_total: 포인트로 결제 가능한 금액 (보증금/배송비 제외)

        Raises:
            ValidationError: 비회원이 포인트 사용을 요청한 경우
            PointsDebtExistsError: 부채가 남아 있는 경우
        """
        if not requested:
            return 0
        if user_id is None:
            raise ValidationError("Guests cannot use points")

        spend = points_policy.compute_points_spend(
            requested, eligible_total, self.settings.POINT_UNIT
        )
        if spend <= 0:
            return 0
        _, debt = self.points_repo.get_cache(user_id) or (0, 0)
        if debt > 0:
            raise PointsDebtExistsError(details={"user_id": user_id, "debt": debt})
        return spend

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """확정 원장을 부채 우선 규칙으로 재생해 캐시와 비교"""
        cache = self.points_repo.get_cache(user_id)
        if cache is None:
            raise UserNotFoundError(details={"user_id": user_id})

        amounts = self.points_repo.confirmed_amounts(user_id)
        calculated_balance, calculated_debt = points_policy.replay_ledger(amounts)
        recorded_balance, recorded_debt = cache
        ok = (calculated_balance, calculated_debt) == (recorded_balance, recorded_debt)
        if not ok:
            logger.warning(
                f"Points cache mismatch for user {user_id}: ledger=({calculated_balance}, {calculated_debt}) cache=({recorded_balance}, {recorded_debt})"
            )
        return PointsIntegrityCheckResponse(
            status="OK" if ok else "MISMATCH",
            user_id=user_id,
            calculated_balance=calculated_balance,
            calculated_debt=calculated_debt,
            recorded_balance=recorded_balance,
            recorded_debt=recorded_debt,
            entry_count=len(amounts),
            verified_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # 보상 / 관리자
    # ------------------------------------------------------------------

    def admin_adjust_points(
        self, admin_id: int, request: AdminPointsAdjustmentRequest
    ) -> AdminPointsAdjustmentResponse:
        """관리자 포인트 조정 - 양수는 지급, 음수는 strict 차감"""
        if request.amount == 0:
            raise InvalidAmountError(details={"amount": 0})

        ref = {"admin_id": admin_id}
        if request.amount > 0:
            result = self.grant_points(
                user_id=request.user_id,
                amount=request.amount,
                type=PointTransactionType.ADMIN_ADJUST,
                ref_key=request.ref_key,
                ref=ref,
                reason=request.reason,
            )
        else:
            result = self.deduct_points(
                user_id=request.user_id,
                amount=-request.amount,
                type=PointTransactionType.ADMIN_ADJUST,
                ref_key=request.ref_key,
                ref=ref,
                reason=request.reason,
            )
        logger.info(
            f"Admin {admin_id} adjusted points for user {request.user_id}: {request.amount:+d}"
        )
        return AdminPointsAdjustmentResponse(
            result=result, summary=self.get_points_summary(request.user_id)
        )

    def issue_review_reward(
        self,
        user_id: int,
        review_id: int,
        type: PointTransactionType = PointTransactionType.REVIEW_REWARD_PRODUCT,
    ) -> PointsOperationResult:
        """리뷰 작성 보상 - 리뷰당 1회"""
        if type not in (
            PointTransactionType.REVIEW_REWARD_PRODUCT,
            PointTransactionType.REVIEW_REWARD_SERVICE,
        ):
            raise InvalidAmountError(
                message="Unsupported review reward type", details={"type": str(type)}
            )
        return self.grant_points(
            user_id=user_id,
            amount=self.settings.REVIEW_REWARD_POINTS,
            type=type,
            ref_key=f"review:{review_id}",
            ref={"review_id": review_id},
            reason="리뷰 작성 보상",
        )

    def grant_signup_bonus(
        self, user_id: int, now: Optional[datetime] = None
    ) -> Optional[PointsOperationResult]:
        """가입 보너스. 캠페인 기간이 아니면 None"""
        amount = points_policy.signup_bonus_amount(self.settings, now)
        if amount <= 0:
            return None
        campaign_id = self.settings.SIGNUP_BONUS_CAMPAIGN_ID
        return self.grant_points(
            user_id=user_id,
            amount=amount,
            type=PointTransactionType.SIGNUP_BONUS,
            ref_key=points_policy.signup_bonus_ref_key(campaign_id, user_id),
            ref={"campaign_id": campaign_id},
            reason="회원가입 보너스",
        )

    def safe_side_effect(self, label: str, fn, *args, **kwargs) -> Optional[PointsOperationResult]:
        """본 작업 커밋 이후의 포인트 부수효과. 실패는 기록만 한다."""
        try:
            return fn(*args, **kwargs)
        except (BaseAPIException, SQLAlchemyError) as e:
            if self.db.in_transaction():
                self.db.rollback()
            logger.error(f"Points side effect '{label}' failed: {str(e)}")
            return None

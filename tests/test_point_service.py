import random
from datetime import datetime, timezone

import pytest

from tennisflow.config import Settings
from tennisflow.core.points_policy import replay_ledger
from tennisflow.core.exceptions import (
    InsufficientPointsError,
    InvalidAmountError,
    PointsDebtExistsError,
    UserNotFoundError,
    ValidationError,
)
from tennisflow.models.points import PointTransaction, PointTransactionType
from tennisflow.models.user import User as UserModel
from tennisflow.schemas.points import AdminPointsAdjustmentRequest
from tennisflow.services.point_service import PointService, normalize_pagination


@pytest.fixture
def point_service(db, settings):
    return PointService(db, settings=settings)


def ledger_count(db, user_id=None) -> int:
    query = db.query(PointTransaction)
    if user_id is not None:
        query = query.filter(PointTransaction.user_id == user_id)
    return query.count()


class TestGrantPoints:
    """포인트 적립 테스트"""

    def test_grant_increases_balance(self, db, point_service, make_user, cache_of):
        user = make_user()

        result = point_service.grant_points(user.id, 1000, PointTransactionType.ADMIN_ADJUST)

        assert result.duplicated is False
        assert result.amount == 1000
        assert result.transaction_id is not None
        assert cache_of(user.id) == (1000, 0)

    def test_grant_repays_debt_first(self, db, point_service, make_user, cache_of):
        """부채 500 상태에서 700 적립 -> 잔액 200, 부채 0"""
        user = make_user(balance=0, debt=500)

        point_service.grant_points(user.id, 700, PointTransactionType.ORDER_REWARD)

        assert cache_of(user.id) == (200, 0)

    def test_grant_smaller_than_debt_only_reduces_debt(self, point_service, make_user, cache_of):
        user = make_user(balance=0, debt=500)

        point_service.grant_points(user.id, 300, PointTransactionType.ORDER_REWARD)

        assert cache_of(user.id) == (0, 200)

    def test_duplicate_ref_key_is_not_applied_twice(self, db, point_service, make_user, cache_of):
        user = make_user()

        first = point_service.grant_points(
            user.id, 500, PointTransactionType.REVIEW_REWARD_PRODUCT, ref_key="review:1"
        )
        second = point_service.grant_points(
            user.id, 500, PointTransactionType.REVIEW_REWARD_PRODUCT, ref_key="review:1"
        )

        assert first.duplicated is False
        assert second.duplicated is True
        assert second.transaction_id == first.transaction_id
        assert cache_of(user.id) == (500, 0)
        assert ledger_count(db, user.id) == 1

    @pytest.mark.parametrize("amount", [0, -10, "abc", None, True])
    def test_invalid_amount(self, db, point_service, make_user, amount):
        user = make_user()

        with pytest.raises(InvalidAmountError) as exc_info:
            point_service.grant_points(user.id, amount, PointTransactionType.ADMIN_ADJUST)

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "INVALID_AMOUNT"
        assert ledger_count(db) == 0

    def test_fractional_amount_is_truncated(self, point_service, make_user, cache_of):
        user = make_user()

        result = point_service.grant_points(user.id, 10.7, PointTransactionType.ADMIN_ADJUST)

        assert result.amount == 10
        assert cache_of(user.id) == (10, 0)

    def test_unknown_user_leaves_no_ledger_entry(self, db, point_service):
        with pytest.raises(UserNotFoundError) as exc_info:
            point_service.grant_points(9999, 100, PointTransactionType.ADMIN_ADJUST)

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_code == "USER_NOT_FOUND"
        assert ledger_count(db) == 0


class TestDeductPoints:
    """포인트 차감 테스트"""

    def test_strict_deduct(self, point_service, make_user, cache_of):
        user = make_user(balance=1000)

        result = point_service.deduct_points(user.id, 400, PointTransactionType.SPEND_ON_ORDER)

        assert result.amount == -400
        assert cache_of(user.id) == (600, 0)

    def test_strict_deduct_insufficient_balance(self, db, point_service, make_user, cache_of):
        user = make_user(balance=100)

        with pytest.raises(InsufficientPointsError) as exc_info:
            point_service.deduct_points(user.id, 300, PointTransactionType.SPEND_ON_ORDER)

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "INSUFFICIENT_POINTS"
        assert cache_of(user.id) == (100, 0)
        assert ledger_count(db, user.id) == 0

    def test_strict_deduct_blocked_by_debt(self, db, point_service, make_user, cache_of):
        """잔액이 충분해도 부채가 있으면 strict 차감은 거절된다"""
        user = make_user(balance=1000, debt=100)

        with pytest.raises(InsufficientPointsError):
            point_service.deduct_points(user.id, 100, PointTransactionType.SPEND_ON_ORDER)

        assert cache_of(user.id) == (1000, 100)
        assert ledger_count(db, user.id) == 0

    def test_forced_deduct_moves_shortfall_into_debt(self, point_service, make_user, cache_of):
        """잔액 100 에서 300 강제 차감 -> 잔액 0, 부채 200"""
        user = make_user(balance=100)

        result = point_service.deduct_points(
            user.id, 300, PointTransactionType.REVERSAL, allow_negative_balance=True
        )

        assert result.amount == -300
        assert cache_of(user.id) == (0, 200)

    def test_forced_deduct_accumulates_debt(self, point_service, make_user, cache_of):
        user = make_user(balance=0, debt=200)

        point_service.deduct_points(
            user.id, 50, PointTransactionType.REVERSAL, allow_negative_balance=True
        )

        assert cache_of(user.id) == (0, 250)

    def test_unknown_user(self, db, point_service):
        with pytest.raises(UserNotFoundError):
            point_service.deduct_points(
                4242, 10, PointTransactionType.REVERSAL, allow_negative_balance=True
            )
        assert ledger_count(db) == 0

    def test_duplicate_deduct_ref_key(self, db, point_service, make_user, cache_of):
        user = make_user(balance=1000)

        point_service.deduct_points(
            user.id, 200, PointTransactionType.SPEND_ON_RENTAL, ref_key="rental:1:spend"
        )
        again = point_service.deduct_points(
            user.id, 200, PointTransactionType.SPEND_ON_RENTAL, ref_key="rental:1:spend"
        )

        assert again.duplicated is True
        assert cache_of(user.id) == (800, 0)


class TestSummaryAndHistory:
    """요약 / 내역 조회 테스트"""

    def test_summary_available_is_never_negative(self, point_service, make_user):
        user = make_user(balance=100, debt=300)

        summary = point_service.get_points_summary(user.id)

        assert summary.balance == 100
        assert summary.debt == 300
        assert summary.available == 0

    def test_summary_for_missing_user(self, point_service):
        summary = point_service.get_points_summary(123456)

        assert (summary.balance, summary.debt, summary.available) == (0, 0, 0)
        assert point_service.get_balance(123456) == 0

    def test_history_is_newest_first_and_paginated(self, point_service, make_user):
        user = make_user()
        for i in range(25):
            point_service.grant_points(
                user.id, i + 1, PointTransactionType.ADMIN_ADJUST, ref_key=f"seed:{i}"
            )

        first_page = point_service.list_point_transactions(user.id, page=1, limit=10)
        third_page = point_service.list_point_transactions(user.id, page=3, limit=10)

        assert first_page.total == 25
        assert len(first_page.items) == 10
        assert first_page.items[0].ref_key == "seed:24"
        assert [e.id for e in first_page.items] == sorted(
            (e.id for e in first_page.items), reverse=True
        )
        assert len(third_page.items) == 5

    @pytest.mark.parametrize(
        "page, limit, expected",
        [
            (0, 10, (1, 10)),
            (-3, 10, (1, 10)),
            ("abc", None, (1, 20)),
            (2, 0, (2, 20)),
            (2, 51, (2, 20)),
            (2, 50, (2, 50)),
            ("3", "5", (3, 5)),
        ],
    )
    def test_normalize_pagination(self, page, limit, expected):
        assert normalize_pagination(page, limit) == expected

    def test_history_degrades_gracefully(self, point_service, make_user):
        user = make_user()

        result = point_service.list_point_transactions(user.id, page=-1, limit=1000)

        assert result.page == 1
        assert result.limit == 20
        assert result.total == 0


class TestLedgerIntegrity:
    """원장-캐시 정합성 테스트"""

    def test_replay_matches_cache_after_mixed_operations(self, db, point_service, make_user, cache_of):
        user = make_user()
        point_service.grant_points(user.id, 1000, PointTransactionType.ADMIN_ADJUST)
        point_service.deduct_points(user.id, 600, PointTransactionType.SPEND_ON_ORDER)
        point_service.deduct_points(
            user.id, 900, PointTransactionType.REVERSAL, allow_negative_balance=True
        )
        point_service.grant_points(user.id, 200, PointTransactionType.ORDER_REWARD)
        with pytest.raises(InsufficientPointsError):
            point_service.deduct_points(user.id, 10, PointTransactionType.SPEND_ON_ORDER)

        result = point_service.verify_user_integrity(user.id)

        assert cache_of(user.id) == (0, 300)
        assert result.status == "OK"
        assert (result.calculated_balance, result.calculated_debt) == (0, 300)
        assert result.entry_count == 4
        amounts = [row[0] for row in db.query(PointTransaction.amount).all()]
        assert sum(amounts) == 0 - 300

    @pytest.mark.parametrize("seed", [7, 42, 2024])
    def test_random_sequences_keep_cache_equal_to_replay(self, db, point_service, make_user, cache_of, seed):
        """적립/strict 차감/forced 차감을 무작위로 섞어도 매 단계 캐시 == 원장 재생, 음수 없음"""
        rng = random.Random(seed)
        user = make_user()

        for step in range(60):
            operation = rng.choice(["grant", "deduct", "forced"])
            amount = rng.randint(1, 1500)
            ref_key = f"seq:{seed}:{step}" if rng.random() < 0.8 else f"seq:{seed}:dup"
            if operation == "grant":
                point_service.grant_points(user.id, amount, PointTransactionType.ADMIN_ADJUST, ref_key=ref_key)
            elif operation == "deduct":
                try:
                    point_service.deduct_points(
                        user.id, amount, PointTransactionType.SPEND_ON_ORDER, ref_key=ref_key
                    )
                except InsufficientPointsError:
                    pass
            else:
                point_service.deduct_points(
                    user.id,
                    amount,
                    PointTransactionType.REVERSAL,
                    ref_key=ref_key,
                    allow_negative_balance=True,
                )

            amounts = [
                row[0]
                for row in db.query(PointTransaction.amount)
                .filter(PointTransaction.user_id == user.id)
                .order_by(PointTransaction.id)
                .all()
            ]
            balance, debt = cache_of(user.id)
            assert (balance, debt) == replay_ledger(amounts)
            assert balance >= 0 and debt >= 0
            assert not (balance > 0 and debt > 0)

        assert point_service.verify_user_integrity(user.id).status == "OK"

    def test_mismatch_is_reported(self, db, point_service, make_user):
        user = make_user()
        point_service.grant_points(user.id, 500, PointTransactionType.ADMIN_ADJUST)
        db.query(UserModel).filter(UserModel.id == user.id).update(
            {UserModel.points_balance: 700}, synchronize_session=False
        )
        db.commit()

        result = point_service.verify_user_integrity(user.id)

        assert result.status == "MISMATCH"
        assert result.calculated_balance == 500
        assert result.recorded_balance == 700

    def test_integrity_unknown_user(self, point_service):
        with pytest.raises(UserNotFoundError):
            point_service.verify_user_integrity(777)


class TestPlanPointsSpend:
    """결제 시 포인트 사용액 계산"""

    def test_rounds_down_to_unit_and_caps_to_eligible(self, point_service, make_user):
        user = make_user(balance=5000)

        assert point_service.plan_points_spend(user.id, 1050, 5000) == 1000
        assert point_service.plan_points_spend(user.id, 1000, 950) == 900

    def test_zero_request(self, point_service):
        assert point_service.plan_points_spend(None, 0, 10000) == 0

    def test_guest_cannot_spend(self, point_service):
        with pytest.raises(ValidationError):
            point_service.plan_points_spend(None, 500, 10000)

    def test_debt_blocks_spend(self, point_service, make_user):
        user = make_user(balance=5000, debt=1)

        with pytest.raises(PointsDebtExistsError) as exc_info:
            point_service.plan_points_spend(user.id, 500, 10000)

        assert exc_info.value.error_code == "POINTS_DEBT_EXISTS"


class TestAdminAndRewards:
    """관리자 조정 / 리뷰 보상 / 가입 보너스"""

    def test_admin_grant_and_deduct(self, point_service, make_user):
        user = make_user()

        granted = point_service.admin_adjust_points(
            99, AdminPointsAdjustmentRequest(user_id=user.id, amount=1500, reason="event")
        )
        deducted = point_service.admin_adjust_points(
            99, AdminPointsAdjustmentRequest(user_id=user.id, amount=-500, reason="fix")
        )

        assert granted.summary.balance == 1500
        assert deducted.result.amount == -500
        assert deducted.summary.balance == 1000

    def test_admin_zero_amount(self, point_service, make_user):
        user = make_user()

        with pytest.raises(InvalidAmountError):
            point_service.admin_adjust_points(
                99, AdminPointsAdjustmentRequest(user_id=user.id, amount=0)
            )

    def test_admin_deduct_never_creates_debt(self, point_service, make_user, cache_of):
        user = make_user(balance=100)

        with pytest.raises(InsufficientPointsError):
            point_service.admin_adjust_points(
                99, AdminPointsAdjustmentRequest(user_id=user.id, amount=-500)
            )
        assert cache_of(user.id) == (100, 0)

    def test_review_reward_once_per_review(self, point_service, make_user, cache_of, settings):
        user = make_user()

        first = point_service.issue_review_reward(user.id, review_id=7)
        second = point_service.issue_review_reward(
            user.id, review_id=7, type=PointTransactionType.REVIEW_REWARD_SERVICE
        )

        assert first.amount == settings.REVIEW_REWARD_POINTS
        assert second.duplicated is True
        assert cache_of(user.id) == (settings.REVIEW_REWARD_POINTS, 0)

    def test_signup_bonus_campaign_window(self, db, make_user, cache_of):
        campaign = Settings(
            DATABASE_URL="sqlite://",
            SIGNUP_BONUS_ENABLED=True,
            SIGNUP_BONUS_POINTS=3000,
            SIGNUP_BONUS_START="2026-01-01",
            SIGNUP_BONUS_END="2026-01-31",
            SIGNUP_BONUS_CAMPAIGN_ID="winter",
        )
        service = PointService(db, settings=campaign)
        inside = make_user()
        outside = make_user()

        # 2026-01-31 23:00 KST
        granted = service.grant_signup_bonus(
            inside.id, now=datetime(2026, 1, 31, 14, 0, tzinfo=timezone.utc)
        )
        # 2026-02-01 00:30 KST
        skipped = service.grant_signup_bonus(
            outside.id, now=datetime(2026, 1, 31, 15, 30, tzinfo=timezone.utc)
        )
        again = service.grant_signup_bonus(
            inside.id, now=datetime(2026, 1, 20, tzinfo=timezone.utc)
        )

        assert granted.amount == 3000
        assert skipped is None
        assert again.duplicated is True
        assert cache_of(inside.id) == (3000, 0)
        assert cache_of(outside.id) == (0, 0)

    def test_safe_side_effect_swallows_domain_errors(self, point_service, make_user, cache_of):
        user = make_user(balance=10)

        result = point_service.safe_side_effect(
            "test",
            point_service.deduct_points,
            user.id,
            500,
            PointTransactionType.SPEND_ON_ORDER,
        )

        assert result is None
        assert cache_of(user.id) == (10, 0)

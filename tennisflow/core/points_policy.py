"""
포인트 정책

- 사용: POINT_UNIT(100P) 단위로만 사용 가능. 보증금/배송비는 포인트로 결제 불가
- 적립: 구매확정 시 결제금액의 1% (내림)
- 리뷰 보상, 가입 보너스
"""

import math
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Tuple

import pytz

from tennisflow.config import Settings


def floor_to_unit(value: int, unit: int) -> int:
    if value <= 0 or unit <= 0:
        return 0
    return (value // unit) * unit


def compute_points_spend(requested: int, eligible_total: int, unit: int) -> int:
    """실제 사용할 포인트 = min(요청, 사용 가능 대상 금액), 모두 unit 단위 내림

    잔액 초과 여부는 여기서 보지 않는다. 잔액 부족은 트랜잭션 안의
    strict 차감에서 INSUFFICIENT_POINTS 로 거절된다.
    """
    requested = floor_to_unit(int(requested or 0), unit)
    eligible = floor_to_unit(int(eligible_total or 0), unit)
    return max(0, min(requested, eligible))


def calc_order_earn_points(total_price: int, rate: float) -> int:
    if total_price <= 0 or rate <= 0:
        return 0
    return int(math.floor(total_price * rate))


def settle_credit(balance: int, debt: int, amount: int) -> Tuple[int, int]:
    """부채를 먼저 갚고 남은 금액을 잔액에 더한다"""
    repaid = min(debt, amount)
    return balance + (amount - repaid), debt - repaid


def settle_forced_debit(balance: int, debt: int, amount: int) -> Tuple[int, int]:
    """잔액을 0까지 차감하고 부족분은 부채로 넘긴다"""
    if balance >= amount:
        return balance - amount, debt
    return 0, debt + (amount - balance)


def replay_ledger(amounts: Iterable[int]) -> Tuple[int, int]:
    """확정 원장을 순서대로 접어 (balance, debt) 캐시를 재현

    strict 차감은 debt == 0 이고 잔액이 충분할 때만 성공하므로
    forced 규칙으로 접어도 결과가 같다.
    """
    balance, debt = 0, 0
    for amount in amounts:
        if amount > 0:
            balance, debt = settle_credit(balance, debt, amount)
        elif amount < 0:
            balance, debt = settle_forced_debit(balance, debt, -amount)
    return balance, debt


def _parse_kst_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    return date.fromisoformat(raw.strip())


def signup_bonus_amount(settings: Settings, now: Optional[datetime] = None) -> int:
    """가입 보너스 캠페인 기간(KST, 양끝 포함)이면 지급 포인트, 아니면 0"""
    if not settings.SIGNUP_BONUS_ENABLED or settings.SIGNUP_BONUS_POINTS <= 0:
        return 0

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today_kst = now.astimezone(pytz.timezone(settings.TIMEZONE)).date()

    start = _parse_kst_date(settings.SIGNUP_BONUS_START)
    end = _parse_kst_date(settings.SIGNUP_BONUS_END)
    if start and today_kst < start:
        return 0
    if end and today_kst > end:
        return 0
    return settings.SIGNUP_BONUS_POINTS


def signup_bonus_ref_key(campaign_id: str, user_id: int) -> str:
    return f"signup_bonus:{campaign_id}:{user_id}"

"""
트랜잭션 재시도 실행기

일시적 트랜잭션 오류(직렬화 실패, 데드락, 끊긴 연결)만 재시도하고
나머지 오류는 롤백 후 그대로 전파한다. 재시도 간격은 attempt 에 비례한다.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from tennisflow.core.exceptions import TransactionRetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE: serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code in TRANSIENT_SQLSTATES


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], None] = time.sleep,
    label: Optional[str] = None,
) -> T:
    """work(db) 를 한 트랜잭션으로 실행하고 커밋한다.

    Args:
        work: 같은 세션으로 여러 번 호출될 수 있어야 한다 (재시도 시 처음부터 다시 실행)
        max_attempts: 최대 시도 횟수
        backoff_seconds: attempt * backoff_seconds 만큼 대기 후 재시도
        is_retryable: 재시도 대상 오류 판별

    Raises:
        TransactionRetryExhaustedError: 일시적 오류가 max_attempts 번 반복된 경우
        그 외 work 가 던진 예외
    """
    label = label or getattr(work, "__name__", "transaction")
    attempt = 0
    while True:
        attempt += 1
        try:
            result = work(db)
            db.commit()
            return result
        except Exception as exc:
            db.rollback()
            if not is_retryable(exc):
                raise
            if attempt >= max_attempts:
                logger.error(
                    f"[{label}] transient error persisted after {attempt} attempts: {str(exc)}"
                )
                raise TransactionRetryExhaustedError(
                    details={"attempts": attempt, "label": label}
                ) from exc
            delay = backoff_seconds * attempt
            logger.warning(
                f"[{label}] transient error on attempt {attempt}/{max_attempts}, retrying in {delay:.2f}s: {str(exc)}"
            )
            sleep(delay)

"""
낙관적 동시성(optimistic concurrency) 유틸리티

PATCH 요청은 클라이언트가 마지막으로 본 updated_at 을 함께 보낸다.
저장된 updated_at 과 일치할 때만 갱신하고, 갱신 대상이 0건이면
"conflict"(문서는 있지만 바뀜) 와 "not_found"(문서가 사라짐) 로 구분한다.
"""

import logging
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Optional

from tennisflow.core.exceptions import DocumentGoneError, StaleWriteError

logger = logging.getLogger(__name__)

_TOKEN_STEP = timedelta(microseconds=1)


class PatchFailure(str, Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


def classify_patch_failure(has_client_seen_date: bool, still_exists: bool) -> PatchFailure:
    """갱신 0건의 원인 분류

    last-seen 토큰 없이 0건이면 동시성 주장이 없었으므로 항상 not_found.
    """
    if has_client_seen_date and still_exists:
        return PatchFailure.CONFLICT
    return PatchFailure.NOT_FOUND


def raise_patch_failure(
    has_client_seen_date: bool, still_exists: bool, resource: str, resource_id
) -> None:
    failure = classify_patch_failure(has_client_seen_date, still_exists)
    details = {"resource": resource, "id": resource_id}
    logger.info(f"PATCH {resource}:{resource_id} rejected as {failure.value}")
    if failure is PatchFailure.CONFLICT:
        raise StaleWriteError(details=details)
    raise DocumentGoneError(details=details)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """naive 값은 UTC 로 간주한다 (sqlite 는 tz 정보를 저장하지 않음)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def advance_token(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """다음 updated_at 값. 이전 토큰보다 항상 크다."""
    current = to_utc(now) or datetime.now(timezone.utc)
    previous = to_utc(previous)
    if previous is not None and current <= previous:
        return previous + _TOKEN_STEP
    return current


def parse_client_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """ISO-8601 우선, 실패 시 HTTP-date (If-Unmodified-Since) 로 해석"""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        return to_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return to_utc(parsedate_to_datetime(raw))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable client timestamp: {raw!r}")
        return None


def resolve_client_seen(
    client_seen_date: Optional[datetime],
    if_unmodified_since: Optional[datetime] = None,
    header_value: Optional[str] = None,
) -> Optional[datetime]:
    """body.client_seen_date > body.if_unmodified_since > If-Unmodified-Since 헤더"""
    if client_seen_date is not None:
        return to_utc(client_seen_date)
    if if_unmodified_since is not None:
        return to_utc(if_unmodified_since)
    return parse_client_timestamp(header_value)

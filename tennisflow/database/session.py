import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from tennisflow.database.connection import SessionLocal

logger = logging.getLogger(__name__)


def _discard_open_transaction(db: Session, scope: str) -> None:
    """커밋되지 않은 변경은 세션을 닫기 전에 버린다

    서비스는 쓰기마다 직접 commit 하므로 여기까지 남은 flush 는
    중간에 끊긴 작업이다 (원장만 있고 캐시가 없는 상태 등).
    """
    if not db.in_transaction():
        return
    if db.new or db.dirty or db.deleted:
        logger.warning(f"[{scope}] discarding uncommitted changes on session close")
    db.rollback()


def get_db() -> Iterator[Session]:
    """요청 단위 세션 (FastAPI 의존성)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        try:
            _discard_open_transaction(db, "request")
        finally:
            db.close()


@contextmanager
def get_db_context() -> Iterator[Session]:
    """스크립트용 세션. 정상 종료 시 commit, 예외 시 rollback"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        _discard_open_transaction(db, "script")
        raise
    finally:
        db.close()

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Integer
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()

# sqlite는 INTEGER PRIMARY KEY만 자동 증가한다
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """타임스탬프 필드를 위한 믹스인

    updated_at은 낙관적 동시성 토큰으로도 쓰이므로 DB 서버 시각이 아닌
    애플리케이션 시각(UTC, 마이크로초)으로 기록한다.
    """

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), default=utc_now, nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
        )


class BaseModel(Base, TimestampMixin):
    """모든 모델의 베이스 클래스"""

    __abstract__ = True

from abc import ABC
from datetime import datetime
from typing import TypeVar, Generic, Optional, Dict, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장"""

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _ensure_clean_session(self) -> None:
        """실패한 트랜잭션이 남아 있으면 롤백하여 세션을 정상화

        진행 중인 정상 트랜잭션은 건드리지 않는다. 주문/대여 생성처럼
        여러 리포지토리가 한 트랜잭션을 공유하기 때문이다.
        """
        if not self.db.is_active:
            self.db.rollback()

    def _get_model(self, id: Any) -> Optional[T]:
        return (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, "id") == id)
            .first()
        )

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        self._ensure_clean_session()
        return self._to_schema(self._get_model(id))

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        """특정 필드로 조회 - Pydantic 스키마 반환"""
        self._ensure_clean_session()
        model_instance = (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, field_name) == value)
            .first()
        )
        return self._to_schema(model_instance)

    def create(self, commit: bool = True, **kwargs) -> Optional[SchemaType]:
        """새 레코드 생성 - Pydantic 스키마 반환

        commit=False 이면 flush 까지만 하고 호출자의 트랜잭션에 맡긴다.
        """
        self._ensure_clean_session()
        instance = self.model_class(**kwargs)
        self.db.add(instance)
        try:
            self.db.flush()
            self.db.refresh(instance)
            if commit:
                self.db.commit()
        except Exception:
            if commit:
                self.db.rollback()
            raise
        return self._to_schema(instance)

    def update_where(self, instance_id: Any, conditions: Dict[str, Any], values: Dict[str, Any]) -> int:
        """조건부 단일 UPDATE. 매칭된 행 수를 반환 (commit 하지 않음)"""
        query = self.db.query(self.model_class).filter(
            getattr(self.model_class, "id") == instance_id
        )
        for key, value in conditions.items():
            column = getattr(self.model_class, key)
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query.update(
            {getattr(self.model_class, k): v for k, v in values.items()},
            synchronize_session=False,
        )

    def update_if_unmodified(
        self,
        instance_id: Any,
        client_seen: Optional[datetime],
        values: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None,
    ) -> int:
        """client_seen 이 있으면 updated_at == client_seen 일 때만 갱신 (낙관적 잠금)"""
        conditions = dict(conditions or {})
        if client_seen is not None:
            conditions["updated_at"] = client_seen
        return self.update_where(instance_id, conditions, values)

    def exists(self, filters: Dict[str, Any]) -> bool:
        """레코드 존재 여부 확인"""
        query = self.db.query(self.model_class)

        for key, value in filters.items():
            if hasattr(self.model_class, key):
                query = query.filter(getattr(self.model_class, key) == value)

        return query.first() is not None

    def refresh_by_id(self, id: Any) -> Optional[SchemaType]:
        """bulk UPDATE 이후 identity map 에 남은 값을 버리고 다시 읽는다"""
        instance = self._get_model(id)
        if instance is not None:
            self.db.refresh(instance)
        return self._to_schema(instance)

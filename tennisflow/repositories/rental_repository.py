from typing import Optional

from sqlalchemy.orm import Session

from tennisflow.models.rental import RentalOrder
from tennisflow.repositories.base import BaseRepository
from tennisflow.schemas.rental import RentalResponse


class RentalRepository(BaseRepository[RentalOrder, RentalResponse]):
    def __init__(self, db: Session):
        super().__init__(RentalOrder, RentalResponse, db)

    def get_model(self, rental_id: int) -> Optional[RentalOrder]:
        return self._get_model(rental_id)

    def get_by_idempotency_key(self, key: str) -> Optional[RentalResponse]:
        return self.get_by_field("idempotency_key", key)

    def add(self, **kwargs) -> RentalOrder:
        """트랜잭션 안에서 대여 추가 (flush 만 수행)"""
        rental = RentalOrder(**kwargs)
        self.db.add(rental)
        self.db.flush()
        return rental

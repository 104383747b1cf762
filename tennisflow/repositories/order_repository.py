from typing import Optional

from sqlalchemy.orm import Session

from tennisflow.models.order import Order as OrderModel
from tennisflow.repositories.base import BaseRepository
from tennisflow.schemas.order import OrderResponse


class OrderRepository(BaseRepository[OrderModel, OrderResponse]):
    def __init__(self, db: Session):
        super().__init__(OrderModel, OrderResponse, db)

    def get_model(self, order_id: int) -> Optional[OrderModel]:
        return self._get_model(order_id)

    def get_by_idempotency_key(self, key: str) -> Optional[OrderResponse]:
        return self.get_by_field("idempotency_key", key)

    def add(self, **kwargs) -> OrderModel:
        """트랜잭션 안에서 주문 추가 (flush 만 수행)"""
        order = OrderModel(**kwargs)
        self.db.add(order)
        self.db.flush()
        return order

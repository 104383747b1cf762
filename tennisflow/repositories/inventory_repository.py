from typing import Dict, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tennisflow.models.inventory import Product, UsedRacket
from tennisflow.models.rental import ACTIVE_RENTAL_STATUSES, RentalOrder


class InventoryRepository:
    """상품 재고 / 중고 라켓 대여 가용 수량"""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self.db.query(Product).filter(Product.id.in_(ids)).all()
        return {row.id: row for row in rows}

    def get_racket(self, racket_id: int) -> Optional[UsedRacket]:
        return self.db.query(UsedRacket).filter(UsedRacket.id == racket_id).first()

    def count_active_rentals(self, racket_id: int) -> int:
        return (
            self.db.query(func.count(RentalOrder.id))
            .filter(
                RentalOrder.racket_id == racket_id,
                RentalOrder.status.in_(ACTIVE_RENTAL_STATUSES),
            )
            .scalar()
            or 0
        )

    def available_rental_quantity(self, racket: UsedRacket) -> int:
        """보유 수량 - 진행중(paid/out) 대여 수"""
        base_quantity = racket.quantity if racket.quantity is not None else 1
        return base_quantity - self.count_active_rentals(racket.id)

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """재고가 충분할 때만 원자적으로 차감. 실패하면 False"""
        matched = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.stock >= quantity)
            .update(
                {
                    Product.stock: Product.stock - quantity,
                    Product.sold: Product.sold + quantity,
                },
                synchronize_session=False,
            )
        )
        return matched == 1

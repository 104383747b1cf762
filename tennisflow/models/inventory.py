from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String

from tennisflow.models.base import BaseModel, BigIntPK


class Product(BaseModel):
    """판매 상품 (스트링 포함)"""

    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock"),)

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    brand = Column(String(100), nullable=True)
    price = Column(Integer, nullable=False, default=0)
    # 스트링 교체 장착비 (스트링 상품만 의미 있음)
    mounting_fee = Column(Integer, nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)


class UsedRacket(BaseModel):
    """중고 라켓 - 판매 및 대여 대상"""

    __tablename__ = "used_rackets"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    price = Column(Integer, nullable=False, default=0)
    # 보유 수량. 대여 가능 수량 = quantity - 진행중(paid/out) 대여 수
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="available")

    rental_enabled = Column(Boolean, nullable=False, default=False)
    rental_deposit = Column(Integer, nullable=False, default=0)
    rental_fee_d7 = Column(Integer, nullable=True)
    rental_fee_d15 = Column(Integer, nullable=True)
    rental_fee_d30 = Column(Integer, nullable=True)

    def rental_fee_for(self, days: int):
        return {
            7: self.rental_fee_d7,
            15: self.rental_fee_d15,
            30: self.rental_fee_d30,
        }.get(days)

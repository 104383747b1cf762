import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tennisflow.config import settings  # noqa: E402
from tennisflow.database.connection import engine  # noqa: E402
from tennisflow.database.session import get_db_context  # noqa: E402
from tennisflow.models.base import Base  # noqa: E402
from tennisflow.models import board, inventory, order, points, rental, stringing, user  # noqa: E402,F401
from tennisflow.models.inventory import Product, UsedRacket  # noqa: E402
from tennisflow.models.user import UserRole  # noqa: E402
from tennisflow.repositories.user_repository import UserRepository  # noqa: E402
from tennisflow.services.point_service import PointService  # noqa: E402


def init_db(seed: bool = False):
    """데이터베이스 초기화 (테이블 생성, 선택적으로 샘플 상품 추가)"""
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized: {settings.database_url.split('@')[-1]}")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise

    if seed:
        seed_catalog()


def seed_catalog():
    with get_db_context() as db:
        if db.query(Product).count() > 0:
            print("Catalog already seeded, skipping")
            return
        db.add_all(
            [
                Product(name="RPM Blast 1.25", brand="Babolat", price=18000, mounting_fee=15000, stock=50),
                Product(name="Alu Power 1.25", brand="Luxilon", price=25000, mounting_fee=15000, stock=30),
                Product(name="Pro Staff Overgrip", brand="Wilson", price=9000, stock=100),
            ]
        )
        db.add(
            UsedRacket(
                brand="Wilson",
                model="Blade 98 v8",
                price=150000,
                quantity=2,
                rental_enabled=True,
                rental_deposit=100000,
                rental_fee_d7=15000,
                rental_fee_d15=25000,
                rental_fee_d30=40000,
            )
        )
        user_repo = UserRepository(db)
        user_repo.create_user(
            "admin@tennisflow.local", "관리자", role=UserRole.ADMIN.value, commit=False
        )
        member = user_repo.create_user("member@tennisflow.local", "테스트회원", commit=False)
        db.commit()

        # 캠페인 기간이면 가입 보너스 지급
        PointService(db).grant_signup_bonus(member.id)
        print("Sample catalog and users seeded")


if __name__ == "__main__":
    init_db(seed="--seed" in sys.argv)

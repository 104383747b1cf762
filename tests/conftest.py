import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tennisflow.config import Settings
from tennisflow.models.base import Base
from tennisflow.models import board, inventory, order, points, rental, stringing, user  # noqa: F401
from tennisflow.models.inventory import Product, UsedRacket
from tennisflow.models.user import User as UserModel
from tennisflow.schemas.user import User as UserSchema


@pytest.fixture
def engine():
    """SAVEPOINT 를 지원하는 인메모리 sqlite 엔진"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite 의 자체 BEGIN 처리를 끄고 SQLAlchemy 가 트랜잭션을 관리하게 한다
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        SIGNUP_BONUS_ENABLED=False,
        TX_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(balance: int = 0, debt: int = 0, role: str = "user") -> UserSchema:
        counter["n"] += 1
        row = UserModel(
            email=f"player{counter['n']}@example.com",
            name=f"player{counter['n']}",
            role=role,
            points_balance=balance,
            points_debt=debt,
        )
        db.add(row)
        db.commit()
        return UserSchema.model_validate(row)

    return _make


@pytest.fixture
def make_product(db):
    def _make(price: int = 10000, stock: int = 10, mounting_fee: int = 0, name: str = "RPM Blast") -> Product:
        product = Product(
            name=name, brand="Babolat", price=price, mounting_fee=mounting_fee, stock=stock
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_racket(db):
    def _make(quantity: int = 1, deposit: int = 300, fee_d7: int = 900) -> UsedRacket:
        racket = UsedRacket(
            brand="Wilson",
            model="Blade 98",
            price=150000,
            quantity=quantity,
            rental_enabled=True,
            rental_deposit=deposit,
            rental_fee_d7=fee_d7,
            rental_fee_d15=fee_d7 * 2,
            rental_fee_d30=fee_d7 * 3,
        )
        db.add(racket)
        db.commit()
        return racket

    return _make


@pytest.fixture
def cache_of(db):
    """bulk UPDATE 이후 identity map 을 우회해 (balance, debt) 를 읽는다"""

    def _read(user_id: int):
        row = (
            db.query(UserModel.points_balance, UserModel.points_debt)
            .filter(UserModel.id == user_id)
            .one()
        )
        return int(row[0]), int(row[1])

    return _read


@pytest.fixture
def app(db):
    """테스트 세션을 쓰도록 get_db 를 바꾼 애플리케이션"""
    from tennisflow.database.session import get_db
    from tennisflow.main import create_app

    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    from tennisflow.core.security import create_access_token

    def _headers(user: UserSchema) -> dict:
        token = create_access_token({"user_id": user.id, "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers

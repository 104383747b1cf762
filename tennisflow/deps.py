from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from tennisflow.database.session import get_db
from tennisflow.containers import Container

# Services
from tennisflow.services.board_service import BoardService
from tennisflow.services.order_service import OrderService
from tennisflow.services.point_service import PointService
from tennisflow.services.rental_service import RentalService


def _container(request: Request) -> Container:
    return request.app.container  # type: ignore[attr-defined]


def get_point_service(request: Request, db: Session = Depends(get_db)) -> PointService:
    return _container(request).services.point_service(db=db)


def get_order_service(request: Request, db: Session = Depends(get_db)) -> OrderService:
    return _container(request).services.order_service(db=db)


def get_rental_service(request: Request, db: Session = Depends(get_db)) -> RentalService:
    return _container(request).services.rental_service(db=db)


def get_board_service(request: Request, db: Session = Depends(get_db)) -> BoardService:
    return _container(request).services.board_service(db=db)


def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
) -> Optional[str]:
    """Idempotency-Key 헤더. 공백뿐이면 없는 것으로 본다"""
    if idempotency_key is None:
        return None
    idempotency_key = idempotency_key.strip()
    return idempotency_key or None

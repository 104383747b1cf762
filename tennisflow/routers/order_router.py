"""
주문 API 라우터

- POST /orders: 주문 생성 (Idempotency-Key 지원, 비회원 가능)
- PATCH /orders/{order_id}/status: 상태 변경 (낙관적 잠금)
- POST /orders/{order_id}/confirm: 구매확정 (주문자)
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Path, Response, status

from tennisflow.core.auth_middleware import (
    get_current_active_user,
    get_current_user_optional,
)
from tennisflow.core.concurrency import resolve_client_seen
from tennisflow.deps import get_idempotency_key, get_order_service
from tennisflow.schemas.common import BaseResponse
from tennisflow.schemas.order import (
    OrderCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
)
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request: OrderCreateRequest,
    response: Response,
    user: Optional[UserSchema] = Depends(get_current_user_optional),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    order_service: OrderService = Depends(get_order_service),
) -> Any:
    """
    주문을 생성합니다.

    재고 차감, 주문, 스트링 신청서 draft, 포인트 차감이 하나의 트랜잭션입니다.
    포인트는 100 단위로 내림되며 배송비에는 사용할 수 없습니다.

    HTTP Status:
        201: 생성됨
        200: 같은 Idempotency-Key 재요청
        409: OUT_OF_STOCK, POINTS_DEBT_EXISTS, INSUFFICIENT_POINTS
    """
    order, replayed = order_service.create_order(
        user.id if user else None, request, idempotency_key
    )
    if replayed:
        response.status_code = status.HTTP_200_OK
    return BaseResponse(
        success=True,
        data={"order": order.model_dump(mode="json")},
        meta={"replayed": replayed},
    )


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    request: OrderStatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    if_unmodified_since: Optional[str] = Header(None, alias="If-Unmodified-Since"),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    주문 상태를 변경합니다.

    client_seen_date (또는 If-Unmodified-Since) 가 저장된 updated_at 과 다르면
    409 conflict, 주문이 사라졌으면 404 not_found 를 돌려줍니다.
    """
    client_seen = resolve_client_seen(
        request.client_seen_date, request.if_unmodified_since, if_unmodified_since
    )
    return order_service.update_status(order_id, current_user, request, client_seen)


@router.post("/{order_id}/confirm", response_model=OrderResponse)
def confirm_order(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """구매확정 - 결제금액의 1% 포인트가 적립됩니다"""
    return order_service.confirm_purchase(order_id, current_user)

"""
라켓 대여 API 라우터

- POST /rentals: 대여 생성 (Idempotency-Key 지원, 비회원 가능)
- POST /rentals/{rental_id}/pay: 결제 완료 처리 (주문자)
- POST /rentals/{rental_id}/out|return|cancel: 출고/반납/취소 (관리자)
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Response, status

from tennisflow.core.auth_middleware import (
    get_current_active_user,
    get_current_user_optional,
    require_admin,
)
from tennisflow.deps import get_idempotency_key, get_rental_service
from tennisflow.schemas.common import BaseResponse
from tennisflow.schemas.rental import RentalCreateRequest, RentalPayRequest, RentalResponse
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.rental_service import RentalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rentals", tags=["rentals"])


@router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
def create_rental(
    request: RentalCreateRequest,
    response: Response,
    user: Optional[UserSchema] = Depends(get_current_user_optional),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    rental_service: RentalService = Depends(get_rental_service),
) -> Any:
    """
    라켓 대여를 생성합니다.

    대여 문서, 스트링 신청서 draft, 포인트 차감이 하나의 트랜잭션으로 처리됩니다.
    같은 Idempotency-Key 로 다시 요청하면 기존 대여를 200 으로 돌려줍니다.

    HTTP Status:
        201: 생성됨
        200: 재요청 (meta.replayed=true)
        409: RENTAL_RESERVED, POINTS_DEBT_EXISTS, INSUFFICIENT_POINTS
        503: TRANSACTION_RETRY_EXHAUSTED
    """
    rental, replayed = rental_service.create_rental(
        user.id if user else None, request, idempotency_key
    )
    if replayed:
        response.status_code = status.HTTP_200_OK
    return BaseResponse(
        success=True,
        data={"rental": rental.model_dump(mode="json")},
        meta={"replayed": replayed},
    )


@router.post("/{rental_id}/pay", response_model=RentalResponse)
def pay_rental(
    request: RentalPayRequest,
    rental_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    rental_service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    return rental_service.pay(rental_id, current_user, request)


@router.post("/{rental_id}/out", response_model=RentalResponse)
def mark_rental_out(
    rental_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(require_admin),
    rental_service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    return rental_service.mark_out(rental_id, admin)


@router.post("/{rental_id}/return", response_model=RentalResponse)
def mark_rental_returned(
    rental_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(require_admin),
    rental_service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    return rental_service.mark_returned(rental_id, admin)


@router.post("/{rental_id}/cancel", response_model=RentalResponse)
def cancel_rental(
    rental_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(require_admin),
    rental_service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    """대여 취소 - 사용한 포인트는 복원됩니다 (복원 실패는 취소를 되돌리지 않음)"""
    return rental_service.cancel(rental_id, admin)

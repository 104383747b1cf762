"""
포인트 API 라우터

사용자용:
- GET /points/me/summary: 잔액/부채/사용 가능 포인트
- GET /points/me/history: 요약 + 최신순 거래 내역

관리자용:
- POST /points/admin/adjust: 포인트 지급(+) / 차감(-)
- POST /points/admin/users/{user_id}/review-reward: 리뷰 보상 지급
- GET /points/admin/users/{user_id}/history: 사용자 거래 내역
- GET /points/admin/users/{user_id}/integrity: 원장-캐시 정합성 검증
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from tennisflow.core.auth_middleware import get_current_active_user, require_admin
from tennisflow.deps import get_point_service
from tennisflow.schemas.points import (
    AdminPointsAdjustmentRequest,
    AdminPointsAdjustmentResponse,
    PointsHistoryResponse,
    PointsIntegrityCheckResponse,
    PointsOperationResult,
    PointsSummaryResponse,
    ReviewRewardRequest,
)
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


def _history(point_service: PointService, user_id: int, page, limit) -> PointsHistoryResponse:
    summary = point_service.get_points_summary(user_id)
    page_data = point_service.list_point_transactions(user_id, page=page, limit=limit)
    return PointsHistoryResponse(**summary.model_dump(), **page_data.model_dump())


@router.get("/me/summary", response_model=PointsSummaryResponse)
def get_my_summary(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsSummaryResponse:
    """내 포인트 요약 - 결제 화면에서 사용 가능 포인트 상한으로 쓴다"""
    return point_service.get_points_summary(current_user.id)


@router.get("/me/history", response_model=PointsHistoryResponse)
def get_my_history(
    page: Optional[str] = Query(None, description="페이지 (1부터). 잘못된 값은 1"),
    limit: Optional[str] = Query(None, description="페이지 크기 (1-50). 범위 밖이면 20"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsHistoryResponse:
    """내 포인트 내역

    page/limit 범위 오류는 422 가 아니라 기본값으로 대체된다.
    """
    return _history(point_service, current_user.id, page, limit)


@router.post("/admin/adjust", response_model=AdminPointsAdjustmentResponse)
def admin_adjust_points(
    request: AdminPointsAdjustmentRequest,
    admin: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> AdminPointsAdjustmentResponse:
    """관리자 포인트 조정

    HTTP Status:
        200: 성공 (중복 ref_key 면 result.duplicated=true)
        400: INVALID_AMOUNT
        404: USER_NOT_FOUND
        409: INSUFFICIENT_POINTS (차감 시 잔액 부족 또는 부채 존재)
    """
    return point_service.admin_adjust_points(admin.id, request)


@router.post(
    "/admin/users/{user_id}/review-reward", response_model=PointsOperationResult
)
def admin_issue_review_reward(
    request: ReviewRewardRequest,
    user_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsOperationResult:
    logger.info(f"Admin {admin.id} issuing review reward {request.review_id} to user {user_id}")
    return point_service.issue_review_reward(user_id, request.review_id, request.type)


@router.get("/admin/users/{user_id}/history", response_model=PointsHistoryResponse)
def admin_get_user_history(
    user_id: int = Path(..., gt=0),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    admin: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsHistoryResponse:
    return _history(point_service, user_id, page, limit)


@router.get(
    "/admin/users/{user_id}/integrity", response_model=PointsIntegrityCheckResponse
)
def admin_verify_user_integrity(
    user_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    """원장을 부채 우선 규칙으로 재생해 캐시와 비교 (OK / MISMATCH)"""
    return point_service.verify_user_integrity(user_id)

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tennisflow.models.points import PointTransactionType


class PointsSummaryResponse(BaseModel):
    """포인트 요약 (잔액/부채/사용 가능)"""

    balance: int = Field(..., ge=0, description="현재 포인트 잔액")
    debt: int = Field(..., ge=0, description="포인트 부채")
    available: int = Field(..., ge=0, description="사용 가능 포인트 = max(0, balance - debt)")

    class Config:
        from_attributes = True


class PointTransactionEntry(BaseModel):
    """포인트 원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    user_id: int = Field(..., description="사용자 ID")
    amount: int = Field(..., description="포인트 변화량 (양수=적립, 음수=차감)")
    type: str = Field(..., description="거래 사유 타입")
    status: str = Field(..., description="confirmed | pending")
    ref_key: Optional[str] = Field(None, description="멱등성 키")
    ref: Optional[Dict[str, Any]] = Field(None, description="원천 객체 참조")
    reason: Optional[str] = Field(None, description="메모")
    created_at: datetime = Field(..., description="생성 시간")

    class Config:
        from_attributes = True


class PointTransactionPage(BaseModel):
    """포인트 거래 내역 페이지"""

    total: int = Field(..., description="전체 항목 수")
    items: List[PointTransactionEntry] = Field(..., description="최신순 항목")
    page: int = Field(..., description="페이지 (1부터)")
    limit: int = Field(..., description="페이지 크기")


class PointsHistoryResponse(PointTransactionPage):
    """내 포인트 탭 응답 - 요약 + 내역"""

    balance: int
    debt: int
    available: int


class PointsOperationResult(BaseModel):
    """적립/차감 결과. 중복 ref_key 면 duplicated=True 이고 잔액 변화 없음"""

    duplicated: bool = Field(False, description="이미 처리된 ref_key 여부")
    transaction_id: Optional[int] = Field(None, description="원장 항목 ID")
    amount: int = Field(0, description="기록된 금액 (차감은 음수)")


class AdminPointsAdjustmentRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: int = Field(..., gt=0, description="사용자 ID")
    amount: int = Field(..., description="조정할 포인트 (양수: 지급, 음수: 차감)")
    reason: Optional[str] = Field(None, max_length=255, description="조정 사유")
    ref_key: Optional[str] = Field(None, max_length=100, description="중복 방지 키")


class AdminPointsAdjustmentResponse(BaseModel):
    result: PointsOperationResult
    summary: PointsSummaryResponse


class ReviewRewardRequest(BaseModel):
    review_id: int = Field(..., gt=0)
    type: PointTransactionType = PointTransactionType.REVIEW_REWARD_PRODUCT


class PointsIntegrityCheckResponse(BaseModel):
    """포인트 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    user_id: int = Field(..., description="사용자 ID")
    calculated_balance: int = Field(..., description="원장 재생 잔액")
    calculated_debt: int = Field(..., description="원장 재생 부채")
    recorded_balance: int = Field(..., description="캐시 잔액")
    recorded_debt: int = Field(..., description="캐시 부채")
    entry_count: int = Field(..., description="확정 원장 항목 수")
    verified_at: datetime = Field(..., description="검증 시간")

from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, status

from tennisflow.core.auth_middleware import get_current_active_user
from tennisflow.core.concurrency import resolve_client_seen
from tennisflow.core.exceptions import NotFoundError
from tennisflow.deps import get_board_service
from tennisflow.schemas.board import (
    BoardPostCreateRequest,
    BoardPostPatchRequest,
    BoardPostResponse,
)
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.board_service import BoardService

router = APIRouter(prefix="/board", tags=["board"])


@router.post(
    "/posts", response_model=BoardPostResponse, status_code=status.HTTP_201_CREATED
)
def create_post(
    request: BoardPostCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    board_service: BoardService = Depends(get_board_service),
) -> BoardPostResponse:
    return board_service.create_post(current_user, request)


@router.get("/posts/{post_id}", response_model=BoardPostResponse)
def get_post(
    post_id: int = Path(..., gt=0),
    board_service: BoardService = Depends(get_board_service),
) -> BoardPostResponse:
    post = board_service.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found", details={"post_id": post_id})
    return post


@router.patch("/posts/{post_id}", response_model=BoardPostResponse)
def patch_post(
    request: BoardPostPatchRequest,
    post_id: int = Path(..., gt=0),
    if_unmodified_since: Optional[str] = Header(None, alias="If-Unmodified-Since"),
    current_user: UserSchema = Depends(get_current_active_user),
    board_service: BoardService = Depends(get_board_service),
) -> BoardPostResponse:
    """게시글 수정. 응답의 updated_at 을 다음 수정의 client_seen_date 로 보낸다"""
    client_seen = resolve_client_seen(
        request.client_seen_date, request.if_unmodified_since, if_unmodified_since
    )
    return board_service.patch_post(post_id, current_user, request, client_seen)

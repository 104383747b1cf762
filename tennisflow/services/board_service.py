import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from tennisflow.core.concurrency import advance_token, raise_patch_failure
from tennisflow.core.exceptions import AuthorizationError
from tennisflow.repositories.board_repository import BoardRepository
from tennisflow.schemas.board import (
    BoardPostCreateRequest,
    BoardPostPatchRequest,
    BoardPostResponse,
)
from tennisflow.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)


class BoardService:
    """커뮤니티 게시글"""

    def __init__(self, db: Session):
        self.db = db
        self.board_repo = BoardRepository(db)

    def create_post(self, author: UserSchema, request: BoardPostCreateRequest) -> BoardPostResponse:
        post = self.board_repo.create(author_id=author.id, **request.model_dump())
        logger.info(f"Board post {post.id} created by user {author.id}")
        return post

    def get_post(self, post_id: int) -> Optional[BoardPostResponse]:
        return self.board_repo.get_by_id(post_id)

    def patch_post(
        self,
        post_id: int,
        actor: UserSchema,
        request: BoardPostPatchRequest,
        client_seen: Optional[datetime] = None,
    ) -> BoardPostResponse:
        """게시글 수정 (낙관적 잠금)

        성공하면 새 updated_at 을 담은 게시글을 돌려준다. 클라이언트는 이를
        다음 수정의 client_seen_date 로 사용한다.
        """
        post = self.board_repo.get_by_id(post_id)
        if post is None:
            raise_patch_failure(client_seen is not None, False, "board_post", post_id)
        if post.author_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not the author of this post")

        values = request.changes()
        values["updated_at"] = advance_token(post.updated_at)
        matched = self.board_repo.update_if_unmodified(post_id, client_seen, values)
        if matched == 0:
            self.db.rollback()
            still_exists = self.board_repo.exists({"id": post_id})
            raise_patch_failure(client_seen is not None, still_exists, "board_post", post_id)

        self.db.commit()
        logger.info(f"Board post {post_id} updated by user {actor.id}")
        return self.board_repo.refresh_by_id(post_id)

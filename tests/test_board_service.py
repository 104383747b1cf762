import pydantic
import pytest

from tennisflow.core.concurrency import to_utc
from tennisflow.core.exceptions import AuthorizationError, DocumentGoneError, StaleWriteError
from tennisflow.schemas.board import BoardPostCreateRequest, BoardPostPatchRequest
from tennisflow.services.board_service import BoardService


@pytest.fixture
def board_service(db):
    return BoardService(db)


@pytest.fixture
def post(board_service, make_user):
    author = make_user()
    created = board_service.create_post(
        author, BoardPostCreateRequest(title="스트링 추천", content="폴리 추천 부탁드립니다")
    )
    return created, author


class TestPatchPost:
    """게시글 낙관적 잠금 수정"""

    def test_patch_returns_new_token(self, board_service, post):
        created, author = post

        updated = board_service.patch_post(
            created.id,
            author,
            BoardPostPatchRequest(title="스트링 추천 (수정)"),
            client_seen=created.updated_at,
        )

        assert updated.title == "스트링 추천 (수정)"
        assert updated.content == created.content
        assert to_utc(updated.updated_at) > to_utc(created.updated_at)

    def test_chained_patches_with_fresh_token(self, board_service, post):
        created, author = post

        first = board_service.patch_post(
            created.id, author, BoardPostPatchRequest(title="v2"), client_seen=created.updated_at
        )
        second = board_service.patch_post(
            created.id, author, BoardPostPatchRequest(title="v3"), client_seen=first.updated_at
        )

        assert second.title == "v3"

    def test_stale_token_conflicts(self, board_service, post):
        created, author = post
        board_service.patch_post(
            created.id, author, BoardPostPatchRequest(title="v2"), client_seen=created.updated_at
        )

        with pytest.raises(StaleWriteError):
            board_service.patch_post(
                created.id,
                author,
                BoardPostPatchRequest(content="덮어쓰기"),
                client_seen=created.updated_at,
            )

        assert board_service.get_post(created.id).content == created.content

    def test_missing_post_is_not_found(self, board_service, post):
        _, author = post

        with pytest.raises(DocumentGoneError):
            board_service.patch_post(
                999, author, BoardPostPatchRequest(title="x"), client_seen=None
            )

    def test_patch_without_token_always_applies(self, board_service, post):
        created, author = post

        updated = board_service.patch_post(created.id, author, BoardPostPatchRequest(brand="Yonex"))

        assert updated.brand == "Yonex"

    def test_only_author_or_admin(self, board_service, post, make_user):
        created, _ = post

        with pytest.raises(AuthorizationError):
            board_service.patch_post(created.id, make_user(), BoardPostPatchRequest(title="x"))

        updated = board_service.patch_post(
            created.id, make_user(role="admin"), BoardPostPatchRequest(category="notice")
        )
        assert updated.category == "notice"

    def test_empty_patch_is_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            BoardPostPatchRequest(client_seen_date="2026-01-01T00:00:00Z")

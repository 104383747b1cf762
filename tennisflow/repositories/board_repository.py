from sqlalchemy.orm import Session

from tennisflow.models.board import BoardPost
from tennisflow.repositories.base import BaseRepository
from tennisflow.schemas.board import BoardPostResponse


class BoardRepository(BaseRepository[BoardPost, BoardPostResponse]):
    def __init__(self, db: Session):
        super().__init__(BoardPost, BoardPostResponse, db)

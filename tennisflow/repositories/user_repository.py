from typing import Optional

from sqlalchemy.orm import Session

from tennisflow.models.user import User as UserModel
from tennisflow.schemas.user import User as UserSchema
from tennisflow.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def create_user(
        self, email: str, name: str, role: str = "user", commit: bool = True
    ) -> Optional[UserSchema]:
        return self.create(commit=commit, email=email, name=name, role=role)

    def get_active_user(self, user_id: int) -> Optional[UserSchema]:
        user = self.get_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user

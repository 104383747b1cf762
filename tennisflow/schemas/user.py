from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from tennisflow.models.user import UserRole


class User(BaseModel):
    """인증된 사용자"""

    id: int
    email: str
    name: str
    role: str = UserRole.USER.value
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)

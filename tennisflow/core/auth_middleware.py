from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from tennisflow.database.session import get_db
from tennisflow.repositories.user_repository import UserRepository
from tennisflow.schemas.user import User as UserSchema
from tennisflow.core.exceptions import AuthenticationError, AuthorizationError
from tennisflow.core.security import decode_access_token

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def _load_user(token: str, db: Session) -> UserSchema:
    payload = decode_access_token(token)
    user = UserRepository(db).get_active_user(payload.user_id)
    if user is None:
        raise AuthenticationError("User not found or inactive")
    return user


def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[UserSchema]:
    """선택적 사용자 인증 - 토큰이 없으면 None (비회원 주문)

    토큰을 보냈는데 유효하지 않으면 401 로 거절한다.
    """
    if not credentials:
        return None
    return _load_user(credentials.credentials, db)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UserSchema:
    """필수 사용자 인증 - 유효한 토큰이 필요함"""
    if not credentials:
        raise AuthenticationError("Authentication required")
    return _load_user(credentials.credentials, db)


def get_current_active_user(
    current_user: UserSchema = Depends(get_current_user),
) -> UserSchema:
    """활성 사용자만 허용"""
    if not current_user.is_active:
        raise AuthenticationError("Inactive user account")
    return current_user


def require_admin(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserSchema:
    """관리자 권한이 필요한 엔드포인트용 의존성"""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user

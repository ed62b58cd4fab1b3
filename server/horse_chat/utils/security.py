from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from horse_chat.config import get_settings
from horse_chat.schemas.auth import AuthUser, TokenPayload


class InvalidToken(Exception):
    pass


def create_access_token(user_id: str, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload: Dict[str, Any] = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except (JWTError, ValueError) as exc:
        raise InvalidToken("Invalid or expired token") from exc


def authenticate_token(token: Optional[str]) -> AuthUser:
    if not token:
        raise InvalidToken("No token provided")
    payload = decode_access_token(token)
    return AuthUser(id=payload.sub, role=payload.role)

from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):

    sub: str
    role: Optional[str] = None
    exp: int


class AuthUser(BaseModel):
    """Identity resolved from a bearer token."""

    id: str
    role: Optional[str] = None

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from horse_chat.database.connection import mongo_db_dependency
from horse_chat.repositories.conversation_repository import ConversationRepository
from horse_chat.repositories.message_repository import MessageRepository
from horse_chat.schemas.auth import AuthUser
from horse_chat.services.chat_service import ChatService
from horse_chat.utils.security import InvalidToken, authenticate_token


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthUser:
    token = credentials.credentials if credentials else None
    try:
        return authenticate_token(token)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_chat_service(db=Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(MessageRepository(db), ConversationRepository(db))

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from horse_chat.routers.chat import announce_message
from horse_chat.schemas.auth import AuthUser
from horse_chat.schemas.chat import (
    ConversationCreate,
    ConversationList,
    ConversationPublic,
    MessageCreate,
    MessagePage,
    MessagePublic,
    UnreadCount,
)
from horse_chat.services.chat_service import DEFAULT_PAGE_SIZE, ChatService, clamp_pagination
from horse_chat.utils.dependencies import get_chat_service, get_current_user


router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(current_user: AuthUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return UnreadCount(unread_count=await service.unread_count(current_user.id))


@router.post("/conversations", response_model=ConversationPublic)
async def get_or_create_conversation(body: ConversationCreate, current_user: AuthUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    convo = await service.get_or_create_conversation(current_user.id, body.recipient_id, body.listing_id)
    return ConversationPublic.from_document(convo)


@router.get("/conversations", response_model=ConversationList)
async def list_conversations(current_user: AuthUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    items = await service.list_conversations(current_user.id)
    return ConversationList(items=[ConversationPublic.from_document(c) for c in items])


@router.get("/conversations/{conversation_id}/messages", response_model=MessagePage)
async def list_messages(
    conversation_id: str,
    page: int = Query(1),
    limit: Optional[int] = Query(DEFAULT_PAGE_SIZE),
    current_user: AuthUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    page, limit = clamp_pagination(page, limit)
    messages = await service.get_history(conversation_id, current_user.id, page=page, page_size=limit)
    return MessagePage(items=[MessagePublic.from_document(m) for m in messages], page=page, limit=limit)


@router.post("/conversations/{conversation_id}/messages", response_model=MessagePublic, status_code=status.HTTP_201_CREATED)
async def send_message(conversation_id: str, body: MessageCreate, current_user: AuthUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    message, convo = await service.send_message(conversation_id, current_user.id, body.text)
    await announce_message(message, convo, current_user.id)
    return MessagePublic.from_document(message)


@router.delete("/conversations/{conversation_id}/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(conversation_id: str, message_id: str, current_user: AuthUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.delete_message(conversation_id, message_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

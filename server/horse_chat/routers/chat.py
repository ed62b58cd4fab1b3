import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from horse_chat.exceptions import ChatError, InvalidInput
from horse_chat.schemas.chat import MessageNotification, MessagePublic
from horse_chat.services.chat_service import ChatService, preview_text
from horse_chat.utils.dependencies import get_chat_service
from horse_chat.utils.security import InvalidToken, authenticate_token
from horse_chat.utils.websocket_manager import ChannelSession, ConnectionManager, conversation_room, user_room


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])
manager = ConnectionManager()

WS_UNAUTHORIZED = 4401


def _handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def _conversation_id_from(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("conversation_id") or data.get("conversationId")
    return data


async def announce_message(message: Dict[str, Any], convo: Dict[str, Any], sender_id: str) -> Dict[str, Any]:
    """Push a stored message to the live channel and return its public form.

    The message is already stored when this runs, so a delivery failure is
    logged and the public form is still returned to the caller.
    """
    payload = MessagePublic.from_document(message).model_dump(mode="json")
    try:
        await manager.emit(conversation_room(convo["_id"]), "new_message", payload)
        recipient_id = ChatService.other_participant(convo, sender_id)
        if recipient_id:
            notification = MessageNotification(
                conversation_id=convo["_id"],
                sender=sender_id,
                preview=preview_text(message["text"]),
            )
            await manager.emit(user_room(recipient_id), "message_notification", notification.model_dump())
    except Exception:
        logger.exception("Live delivery failed for message %s", message["_id"])
    return payload


class ChannelHandler:
    """Dispatches client events for one authenticated connection."""

    def __init__(self, session: ChannelSession, service: ChatService) -> None:
        self.session = session
        self.service = service

    async def dispatch(self, frame: Dict[str, Any]) -> None:
        event = frame.get("event")
        data = frame.get("data")
        ack_id = frame.get("ack")
        handler = {
            "join_conversation": self.join_conversation,
            "send_message": self.send_message,
            "typing": self.typing,
            "stop_typing": self.stop_typing,
        }.get(event)
        if handler is None:
            await self.session.send_event("error", {"message": f"Unknown event: {event}"})
            return
        try:
            result = await handler(data)
        except ChatError as exc:
            result = {"success": False, "message": exc.message}
        except Exception:
            logger.exception("Channel event %s failed for user %s", event, self.session.user_id)
            result = {"success": False, "message": "Error handling event"}
        if ack_id is not None and result is not None:
            await self.session.send_ack(ack_id, result)

    async def join_conversation(self, data: Any) -> Dict[str, Any]:
        convo = await self.service.get_conversation_for(_conversation_id_from(data), self.session.user_id)
        manager.join(self.session, conversation_room(convo["_id"]))
        logger.debug("User %s joined conv:%s", self.session.user_id, convo["_id"])
        return {"success": True, "data": {"conversation_id": convo["_id"]}}

    async def send_message(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise InvalidInput("Expected {conversation_id, text}")
        message, convo = await self.service.send_message(data.get("conversation_id"), self.session.user_id, data.get("text"))
        payload = await announce_message(message, convo, self.session.user_id)
        return {"success": True, "data": payload}

    async def typing(self, data: Any) -> None:
        await self._relay_typing(data, "user_typing")

    async def stop_typing(self, data: Any) -> None:
        await self._relay_typing(data, "user_stop_typing")

    async def _relay_typing(self, data: Any, event: str) -> None:
        room = conversation_room(str(_conversation_id_from(data)))
        # only rooms joined after the participant check
        if room not in self.session.rooms:
            return
        await manager.emit(room, event, {"userId": self.session.user_id}, skip_sid=self.session.sid)


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, service: ChatService = Depends(get_chat_service)):
    try:
        user = authenticate_token(_handshake_token(websocket))
    except InvalidToken as exc:
        logger.info("Rejected channel handshake: %s", exc)
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    session = ChannelSession(websocket=websocket, user_id=user.id, role=user.role)
    await manager.connect(session)
    handler = ChannelHandler(session, service)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                frame = None
            if not isinstance(frame, dict):
                await session.send_event("error", {"message": "Invalid payload"})
                continue
            await handler.dispatch(frame)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(session)

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from horse_chat.utils.realtime_bus import NoopBus, ROOM_EVENTS_CHANNEL


logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id: str) -> str:
    return f"conv:{conversation_id}"


@dataclass(eq=False)
class ChannelSession:
    """Per-connection context, created after the handshake is authenticated."""

    websocket: WebSocket
    user_id: str
    role: Optional[str] = None
    sid: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: Set[str] = field(default_factory=set)

    async def send_event(self, event: str, data: Any) -> None:
        await self.websocket.send_text(json.dumps({"event": event, "data": data}))

    async def send_ack(self, ack_id: Any, data: Dict[str, Any]) -> None:
        await self.websocket.send_text(json.dumps({"event": "ack", "ack": ack_id, "data": data}))


class ConnectionManager:
    """Room registry for the live channel.

    Rooms map to the sessions of this process only. When a bus is attached,
    emits go through it and come back via ``deliver_relayed`` on every
    instance, including this one.
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, ChannelSession] = {}
        self.rooms: Dict[str, Set[str]] = {}
        self._bus = NoopBus()

    def attach_bus(self, bus) -> None:
        self._bus = bus

    def detach_bus(self) -> None:
        self._bus = NoopBus()

    async def connect(self, session: ChannelSession) -> None:
        await session.websocket.accept()
        self.sessions[session.sid] = session
        self.join(session, user_room(session.user_id))
        logger.info("Channel connected: user=%s sid=%s", session.user_id, session.sid)

    def disconnect(self, session: ChannelSession) -> None:
        for room in list(session.rooms):
            self.leave(session, room)
        self.sessions.pop(session.sid, None)
        logger.info("Channel disconnected: user=%s sid=%s", session.user_id, session.sid)

    def join(self, session: ChannelSession, room: str) -> None:
        self.rooms.setdefault(room, set()).add(session.sid)
        session.rooms.add(room)

    def leave(self, session: ChannelSession, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(session.sid)
            if not members:
                del self.rooms[room]
        session.rooms.discard(room)

    def members(self, room: str) -> Set[str]:
        return set(self.rooms.get(room, ()))

    async def emit(self, room: str, event: str, data: Any, skip_sid: Optional[str] = None) -> None:
        if getattr(self._bus, "enabled", False):
            envelope = {"room": room, "event": event, "data": data, "skip_sid": skip_sid}
            await self._bus.publish(ROOM_EVENTS_CHANNEL, json.dumps(envelope))
            return
        await self.deliver_local(room, event, data, skip_sid)

    async def deliver_relayed(self, raw: str) -> None:
        envelope = json.loads(raw)
        await self.deliver_local(envelope["room"], envelope["event"], envelope["data"], envelope.get("skip_sid"))

    async def deliver_local(self, room: str, event: str, data: Any, skip_sid: Optional[str] = None) -> None:
        for sid in self.members(room):
            if sid == skip_sid:
                continue
            session = self.sessions.get(sid)
            if session is None:
                continue
            try:
                await session.send_event(event, data)
            except Exception:
                # the receive loop of that connection does the cleanup
                logger.debug("Dropping %s to closed connection %s", event, sid, exc_info=True)

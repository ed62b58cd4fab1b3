import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId

from horse_chat.exceptions import InvalidInput, NotFound
from horse_chat.models.message import MAX_MESSAGE_LENGTH
from horse_chat.repositories.conversation_repository import ConversationRepository
from horse_chat.repositories.message_repository import MessageRepository
from horse_chat.utils.object_ids import is_valid_id, parse_object_id


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100
PREVIEW_LENGTH = 60

CONVERSATION_NOT_FOUND = "Conversation not found"


def clamp_pagination(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    page = max(1, page or 1)
    page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size
    return page, min(MAX_PAGE_SIZE, max(1, page_size))


def preview_text(text: str) -> str:
    return text[:PREVIEW_LENGTH]


def text_length(text: str) -> int:
    """Length in UTF-16 code units, the unit browsers and mobile clients count in."""
    return len(text.encode("utf-16-le")) // 2


class ChatService:
    """Conversation and message operations shared by the HTTP API and the live channel."""

    def __init__(self, message_repo: MessageRepository, conversation_repo: ConversationRepository) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo

    async def get_or_create_conversation(self, requester_id: str, recipient_id: str, listing_id: Optional[str] = None) -> Dict[str, Any]:
        if not is_valid_id(recipient_id):
            raise InvalidInput("Invalid recipient ID")
        if requester_id == recipient_id:
            raise InvalidInput("Cannot message yourself")
        if listing_id is not None and not is_valid_id(listing_id):
            raise InvalidInput("Invalid listing ID")
        return await self._conversation_repo.get_or_create(requester_id, recipient_id, listing_id)

    async def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        return await self._conversation_repo.list_for_user(user_id)

    async def get_conversation_for(self, conversation_id: Any, user_id: str) -> Dict[str, Any]:
        """Return the conversation if the user takes part in it.

        Unknown ids, malformed ids and conversations of other users all raise
        the same NotFound so callers cannot tell which case applied.
        """
        convo_oid = parse_object_id(conversation_id)
        if convo_oid is None:
            raise NotFound(CONVERSATION_NOT_FOUND)
        convo = await self._conversation_repo.find_for_participant(convo_oid, user_id)
        if not convo:
            raise NotFound(CONVERSATION_NOT_FOUND)
        return convo

    async def send_message(self, conversation_id: Any, sender_id: str, text: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Append a message and refresh the conversation snapshot.

        Returns the stored message and the conversation it belongs to. The
        snapshot update is best effort: the message is already durable when
        it runs, so a failure there is logged and not reported.
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Message text cannot be empty")
        text = text.strip()
        if text_length(text) > MAX_MESSAGE_LENGTH:
            raise InvalidInput(f"Message text cannot exceed {MAX_MESSAGE_LENGTH} characters")

        convo = await self.get_conversation_for(conversation_id, sender_id)
        convo_oid = ObjectId(convo["_id"])
        message = await self._message_repo.insert(convo_oid, sender_id, text)
        try:
            await self._conversation_repo.update_last_message(convo_oid, message)
        except Exception:
            logger.exception("Failed to update last_message snapshot for conversation %s", convo["_id"])
        return message, convo

    async def get_history(self, conversation_id: Any, requester_id: str, page: Optional[int] = None, page_size: Optional[int] = None) -> List[Dict[str, Any]]:
        convo = await self.get_conversation_for(conversation_id, requester_id)
        convo_oid = ObjectId(convo["_id"])
        page, page_size = clamp_pagination(page, page_size)
        messages = await self._message_repo.get_page(convo_oid, skip=(page - 1) * page_size, limit=page_size)
        marked = await self._message_repo.mark_read_for_reader(convo_oid, requester_id)
        if marked:
            await self._conversation_repo.mark_last_message_read(convo_oid, requester_id)
            logger.debug("Marked %d messages read in %s for %s", marked, convo["_id"], requester_id)
        return messages

    async def unread_count(self, user_id: str) -> int:
        convo_ids = await self._conversation_repo.list_ids_for_user(user_id)
        return await self._message_repo.count_unread(convo_ids, user_id)

    async def delete_message(self, conversation_id: Any, message_id: Any, requester_id: str) -> None:
        convo = await self.get_conversation_for(conversation_id, requester_id)
        message_oid = parse_object_id(message_id)
        if message_oid is None:
            raise NotFound("Message not found")
        message = await self._message_repo.find_in_conversation(ObjectId(convo["_id"]), message_oid)
        if not message or message["sender_id"] != requester_id or message.get("deleted_at"):
            raise NotFound("Message not found")
        if not await self._message_repo.soft_delete(message_oid):
            return
        # The snapshot may still quote the retracted text.
        convo_oid = ObjectId(convo["_id"])
        remaining = await self._message_repo.get_page(convo_oid, skip=0, limit=1)
        await self._conversation_repo.replace_last_message(convo_oid, remaining[-1] if remaining else None)

    @staticmethod
    def other_participant(conversation: Dict[str, Any], user_id: str) -> Optional[str]:
        for participant in conversation.get("participants", []):
            if participant != user_id:
                return participant
        return None

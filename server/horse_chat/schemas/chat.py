from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ConversationCreate(BaseModel):

    recipient_id: str
    listing_id: Optional[str] = None


class MessageCreate(BaseModel):

    # trimmed and length-checked by ChatService so both transports agree
    text: str


class LastMessagePublic(BaseModel):

    text: str
    sender_id: str
    sent_at: datetime
    is_read: bool = False


class ConversationPublic(BaseModel):

    id: str
    participants: List[str]
    listing_id: Optional[str] = None
    last_message: Optional[LastMessagePublic] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ConversationPublic":
        return cls(
            id=str(doc["_id"]),
            participants=list(doc["participants"]),
            listing_id=doc.get("listing_id"),
            last_message=doc.get("last_message"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )


class MessagePublic(BaseModel):

    id: str
    conversation_id: str
    sender_id: str
    text: str
    is_read: bool
    read_at: Optional[datetime] = None
    sent_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "MessagePublic":
        return cls(
            id=str(doc["_id"]),
            conversation_id=str(doc["conversation_id"]),
            sender_id=doc["sender_id"],
            text=doc["text"],
            is_read=doc.get("is_read", False),
            read_at=doc.get("read_at"),
            sent_at=doc["sent_at"],
        )


class MessagePage(BaseModel):

    items: List[MessagePublic]
    page: int
    limit: int


class ConversationList(BaseModel):

    items: List[ConversationPublic]


class UnreadCount(BaseModel):

    unread_count: int


class MessageNotification(BaseModel):
    """Lightweight event for the recipient's personal room."""

    conversation_id: str
    sender: str
    preview: str

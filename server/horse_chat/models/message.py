from datetime import datetime
from typing import Optional, TypedDict

from bson import ObjectId


MAX_MESSAGE_LENGTH = 2000


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: ObjectId
    sender_id: str
    text: str
    # read state, only ever goes false -> true
    is_read: bool
    read_at: Optional[datetime]
    sent_at: datetime
    # soft delete marker
    deleted_at: Optional[datetime]

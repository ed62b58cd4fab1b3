from datetime import datetime
from typing import List, Optional, TypedDict


class LastMessageSnapshot(TypedDict):
    text: str
    sender_id: str
    sent_at: datetime
    is_read: bool


class ConversationDocument(TypedDict, total=False):
    _id: str
    # two user ids, kept sorted
    participants: List[str]
    listing_id: Optional[str]
    # cache of the newest message, may lag behind the messages collection
    last_message: Optional[LastMessageSnapshot]
    created_at: datetime
    updated_at: datetime

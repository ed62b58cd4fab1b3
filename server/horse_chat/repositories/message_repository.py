from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from horse_chat.models.message import MessageDocument


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("sent_at", DESCENDING)])
        await self.collection.create_index([("conversation_id", ASCENDING), ("is_read", ASCENDING)])

    async def insert(self, conversation_id: ObjectId, sender_id: str, text: str) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "text": text,
            "is_read": False,
            "read_at": None,
            "sent_at": datetime.now(timezone.utc),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get_page(self, conversation_id: ObjectId, skip: int, limit: int) -> List[MessageDocument]:
        """Newest-first window of live messages, returned oldest first."""
        query: Dict[str, Any] = {"conversation_id": conversation_id, "deleted_at": None}
        cur = self.collection.find(query).sort([("sent_at", DESCENDING), ("_id", DESCENDING)]).skip(skip).limit(limit)
        items = await cur.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return list(reversed(items))

    async def mark_read_for_reader(self, conversation_id: ObjectId, reader_id: str) -> int:
        # Covers the whole conversation, not just the page that was fetched.
        result = await self.collection.update_many(
            {"conversation_id": conversation_id, "sender_id": {"$ne": reader_id}, "is_read": False},
            {"$set": {"is_read": True, "read_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count or 0

    async def count_unread(self, conversation_ids: List[ObjectId], user_id: str) -> int:
        if not conversation_ids:
            return 0
        return await self.collection.count_documents(
            {"conversation_id": {"$in": conversation_ids}, "sender_id": {"$ne": user_id}, "is_read": False}
        )

    async def find_in_conversation(self, conversation_id: ObjectId, message_id: ObjectId) -> Optional[MessageDocument]:
        doc = await self.collection.find_one({"_id": message_id, "conversation_id": conversation_id})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def soft_delete(self, message_id: ObjectId) -> bool:
        result = await self.collection.update_one(
            {"_id": message_id, "deleted_at": None},
            {"$set": {"deleted_at": datetime.now(timezone.utc)}},
        )
        return bool(result.modified_count)

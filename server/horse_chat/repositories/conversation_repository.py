from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from horse_chat.models.conversation import ConversationDocument


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING)])

    async def get_or_create(self, user_a: str, user_b: str, listing_id: Optional[str] = None) -> ConversationDocument:
        # Not atomic: two concurrent first contacts may both insert.
        participants = sorted([user_a, user_b])
        existing = await self.collection.find_one({"participants": participants, "listing_id": listing_id})
        if existing:
            existing["_id"] = str(existing.get("_id"))
            return existing
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "participants": participants,
            "listing_id": listing_id,
            "last_message": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def find_for_participant(self, conversation_id: ObjectId, user_id: str) -> Optional[ConversationDocument]:
        doc = await self.collection.find_one({"_id": conversation_id, "participants": user_id})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        cur = self.collection.find({"participants": user_id}).sort([("updated_at", DESCENDING), ("_id", DESCENDING)])
        items = await cur.to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def list_ids_for_user(self, user_id: str) -> List[ObjectId]:
        cur = self.collection.find({"participants": user_id}, {"_id": 1})
        docs = await cur.to_list(length=None)
        return [doc["_id"] for doc in docs]

    async def update_last_message(self, conversation_id: ObjectId, message: Dict[str, Any]) -> None:
        await self.collection.update_one(
            {"_id": conversation_id},
            {
                "$set": {
                    "last_message": {
                        "text": message["text"],
                        "sender_id": message["sender_id"],
                        "sent_at": message["sent_at"],
                        "is_read": False,
                    },
                    "updated_at": datetime.now(timezone.utc),
                },
            },
        )

    async def replace_last_message(self, conversation_id: ObjectId, message: Optional[Dict[str, Any]]) -> None:
        """Point the snapshot at ``message`` (or clear it) without reordering the list."""
        snapshot = None
        if message:
            snapshot = {
                "text": message["text"],
                "sender_id": message["sender_id"],
                "sent_at": message["sent_at"],
                "is_read": bool(message.get("is_read")),
            }
        await self.collection.update_one({"_id": conversation_id}, {"$set": {"last_message": snapshot}})

    async def mark_last_message_read(self, conversation_id: ObjectId, reader_id: str) -> None:
        await self.collection.update_one(
            {
                "_id": conversation_id,
                "last_message.sender_id": {"$ne": reader_id},
                "last_message.is_read": False,
            },
            {"$set": {"last_message.is_read": True}},
        )

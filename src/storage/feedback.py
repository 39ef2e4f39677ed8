"""MongoDB-backed persistence for feedback conversations."""
from __future__ import annotations

import logging
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from src.session_data import SessionData

logger = logging.getLogger(__name__)

COLLECTION_NAME = "feedback"


class MongoFeedbackRepository:
    """Stores one document per conversation, keyed by ``conversationId``."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    @classmethod
    def from_database(cls, database: Database) -> "MongoFeedbackRepository":
        repo = cls(database[COLLECTION_NAME])
        repo.ensure_indexes()
        return repo

    def ensure_indexes(self) -> None:
        self._collection.create_index([("conversationId", ASCENDING)], unique=True)
        self._collection.create_index([("eventId", ASCENDING)])
        self._collection.create_index([("completed", ASCENDING)])
        self._collection.create_index([("userId", ASCENDING)])

    def find_one(self, conversation_id: str) -> Optional[SessionData]:
        doc = self._collection.find_one({"conversationId": conversation_id})
        return SessionData.from_document(doc) if doc else None

    def save(self, session: SessionData) -> None:
        """Upsert the full conversation document."""
        self._collection.replace_one(
            {"conversationId": session.session_id},
            session.to_document(),
            upsert=True,
        )

    def find_completed(self, event_id: str) -> List[SessionData]:
        cursor = self._collection.find({"eventId": event_id, "completed": True})
        return [SessionData.from_document(doc) for doc in cursor]

    def find_open_for_user(self, user_id: str) -> Optional[SessionData]:
        doc = self._collection.find_one(
            {"userId": user_id, "completed": False},
            sort=[("createdAt", DESCENDING)],
        )
        return SessionData.from_document(doc) if doc else None

    def remove_session(self, conversation_id: str) -> Optional[SessionData]:
        doc = self._collection.find_one_and_delete({"conversationId": conversation_id})
        return SessionData.from_document(doc) if doc else None

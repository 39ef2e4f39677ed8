"""Event records owned elsewhere; only lookup and the feedback counter live here."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

logger = logging.getLogger(__name__)

COLLECTION_NAME = "events"
DEMO_EVENT_NAME = "Demo Event"


@dataclass(frozen=True)
class EventRecord:
    event_id: str
    name: str
    organizer_id: Optional[str] = None
    feedback_count: int = 0
    is_active: bool = True

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "EventRecord":
        organizer = doc.get("organizerId")
        return cls(
            event_id=str(doc["_id"]),
            name=doc.get("name", ""),
            organizer_id=str(organizer) if organizer is not None else None,
            feedback_count=int(doc.get("feedbackCount", 0) or 0),
            is_active=bool(doc.get("isActive", True)),
        )


class MemoryEventRepository:
    """Process-local event table used when MongoDB is unavailable.

    With ``autocreate`` enabled unknown ids are registered on lookup as demo
    events, so conversations can run without any event administration.
    """

    def __init__(self, *, autocreate: bool = False) -> None:
        self._events: Dict[str, EventRecord] = {}
        self._lock = threading.Lock()
        self._autocreate = autocreate

    def add(self, event: EventRecord) -> None:
        with self._lock:
            self._events[event.event_id] = event

    def find_by_id(self, event_id: str) -> Optional[EventRecord]:
        with self._lock:
            event = self._events.get(event_id)
            if event is None and self._autocreate:
                event = EventRecord(event_id=event_id, name=DEMO_EVENT_NAME)
                self._events[event_id] = event
                logger.info("Registered demo event %s", event_id)
            return event

    def increment_feedback_count(self, event_id: str) -> Optional[EventRecord]:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            event = replace(event, feedback_count=event.feedback_count + 1)
            self._events[event_id] = event
            return event


def _id_filter(event_id: str) -> Dict[str, Any]:
    if ObjectId.is_valid(event_id):
        return {"_id": {"$in": [ObjectId(event_id), event_id]}}
    return {"_id": event_id}


class MongoEventRepository:
    """Reads the ``events`` collection written by the event administration."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    @classmethod
    def from_database(cls, database: Database) -> "MongoEventRepository":
        return cls(database[COLLECTION_NAME])

    def add(self, event: EventRecord) -> None:
        self._collection.replace_one(
            {"_id": event.event_id},
            {
                "_id": event.event_id,
                "name": event.name,
                "organizerId": event.organizer_id,
                "feedbackCount": event.feedback_count,
                "isActive": event.is_active,
            },
            upsert=True,
        )

    def find_by_id(self, event_id: str) -> Optional[EventRecord]:
        doc = self._collection.find_one(_id_filter(event_id))
        return EventRecord.from_document(doc) if doc else None

    def increment_feedback_count(self, event_id: str) -> Optional[EventRecord]:
        doc = self._collection.find_one_and_update(
            _id_filter(event_id),
            {"$inc": {"feedbackCount": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return EventRecord.from_document(doc) if doc else None

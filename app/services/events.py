"""
Academy Events

Typed events published by the progress core, plus an in-process publisher
that validates payloads against EVENT_SCHEMAS and fans out to subscribers.
"""

import logging
import uuid
from collections import deque
from enum import Enum
from typing import Any, Callable, Dict, List

from app.core.clock import utcnow

logger = logging.getLogger(__name__)


class AcademyEvents(str, Enum):
    """
    Event types for the academy core.

    Naming convention: entity.action
    """

    SESSION_STARTED = "session.started"
    SESSION_COMPLETED = "session.completed"
    SESSION_ABANDONED = "session.abandoned"
    CERTIFICATION_AWARDED = "certification.awarded"
    MILESTONE_UNLOCKED = "milestone.unlocked"
    LEADERBOARD_RANK_IMPROVED = "leaderboard.rank_improved"


EVENT_SCHEMAS = {
    AcademyEvents.SESSION_STARTED: {
        "required": ["session_id", "user_id", "module_id"],
        "optional": [],
    },
    AcademyEvents.SESSION_COMPLETED: {
        "required": ["session_id", "user_id", "module_id", "credits_earned", "leaderboard_score"],
        "optional": ["streak"],
    },
    AcademyEvents.SESSION_ABANDONED: {
        "required": ["session_id", "user_id", "module_id"],
        "optional": [],
    },
    AcademyEvents.CERTIFICATION_AWARDED: {
        "required": ["user_id", "module_id", "name"],
        "optional": ["credits_earned", "expiry_date"],
    },
    AcademyEvents.MILESTONE_UNLOCKED: {
        "required": ["user_id", "module_id", "name"],
        "optional": [],
    },
    AcademyEvents.LEADERBOARD_RANK_IMPROVED: {
        "required": ["user_id", "old_rank", "new_rank", "score"],
        "optional": [],
    },
}

Subscriber = Callable[[Dict[str, Any]], None]


class EventPublisher:
    """In-process publisher. Keeps published events in memory and notifies subscribers."""

    def __init__(self, max_events: int = 1000):
        self.events: deque = deque(maxlen=max_events)
        self._subscribers: Dict[AcademyEvents, List[Subscriber]] = {}

    def subscribe(self, event_type: AcademyEvents, callback: Subscriber) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event_type: AcademyEvents, data: Dict[str, Any]) -> bool:
        """
        Publish an event.

        Returns:
            False if the payload is missing required fields (nothing is published)
        """
        missing = [f for f in EVENT_SCHEMAS[event_type]["required"] if f not in data]
        if missing:
            logger.warning(f"Event {event_type.value} missing fields: {missing}")
            return False

        event = {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type.value,
            "timestamp": utcnow().isoformat(),
            "data": data,
        }
        self.events.append(event)
        logger.debug(f"Published event {event_type.value}")

        for callback in self._subscribers.get(event_type, []):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Subscriber failed for {event_type.value}: {e}")
        return True

    def of_type(self, event_type: AcademyEvents) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["event_type"] == event_type.value]

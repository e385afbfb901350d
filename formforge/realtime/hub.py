"""Topic-scoped notification hub.

Connections subscribe to topics (``"<kind>:<id>"``). Publishing fans an
event out to the current members of a topic only; nothing is queued for
absent subscribers. A connection that subscribes after a job has progressed
is sent the job's current state through the replay provider registered for
the topic's kind.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Set, Tuple

from formforge.jobs.models import JobKind, split_topic
from formforge.realtime.connection import Connection

logger = logging.getLogger(__name__)

# Replay provider: job_id -> [(event_name, payload), ...] for a late joiner
ReplayProvider = Callable[[str], List[Tuple[str, Dict[str, Any]]]]


class NotificationHub(ABC):
    """Pub/sub interface the pipelines publish through."""

    @abstractmethod
    def subscribe(self, connection: Connection, topic: str) -> None:
        ...

    @abstractmethod
    def unsubscribe(self, connection: Connection, topic: str) -> None:
        ...

    @abstractmethod
    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def on_disconnect(self, connection: Connection) -> None:
        ...


class InMemoryHub(NotificationHub):
    """Single-process hub keeping topic membership in dicts."""

    def __init__(self):
        self._members: Dict[str, Dict[str, Connection]] = {}
        self._topics_by_connection: Dict[str, Set[str]] = {}
        self._replay: Dict[JobKind, ReplayProvider] = {}

    def register_replay(self, kind: JobKind, provider: ReplayProvider) -> None:
        self._replay[kind] = provider

    def subscribe(self, connection: Connection, topic: str) -> None:
        self._members.setdefault(topic, {})[connection.id] = connection
        self._topics_by_connection.setdefault(connection.id, set()).add(topic)
        logger.info("Connection joined topic", extra={"connection_id": connection.id, "topic": topic})

        # Replay goes to the joining connection only, never the whole topic
        for event, payload in self._replay_events(topic):
            connection.send(event, payload)

    def unsubscribe(self, connection: Connection, topic: str) -> None:
        members = self._members.get(topic)
        if members is not None:
            members.pop(connection.id, None)
            if not members:
                del self._members[topic]
        topics = self._topics_by_connection.get(connection.id)
        if topics is not None:
            topics.discard(topic)
            if not topics:
                del self._topics_by_connection[connection.id]

    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        members = self._members.get(topic)
        if not members:
            return
        for connection in list(members.values()):
            try:
                connection.send(event, payload)
            except Exception as e:
                logger.warning(
                    "Failed to deliver event",
                    extra={"connection_id": connection.id, "topic": topic, "event": event, "error_msg": str(e)},
                )

    def on_disconnect(self, connection: Connection) -> None:
        for topic in list(self._topics_by_connection.get(connection.id, ())):
            self.unsubscribe(connection, topic)
        logger.info("Connection removed from all topics", extra={"connection_id": connection.id})

    def members(self, topic: str) -> List[Connection]:
        return list(self._members.get(topic, {}).values())

    def topics_of(self, connection: Connection) -> Set[str]:
        return set(self._topics_by_connection.get(connection.id, ()))

    def _replay_events(self, topic: str) -> List[Tuple[str, Dict[str, Any]]]:
        parsed = split_topic(topic)
        if parsed is None:
            return []
        kind, job_id = parsed
        provider = self._replay.get(kind)
        if provider is None:
            return []
        return provider(job_id)

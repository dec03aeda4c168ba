"""Collaborator interfaces.

The services only talk to persistence, the chat platform and the
notification transport through these abstract classes. Implementations must
be swappable and return domain models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .domain.community import CommunityContext
from .domain.models import Event, Registration
from .domain.participants import ParticipantRef


@dataclass(slots=True)
class Announcement:
    """Everything a sink needs to render an event announcement."""

    event: Event
    reserved: List[ParticipantRef] = field(default_factory=list)
    waitlist: List[ParticipantRef] = field(default_factory=list)
    lang: str = "en"


@dataclass(frozen=True, slots=True)
class DirectMessage:
    kind: str
    text: str
    event_id: Optional[str] = None


class EventStore(ABC):
    """Persistence for event snapshots."""

    @abstractmethod
    def get(self, event_id: str) -> Optional[Event]:
        """Return an event by id, deleted or not, or None if not found."""

    @abstractmethod
    def upsert(self, event: Event) -> int:
        """Insert or replace the event; return the number of rows written."""

    @abstractmethod
    def update_fields(self, event_id: str, fields: Mapping[str, Any]) -> int:
        """Patch stored fields of one event; return the modified count."""

    @abstractmethod
    def soft_delete(self, event_id: str) -> int:
        """Mark deleted and cancel recurrence; return the modified count."""

    @abstractmethod
    def hard_delete(self, event_id: str) -> int:
        """Remove the event record; return the deleted count."""

    @abstractmethod
    def find_many(
        self,
        filters: Mapping[str, Any],
        limit: Optional[int] = None,
        include_deleted: bool = False,
    ) -> List[Event]:
        """Return events whose stored fields equal every filter value."""

    @abstractmethod
    def update_many(self, filters: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        """Patch every matching event, deleted ones included."""


class RegistrationStore(ABC):
    """Append-only signup history per event."""

    @abstractmethod
    def list_by_event(self, event_id: str) -> List[Registration]:
        """Return registrations ordered by ``inserted_at`` ascending."""

    @abstractmethod
    def fetch_one(self, event_id: str, id_or_tag: str) -> Optional[Registration]:
        """Return the earliest registration whose participant id or tag matches."""

    @abstractmethod
    def create(self, record: Registration) -> Registration:
        ...

    @abstractmethod
    def delete(self, record_id: str) -> int:
        ...

    @abstractmethod
    def delete_all_for_event(self, event_id: str) -> int:
        ...

    @abstractmethod
    def delete_all_for_participant(self, event_id: str, id_or_tag: str) -> int:
        ...

    @abstractmethod
    def assign_participant_id(self, record_id: str, participant_id: str) -> int:
        """Correct the participant id of a record; nothing else may change."""


class CommunityResolver(ABC):
    @abstractmethod
    def resolve(self, community_id: str) -> Optional[CommunityContext]:
        """Return members, channels and config, or None when unavailable."""


class AnnouncementSink(ABC):
    """Chat-platform announcements. Failures raise ``AnnouncementError``."""

    @abstractmethod
    def post(self, channel_id: str, announcement: Announcement) -> str:
        """Post a new announcement and return its message id."""

    @abstractmethod
    def edit(self, channel_id: str, message_id: str, announcement: Announcement) -> str:
        ...

    @abstractmethod
    def remove(self, channel_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    def react_with(self, channel_id: str, message_id: str, symbol: str) -> None:
        ...


class NotificationBus(ABC):
    @abstractmethod
    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        """Fire and forget."""


class DirectMessageSink(ABC):
    @abstractmethod
    def send_to(self, participant: ParticipantRef, message: DirectMessage) -> None:
        """Best effort; failures raise ``DeliveryError``."""


class MessageCatalog(ABC):
    @abstractmethod
    def text(self, key: str, lang: str = "en", **params: Any) -> str:
        """Return the localized user-facing string for ``key``."""


__all__ = [
    "Announcement",
    "AnnouncementSink",
    "CommunityResolver",
    "DirectMessage",
    "DirectMessageSink",
    "EventStore",
    "MessageCatalog",
    "NotificationBus",
    "RegistrationStore",
]

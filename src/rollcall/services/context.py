from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config import AppSettings, get_settings
from ..data import JsonStateStore, LocalEventStore, LocalRegistrationStore, SupabaseGateway
from ..data.repositories import EventRepository, RegistrationRepository
from ..ports import (
    AnnouncementSink,
    CommunityResolver,
    DirectMessageSink,
    EventStore,
    MessageCatalog,
    NotificationBus,
    RegistrationStore,
)
from .messages import DefaultMessageCatalog

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ServiceContext:
    """Aggregate root for services to share settings, stores and collaborators.

    Stores that are not passed in are built from ``settings.storage``.
    """

    resolver: CommunityResolver
    announcements: AnnouncementSink
    bus: NotificationBus
    direct_messages: DirectMessageSink
    settings: AppSettings = field(default_factory=get_settings)
    events: Optional[EventStore] = None
    registrations: Optional[RegistrationStore] = None
    catalog: MessageCatalog = field(default_factory=DefaultMessageCatalog)
    clock: Callable[[], datetime] = _utc_now
    gateway: Optional[SupabaseGateway] = None

    def __post_init__(self) -> None:
        if self.events is not None and self.registrations is not None:
            return
        storage = self.settings.storage
        if storage.uses_supabase:
            self.gateway = self.gateway or SupabaseGateway(self.settings.supabase)
            self.events = self.events or EventRepository(self.gateway, storage.events_table)
            self.registrations = self.registrations or RegistrationRepository(
                self.gateway, storage.registrations_table
            )
        else:
            state = JsonStateStore(storage.state_file)
            self.events = self.events or LocalEventStore(state)
            self.registrations = self.registrations or LocalRegistrationStore(state)
        logger.debug("Using %s storage back end", storage.backend)

    def now(self) -> datetime:
        return self.clock()

    @property
    def default_lang(self) -> str:
        return self.settings.roster.default_lang

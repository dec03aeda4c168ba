"""
Pytest configuration and fixtures for rollcall tests.

Provides shared fixtures for:
- A fixed, advanceable clock
- Local JSON stores under ``tmp_path``
- Recording fakes for the chat platform and notification transport
- A sample community and event factory
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest

from rollcall.config.settings import AppSettings, RosterSettings, StorageSettings, SupabaseSettings
from rollcall.data.local import JsonStateStore, LocalEventStore, LocalRegistrationStore
from rollcall.domain import (
    Channel,
    CommunityConfig,
    CommunityContext,
    Event,
    EventTemplate,
    Member,
    Role,
    participant_ref,
)
from rollcall.errors import AnnouncementError, DeliveryError
from rollcall.ports import AnnouncementSink, CommunityResolver, DirectMessageSink, NotificationBus
from rollcall.services import EventLifecycleService, RosterService, ServiceContext


# ============================================================================
# Fakes
# ============================================================================


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeResolver(CommunityResolver):
    def __init__(self, *communities: CommunityContext) -> None:
        self.communities = {community.id: community for community in communities}

    def resolve(self, community_id):
        return self.communities.get(community_id)


class RecordingAnnouncements(AnnouncementSink):
    def __init__(self) -> None:
        self.posts = []
        self.edits = []
        self.removed = []
        self.reactions = []
        self.fail_post = False
        self.fail_edit = False
        self.rejected_symbols = set()
        self._counter = 0

    def post(self, channel_id, announcement):
        if self.fail_post:
            raise AnnouncementError("channel is gone")
        self._counter += 1
        message_id = f"msg-{self._counter}"
        self.posts.append((channel_id, message_id, announcement))
        return message_id

    def edit(self, channel_id, message_id, announcement):
        if self.fail_edit:
            raise AnnouncementError("message is gone")
        self.edits.append((channel_id, message_id, announcement))
        return message_id

    def remove(self, channel_id, message_id):
        self.removed.append((channel_id, message_id))

    def react_with(self, channel_id, message_id, symbol):
        if symbol in self.rejected_symbols:
            raise DeliveryError(f"unknown emoji {symbol}")
        self.reactions.append((message_id, symbol))


class RecordingBus(NotificationBus):
    def __init__(self) -> None:
        self.published = []

    def publish(self, topic, payload):
        self.published.append((topic, payload))

    def actions(self):
        return [payload["action"] for _, payload in self.published]


class RecordingDirectMessages(DirectMessageSink):
    def __init__(self) -> None:
        self.sent = []
        self.fail = False

    def send_to(self, participant, message):
        if self.fail:
            raise DeliveryError("DMs closed")
        self.sent.append((participant, message))

    def kinds_for(self, participant_id):
        return [message.kind for participant, message in self.sent if participant.id == participant_id]


# ============================================================================
# Settings and stores
# ============================================================================


@pytest.fixture
def clock():
    return FixedClock(datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        supabase=SupabaseSettings(url=None, anon_key=None),
        storage=StorageSettings(
            backend="local",
            state_file=tmp_path / "state.json",
            events_table="events",
            registrations_table="event_registrations",
        ),
        roster=RosterSettings(
            backfill_stagger=timedelta(milliseconds=100),
            purge_batch_size=2,
            purge_limit=5,
            default_lang="en",
        ),
        log_level="DEBUG",
    )


@pytest.fixture
def state(settings) -> JsonStateStore:
    return JsonStateStore(settings.storage.state_file)


@pytest.fixture
def event_store(state) -> LocalEventStore:
    return LocalEventStore(state)


@pytest.fixture
def registration_store(state) -> LocalRegistrationStore:
    return LocalRegistrationStore(state)


# ============================================================================
# Community
# ============================================================================


@pytest.fixture
def members():
    return [
        Member(id="1", tag="alice#0001", roles=(Role("Player", "r1"),)),
        Member(id="2", tag="bob#0002", roles=(Role("Player", "r1"),)),
        Member(id="3", tag="carol#0003", roles=(Role("Player", "r1"),)),
        Member(id="4", tag="dave#0004"),
        Member(id="9", tag="gm#0009", roles=(Role("Organizer", "r9"),)),
    ]


@pytest.fixture
def community(members) -> CommunityContext:
    return CommunityContext(
        id="c1",
        name="Tavern",
        members=members,
        channels=[Channel("ch-voice", "table", kind="voice"), Channel("ch1", "events")],
        config=CommunityConfig(templates=(EventTemplate("t1", is_default=True),)),
    )


@pytest.fixture
def resolver(community):
    return FakeResolver(community)


@pytest.fixture
def announcements():
    return RecordingAnnouncements()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def direct_messages():
    return RecordingDirectMessages()


@pytest.fixture
def context(settings, event_store, registration_store, resolver, announcements, bus, direct_messages, clock):
    return ServiceContext(
        resolver=resolver,
        announcements=announcements,
        bus=bus,
        direct_messages=direct_messages,
        settings=settings,
        events=event_store,
        registrations=registration_store,
        clock=clock,
    )


@pytest.fixture
def lifecycle(context) -> EventLifecycleService:
    return EventLifecycleService(context)


@pytest.fixture
def roster_service(lifecycle) -> RosterService:
    return lifecycle.roster


@pytest.fixture
def make_event():
    """Factory for events owned by the organizer, starting a week after the fixed clock."""

    def _make(**overrides) -> Event:
        values = dict(
            community_id="c1",
            title="Dungeon night",
            owner=participant_ref("9", "gm#0009"),
            player_cap=2,
            channel_id="ch1",
            start_date=date(2030, 1, 8),
            start_time=time(19, 0),
            runtime="3 hours",
        )
        values.update(overrides)
        return Event(**values)

    return _make


@pytest.fixture
def created_event(lifecycle, make_event):
    result = lifecycle.create(make_event())
    assert result.ok
    return result.event

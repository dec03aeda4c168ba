from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from rollcall.domain import (
    CommunityConfig,
    EventTemplate,
    Frequency,
    Identified,
    Registration,
    RescheduleMode,
    Unidentified,
    Weekday,
    WhenMode,
    participant_ref,
)
from rollcall.errors import NotFoundError, StoreError
from rollcall.services import RejectionReason, RescheduleOutcome, RetireOutcome

ALICE = participant_ref("1", "alice#0001")


@pytest.fixture
def weekly_event(lifecycle, make_event):
    """A Tuesday game: 2030-01-08 19:00 UTC for three hours."""

    result = lifecycle.create(make_event(frequency=Frequency.WEEKLY, weekdays=frozenset({Weekday.TUESDAY})))
    assert result.ok
    return result.event


def _after_first_session(clock):
    clock.now = datetime(2030, 1, 9, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Create
# ============================================================================


class TestCreate:
    def test_assigns_identity_and_announces(self, lifecycle, make_event, event_store, announcements, bus, clock):
        result = lifecycle.create(make_event())

        event = result.event
        assert result.ok
        assert event.id
        assert event.sequence == 1
        assert event.created_at == clock.now
        assert event.duration_hours == 3.0
        assert event.starts_at == datetime(2030, 1, 8, 19, 0, tzinfo=timezone.utc)
        assert event.message_id == "msg-1"
        assert event_store.get(event.id).message_id == "msg-1"
        assert announcements.posts[0][0] == "ch1"
        assert bus.published == [
            ("community:c1", {
                "action": "new",
                "community_id": "c1",
                "event_id": event.id,
                "event": bus.published[0][1]["event"],
                "changes": {},
            })
        ]
        assert bus.published[0][1]["event"]["id"] == event.id

    def test_falls_back_to_first_text_channel(self, lifecycle, make_event):
        event = lifecycle.create(make_event(channel_id="deleted-channel")).event

        assert event.channel_id == "ch1"

    def test_prefers_configured_channel(self, lifecycle, make_event, community):
        community.config = CommunityConfig(channel_ids=("ch-voice",))

        event = lifecycle.create(make_event(channel_id=None)).event

        assert event.channel_id == "ch-voice"

    def test_resolves_owner_id_from_members(self, lifecycle, make_event):
        event = lifecycle.create(make_event(owner=participant_ref(tag="gm#0009"))).event

        assert event.owner == Identified("9", "gm#0009")
        assert event.author == Identified("9", "gm#0009")

    def test_backfills_initial_roster(self, lifecycle, make_event, registration_store):
        roster = [participant_ref(tag="alice#0001"), participant_ref(tag="Guest")]

        event = lifecycle.create(make_event(roster=roster)).event

        assert event.roster == [Identified("1", "alice#0001"), Unidentified("Guest")]
        assert len(registration_store.list_by_event(event.id)) == 2

    def test_adds_signup_reactions(self, lifecycle, make_event, announcements):
        lifecycle.create(make_event())

        assert announcements.reactions == [("msg-1", "➕"), ("msg-1", "➖")]

    def test_reactions_fall_back_to_default_emoji(self, lifecycle, make_event, announcements, community):
        community.config = CommunityConfig(emoji_add=":sword:", drop_out_enabled=False)
        announcements.rejected_symbols = {":sword:"}

        lifecycle.create(make_event())

        assert announcements.reactions == [("msg-1", "➕")]

    def test_announcement_failure_rolls_back(
        self, lifecycle, make_event, announcements, event_store, registration_store, direct_messages, bus
    ):
        announcements.fail_post = True
        event = make_event(roster=[ALICE])

        result = lifecycle.create(event)

        assert result.reason is RejectionReason.ANNOUNCEMENT_FAILED
        assert event_store.get(event.id) is None
        assert registration_store.list_by_event(event.id) == []
        assert direct_messages.kinds_for("9") == ["announcement_failed"]
        assert bus.published == []

    def test_unknown_community(self, lifecycle, make_event, event_store):
        result = lifecycle.create(make_event(community_id="elsewhere"))

        assert result.reason is RejectionReason.COMMUNITY_NOT_FOUND
        assert event_store.find_many({}, include_deleted=True) == []


# ============================================================================
# Update
# ============================================================================


class TestUpdate:
    def test_increments_sequence_and_edits_announcement(self, lifecycle, created_event, announcements, event_store):
        first = lifecycle.update(created_event)
        second = lifecycle.update(created_event)

        assert first.modified and second.modified
        assert created_event.sequence == 3
        assert event_store.get(created_event.id).sequence == 3
        assert [message_id for _, message_id, _ in announcements.edits] == ["msg-1", "msg-1"]

    def test_publishes_changed_fields_only(self, lifecycle, created_event, bus):
        created_event.title = "Dragon hunt"

        lifecycle.update(created_event)

        topic, payload = bus.published[-1]
        assert topic == "community:c1"
        assert payload["action"] == "updated"
        assert payload["changes"] == {"title": "Dragon hunt"}

    def test_unchanged_event_publishes_nothing(self, lifecycle, created_event, bus):
        lifecycle.update(created_event)

        assert bus.actions() == ["new"]

    def test_clamps_week_interval(self, lifecycle, created_event):
        created_event.week_interval = 0

        lifecycle.update(created_event)

        assert created_event.week_interval == 1

    def test_store_failure_keeps_sequence(self, lifecycle, created_event, event_store, monkeypatch):
        def _fail(event):
            raise StoreError("timeout")

        monkeypatch.setattr(event_store, "upsert", _fail)

        result = lifecycle.update(created_event)

        assert not result.modified
        assert result.reason is RejectionReason.UPDATE_FAILED
        assert created_event.sequence == 1

    def test_load_failure_reports_update_failed(self, lifecycle, created_event, event_store, monkeypatch):
        def _fail(event_id):
            raise StoreError("store unreachable")

        monkeypatch.setattr(event_store, "get", _fail)

        result = lifecycle.update(created_event)

        assert not result.modified
        assert result.reason is RejectionReason.UPDATE_FAILED
        assert created_event.sequence == 1

    def test_announcement_failure_degrades_modified(self, lifecycle, created_event, announcements, event_store):
        announcements.fail_edit = True

        result = lifecycle.update(created_event)

        assert not result.modified
        assert result.persisted
        assert event_store.get(created_event.id).sequence == 2

    def test_unknown_event(self, lifecycle, make_event):
        result = lifecycle.update(make_event(id="ghost"))

        assert result.reason is RejectionReason.EVENT_NOT_FOUND


# ============================================================================
# Delete family
# ============================================================================


class TestDelete:
    def test_soft_delete_cancels_recurrence(self, lifecycle, weekly_event, event_store, announcements, bus):
        assert lifecycle.delete(weekly_event) == 1

        stored = event_store.get(weekly_event.id)
        assert stored.deleted
        assert stored.frequency is Frequency.NONE
        assert announcements.removed == [("ch1", "msg-1")]
        assert bus.actions()[-1] == "deleted"

    def test_delete_without_notification(self, lifecycle, created_event, bus):
        lifecycle.delete(created_event, notify=False)

        assert bus.actions() == ["new"]

    def test_failed_soft_delete_leaves_event_announced(
        self, lifecycle, weekly_event, event_store, announcements, bus, monkeypatch
    ):
        def _fail(event_id):
            raise StoreError("timeout")

        monkeypatch.setattr(event_store, "soft_delete", _fail)

        assert lifecycle.delete(weekly_event) == 0

        assert not weekly_event.deleted
        assert weekly_event.frequency is Frequency.WEEKLY
        assert announcements.removed == []
        assert bus.actions() == ["new"]
        assert not event_store.get(weekly_event.id).deleted

    def test_hard_delete_removes_records(self, lifecycle, roster_service, created_event, event_store, registration_store):
        roster_service.sign_up(created_event, ALICE)

        assert lifecycle.hard_delete(created_event.id) == 1
        assert event_store.get(created_event.id) is None
        assert registration_store.list_by_event(created_event.id) == []

    def test_purge_includes_deleted_events(self, lifecycle, make_event, event_store):
        events = [lifecycle.create(make_event(title="old")).event for _ in range(3)]
        lifecycle.delete(events[0])
        keep = lifecycle.create(make_event(title="new")).event

        assert lifecycle.purge({"title": "old"}) == 3
        assert [event.id for event in event_store.find_many({}, include_deleted=True)] == [keep.id]

    def test_purge_stops_at_limit(self, lifecycle, make_event, event_store):
        for _ in range(7):
            lifecycle.create(make_event(title="old"))

        # Batches of two until at least five are gone.
        assert lifecycle.purge({"title": "old"}) == 6
        assert len(event_store.find_many({"title": "old"})) == 1

    def test_soft_delete_many(self, lifecycle, weekly_event, created_event, event_store):
        assert lifecycle.soft_delete_many({"community_id": "c1"}) == 2

        assert event_store.find_many({"community_id": "c1"}) == []
        stored = event_store.get(weekly_event.id)
        assert stored.deleted and stored.frequency is Frequency.NONE

    def test_undelete_reposts(self, lifecycle, created_event, announcements, event_store):
        lifecycle.delete(created_event)

        result = lifecycle.undelete(created_event)

        assert result.modified
        assert not event_store.get(created_event.id).deleted
        assert created_event.message_id == "msg-2"
        assert len(announcements.posts) == 2


# ============================================================================
# Lookups
# ============================================================================


class TestLookups:
    def test_fetch_reconciles_roster(self, lifecycle, roster_service, created_event, registration_store, clock):
        roster_service.sign_up(created_event, ALICE)
        registration_store.create(Registration("orphan", created_event.id, "bob#0002", clock.now, "2"))

        fetched = lifecycle.fetch(created_event.id)

        assert fetched.roster == [Identified("1", "alice#0001")]
        assert [record.record_id for record in registration_store.list_by_event(created_event.id)] != []
        assert "orphan" not in {record.record_id for record in registration_store.list_by_event(created_event.id)}

    def test_require_raises_for_unknown_event(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.require("missing")

    def test_fetch_by_and_fetch_all(self, lifecycle, created_event, weekly_event):
        lifecycle.delete(weekly_event)

        assert lifecycle.fetch_by({"id": created_event.id}).id == created_event.id
        assert [event.id for event in lifecycle.fetch_all({"community_id": "c1"})] == [created_event.id]
        assert len(lifecycle.fetch_all({"community_id": "c1"}, include_deleted=True)) == 2


# ============================================================================
# Reschedule
# ============================================================================


class TestCanReschedule:
    def test_not_before_the_event_ends(self, lifecycle, weekly_event, clock):
        clock.now = datetime(2030, 1, 8, 21, 0, tzinfo=timezone.utc)

        assert not lifecycle.can_reschedule(weekly_event)

    def test_after_the_event_ends(self, lifecycle, weekly_event, clock):
        _after_first_session(clock)

        assert lifecycle.can_reschedule(weekly_event)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"frequency": Frequency.NONE},
            {"weekdays": frozenset()},
            {"when_mode": WhenMode.NOW},
            {"rescheduled": True},
        ],
    )
    def test_ineligible_events(self, lifecycle, weekly_event, clock, overrides):
        _after_first_session(clock)
        for name, value in overrides.items():
            setattr(weekly_event, name, value)

        assert not lifecycle.can_reschedule(weekly_event)

    def test_next_occurrence_already_past(self, lifecycle, weekly_event, clock):
        clock.now = datetime(2030, 1, 16, 0, 0, tzinfo=timezone.utc)

        assert not lifecycle.can_reschedule(weekly_event)


class TestReschedule:
    def test_rejected_before_end(self, lifecycle, weekly_event, event_store):
        result = lifecycle.reschedule(weekly_event)

        assert result.outcome is RescheduleOutcome.NOT_DUE
        stored = event_store.get(weekly_event.id)
        assert stored.sequence == 1
        assert not stored.rescheduled
        assert stored.start_date == date(2030, 1, 8)

    def test_update_mode_moves_event_in_place(
        self, lifecycle, roster_service, weekly_event, community, registration_store, event_store, clock
    ):
        community.config = CommunityConfig(
            reschedule_mode=RescheduleMode.UPDATE, templates=(EventTemplate("t1", is_default=True),)
        )
        weekly_event.clear_roster_on_recur = True
        weekly_event.reminded = True
        roster_service.sign_up(weekly_event, ALICE)
        _after_first_session(clock)

        result = lifecycle.reschedule(weekly_event)

        assert result.outcome is RescheduleOutcome.RESCHEDULED
        stored = event_store.get(weekly_event.id)
        assert stored.start_date == date(2030, 1, 15)
        assert stored.starts_at == datetime(2030, 1, 15, 19, 0, tzinfo=timezone.utc)
        assert stored.roster == []
        assert not stored.reminded
        assert registration_store.list_by_event(weekly_event.id) == []

    def test_repost_mode_creates_clone_and_retires_original(
        self, lifecycle, roster_service, weekly_event, event_store, registration_store, bus, clock
    ):
        roster_service.sign_up(weekly_event, ALICE)
        _after_first_session(clock)

        result = lifecycle.reschedule(weekly_event)

        assert result.outcome is RescheduleOutcome.RESCHEDULED
        assert result.retired is RetireOutcome.SOFT_DELETED
        clone = result.event
        assert clone.id != weekly_event.id
        assert clone.start_date == date(2030, 1, 15)
        assert clone.sequence == 1
        assert clone.roster == [Identified("1", "alice#0001")]
        assert len(registration_store.list_by_event(clone.id)) == 1
        assert event_store.get(weekly_event.id).deleted
        _, payload = bus.published[-1]
        assert payload == {
            "action": "rescheduled",
            "community_id": "c1",
            "event_id": weekly_event.id,
            "new_event_id": clone.id,
            "changes": {},
        }

    def test_failed_repost_leaves_original_active(self, lifecycle, weekly_event, announcements, event_store, clock):
        _after_first_session(clock)
        announcements.fail_post = True

        result = lifecycle.reschedule(weekly_event)

        assert result.outcome is RescheduleOutcome.FAILED
        remaining = event_store.find_many({}, include_deleted=True)
        assert [event.id for event in remaining] == [weekly_event.id]
        assert not remaining[0].deleted

    def test_revoked_permission_deletes_event(self, lifecycle, weekly_event, community, event_store, clock):
        community.can_post = lambda member_id, channel_id: False
        _after_first_session(clock)

        result = lifecycle.reschedule(weekly_event)

        assert result.outcome is RescheduleOutcome.PERMISSION_REVOKED
        stored = event_store.get(weekly_event.id)
        assert stored.deleted
        assert stored.frequency is Frequency.NONE


class TestRetireOriginal:
    def test_falls_back_to_hard_delete(
        self, lifecycle, roster_service, created_event, event_store, registration_store, monkeypatch
    ):
        roster_service.sign_up(created_event, ALICE)
        monkeypatch.setattr(event_store, "soft_delete", lambda event_id: 0)

        assert lifecycle.retire_original(created_event) is RetireOutcome.HARD_DELETED
        assert event_store.get(created_event.id) is None
        assert registration_store.list_by_event(created_event.id) == []

    def test_flags_when_nothing_can_be_deleted(self, lifecycle, created_event, event_store, monkeypatch):
        monkeypatch.setattr(event_store, "soft_delete", lambda event_id: 0)
        monkeypatch.setattr(event_store, "hard_delete", lambda event_id: 0)

        assert lifecycle.retire_original(created_event) is RetireOutcome.FLAGGED
        assert event_store.get(created_event.id).rescheduled

    def test_reports_failure(self, lifecycle, created_event, event_store, monkeypatch):
        monkeypatch.setattr(event_store, "soft_delete", lambda event_id: 0)
        monkeypatch.setattr(event_store, "hard_delete", lambda event_id: 0)
        monkeypatch.setattr(event_store, "update_fields", lambda event_id, fields: 0)

        assert lifecycle.retire_original(created_event) is RetireOutcome.FAILED

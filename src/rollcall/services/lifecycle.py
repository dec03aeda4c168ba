"""Event lifecycle: create, update, reschedule and the delete family.

An event moves Draft -> Active -> SoftDeleted -> HardDeleted. Update and
reschedule keep it Active. Every mutation resolves the community first,
then reconciles the roster, derives schedule fields and persists before any
announcement or notification goes out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from ..core.recurrence import compute_start, next_event_date, runtime_to_hours, start_for_date
from ..core.roster import partition
from ..domain.community import DEFAULT_EMOJI_ADD, DEFAULT_EMOJI_REMOVE, CommunityContext
from ..domain.enums import Frequency, RescheduleMode, SignupMethod, WhenMode
from ..domain.models import Event
from ..errors import AnnouncementError, DeliveryError, NotFoundError, StoreError
from ..ports import Announcement, DirectMessage
from .context import ServiceContext
from .payloads import EventNotice, EventPayload, community_topic
from .results import (
    OperationResult,
    RejectionReason,
    RescheduleOutcome,
    RescheduleResult,
    RetireOutcome,
    UpdateResult,
)
from .roster import RosterService

logger = logging.getLogger(__name__)

UNTRACKED_FIELDS = frozenset({"sequence", "updated_at"})


def diff_events(previous: Event, current: Event) -> Dict[str, Any]:
    """Stored fields whose value changed, mapped to their new value."""

    before = previous.to_record()
    after = current.to_record()
    return {
        key: value
        for key, value in after.items()
        if key not in UNTRACKED_FIELDS and before.get(key) != value
    }


def derive_fields(event: Event, now: datetime) -> None:
    event.duration_hours = runtime_to_hours(event.runtime)
    if event.when_mode is not WhenMode.NOW or event.starts_at is None:
        event.starts_at = compute_start(event, now)
    event.week_interval = max(1, int(event.week_interval or 1))


@dataclass(slots=True)
class EventLifecycleService:
    context: ServiceContext
    roster: RosterService = field(init=False)

    def __post_init__(self) -> None:
        self.roster = RosterService(self.context, persist=self.update)

    # Lookups

    def fetch(self, event_id: str) -> Optional[Event]:
        event = self.context.events.get(event_id)
        if event is not None:
            self._refresh_roster(event)
        return event

    def require(self, event_id: str) -> Event:
        event = self.fetch(event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    def fetch_by(self, filters: Mapping[str, Any]) -> Optional[Event]:
        found = self.context.events.find_many(filters, limit=1)
        if not found:
            return None
        self._refresh_roster(found[0])
        return found[0]

    def fetch_all(self, filters: Mapping[str, Any], include_deleted: bool = False) -> List[Event]:
        events = self.context.events.find_many(filters, include_deleted=include_deleted)
        for event in events:
            self._refresh_roster(event)
        return events

    def _refresh_roster(self, event: Event) -> None:
        try:
            self.roster.reconcile(event)
        except StoreError as exc:
            logger.warning("Reconciling roster of event %s on load failed: %s", event.id, exc)

    # Mutations

    def create(self, event: Event) -> OperationResult:
        community = self.context.resolver.resolve(event.community_id)
        if community is None:
            return OperationResult.rejected(
                RejectionReason.COMMUNITY_NOT_FOUND,
                self.context.catalog.text(RejectionReason.COMMUNITY_NOT_FOUND.value, self.context.default_lang),
            )

        channel = community.channel(event.channel_id)
        if channel is not None:
            event.channel_id = channel.id
        owner = community.find_member(event.owner)
        if owner is not None:
            if event.author is None or event.author == event.owner:
                event.author = owner.ref
            event.owner = owner.ref

        now = self.context.now()
        event.id = event.id or uuid4().hex
        event.sequence = 1
        event.deleted = False
        event.pruned = False
        event.created_at = now
        event.updated_at = now
        derive_fields(event, now)

        try:
            self.context.events.upsert(event)
            self.roster.reconcile(event, community)
            self.context.events.upsert(event)
        except StoreError as exc:
            logger.error("Creating event %s failed: %s", event.id, exc)
            self._discard(event.id)
            return OperationResult.rejected(
                RejectionReason.UPDATE_FAILED,
                self.context.catalog.text(RejectionReason.UPDATE_FAILED.value, community.config.lang),
            )

        try:
            self._post_announcement(event, community)
        except AnnouncementError as exc:
            logger.error("Announcing event %s in %s failed: %s", event.id, event.community_id, exc)
            self._discard(event.id)
            message = self.context.catalog.text(
                RejectionReason.ANNOUNCEMENT_FAILED.value,
                community.config.lang,
                title=event.title,
                community=community.name or community.id,
            )
            self.roster.send_dm(
                event.owner,
                DirectMessage(kind=RejectionReason.ANNOUNCEMENT_FAILED.value, text=message, event_id=event.id),
            )
            return OperationResult.rejected(RejectionReason.ANNOUNCEMENT_FAILED, message)

        for participant in event.roster:
            self.roster.send_custom_instructions(event, participant, community)
        self._publish(EventNotice(
            action="new",
            community_id=event.community_id,
            event_id=event.id,
            event=EventPayload.from_domain(event),
        ))
        logger.info("Created event %s in community %s", event.id, event.community_id)
        return OperationResult.success(event)

    def update(self, event: Event, repost: bool = False) -> UpdateResult:
        community = self.context.resolver.resolve(event.community_id)
        if community is None:
            return UpdateResult(modified=False, event=event, reason=RejectionReason.COMMUNITY_NOT_FOUND)
        try:
            previous = self.context.events.get(event.id) if event.id else None
        except StoreError as exc:
            logger.error("Loading event %s before update failed: %s", event.id, exc)
            return UpdateResult(modified=False, event=event, reason=RejectionReason.UPDATE_FAILED)
        if previous is None:
            return UpdateResult(modified=False, event=event, reason=RejectionReason.EVENT_NOT_FOUND)

        prior_sequence = event.sequence
        now = self.context.now()
        event.sequence = previous.sequence + 1
        event.updated_at = now
        if repost:
            event.deleted = False
            event.pruned = False
        try:
            self.roster.reconcile(event, community)
            derive_fields(event, now)
            self.context.events.upsert(event)
        except StoreError as exc:
            logger.error("Updating event %s failed: %s", event.id, exc)
            event.sequence = prior_sequence
            return UpdateResult(modified=False, event=event, reason=RejectionReason.UPDATE_FAILED)

        modified = True
        try:
            if repost or not event.message_id:
                self._post_announcement(event, community)
            else:
                self.context.announcements.edit(event.channel_id, event.message_id, self._announcement(event, community))
        except (AnnouncementError, StoreError) as exc:
            logger.error("Refreshing announcement of event %s failed: %s", event.id, exc)
            modified = False

        changes = diff_events(previous, event)
        if changes:
            self._publish(EventNotice(
                action="updated",
                community_id=event.community_id,
                event_id=event.id,
                event=EventPayload.from_domain(event),
                changes=changes,
            ))
        self.roster.notify_promotion(event, previous.roster, event.roster, community)
        reason = None if modified else RejectionReason.ANNOUNCEMENT_FAILED
        return UpdateResult(modified=modified, event=event, reason=reason)

    def can_reschedule(self, event: Event, now: Optional[datetime] = None) -> bool:
        now = now or self.context.now()
        if event.rescheduled or event.when_mode is not WhenMode.DATETIME:
            return False
        if event.frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
            if not event.weekdays:
                return False
        elif event.frequency not in (Frequency.DAILY, Frequency.MONTHLY):
            return False

        starts_at = event.starts_at or compute_start(event, now)
        if starts_at is None:
            return False
        duration = event.duration_hours or runtime_to_hours(event.runtime)
        if starts_at + timedelta(hours=duration) >= now:
            return False

        next_date = next_event_date(event)
        if next_date is None:
            return False
        return start_for_date(event, next_date) > now

    def reschedule(self, event: Event) -> RescheduleResult:
        if not self.can_reschedule(event):
            logger.debug("Event %s is not due for rescheduling", event.id)
            return RescheduleResult(RescheduleOutcome.NOT_DUE, event)

        community = self.context.resolver.resolve(event.community_id)
        if community is None:
            logger.warning("Cannot reschedule event %s: community %s not found", event.id, event.community_id)
            return RescheduleResult(RescheduleOutcome.FAILED, event)

        if not community.organizer_can_post(event.owner, event.channel_id):
            logger.info(
                "Removing event %s from %s. Organizer can no longer post events.", event.id, event.community_id
            )
            event.frequency = Frequency.NONE
            self.update(event)
            self.delete(event)
            return RescheduleResult(RescheduleOutcome.PERMISSION_REVOKED, event)

        next_date = next_event_date(event)
        if next_date is None:
            return RescheduleResult(RescheduleOutcome.FAILED, event)

        logger.info(
            "Rescheduling %s: %s from %s to %s", event.community_id, event.title, event.start_date, next_date
        )
        if community.config.reschedule_mode is RescheduleMode.UPDATE:
            return self._reschedule_in_place(event, next_date)
        return self._reschedule_by_repost(event, next_date)

    def _reschedule_in_place(self, event: Event, next_date: date) -> RescheduleResult:
        event.start_date = next_date
        if event.clear_roster_on_recur:
            try:
                self.context.registrations.delete_all_for_event(event.id)
            except StoreError as exc:
                logger.error("Clearing registrations of event %s failed: %s", event.id, exc)
                return RescheduleResult(RescheduleOutcome.FAILED, event)
            event.roster = []
        event.reminded = False
        event.reminder_message_id = None
        event.owner_message_id = None
        result = self.update(event)
        outcome = RescheduleOutcome.RESCHEDULED if result.modified else RescheduleOutcome.FAILED
        return RescheduleResult(outcome, event)

    def _reschedule_by_repost(self, event: Event, next_date: date) -> RescheduleResult:
        clone = replace(
            event,
            id=None,
            start_date=next_date,
            roster=[] if event.clear_roster_on_recur else list(event.roster),
            reminded=False,
            reminder_message_id=None,
            owner_message_id=None,
            message_id=None,
            sequence=1,
            rescheduled=False,
            deleted=False,
            pruned=False,
            created_at=None,
            updated_at=None,
        )
        created = self.create(clone)
        if not created.ok:
            logger.warning("Repost of event %s failed: %s", event.id, created.reason)
            self._discard(clone.id)
            return RescheduleResult(RescheduleOutcome.FAILED, event)

        retired = self.retire_original(event)
        if retired.retired:
            self._publish(EventNotice(
                action="rescheduled",
                community_id=event.community_id,
                event_id=event.id,
                new_event_id=clone.id,
            ))
        else:
            logger.error("Event %s was reposted as %s but could not be retired", event.id, clone.id)
        return RescheduleResult(RescheduleOutcome.RESCHEDULED, clone, retired)

    def retire_original(self, event: Event) -> RetireOutcome:
        """Take a reposted event out of circulation.

        Soft delete first, then hard delete, then flag it as rescheduled so
        it is never picked up again.
        """

        if self.delete(event, notify=False) > 0:
            return RetireOutcome.SOFT_DELETED
        try:
            if self.hard_delete(event.id) > 0:
                return RetireOutcome.HARD_DELETED
            event.rescheduled = True
            if self.context.events.update_fields(event.id, {"rescheduled": True}) > 0:
                return RetireOutcome.FLAGGED
        except StoreError as exc:
            logger.error("Retiring event %s failed: %s", event.id, exc)
        return RetireOutcome.FAILED

    def delete(self, event: Event, notify: bool = True) -> int:
        try:
            modified = self.context.events.soft_delete(event.id)
        except StoreError as exc:
            logger.error("Soft deleting event %s failed: %s", event.id, exc)
            modified = 0
        if modified == 0 and notify:
            return 0
        event.deleted = True
        event.frequency = Frequency.NONE

        if event.channel_id:
            for message_id in (event.message_id, event.reminder_message_id):
                if not message_id:
                    continue
                try:
                    self.context.announcements.remove(event.channel_id, message_id)
                except AnnouncementError as exc:
                    logger.info("Attempted to delete message %s of event %s: %s", message_id, event.id, exc)

        if notify:
            self._publish(EventNotice(action="deleted", community_id=event.community_id, event_id=event.id))
        return modified

    def hard_delete(self, event_id: str) -> int:
        self.context.registrations.delete_all_for_event(event_id)
        return self.context.events.hard_delete(event_id)

    def purge(self, filters: Mapping[str, Any]) -> int:
        """Hard delete every event matching ``filters``, deleted ones included."""

        batch_size = self.context.settings.roster.purge_batch_size
        limit = self.context.settings.roster.purge_limit
        deleted = 0
        batch = self.context.events.find_many(filters, limit=batch_size, include_deleted=True)
        while batch and deleted < limit:
            removed = sum(self.hard_delete(event.id) for event in batch)
            if removed == 0:
                logger.warning("Purge made no progress on %d events, stopping", len(batch))
                break
            deleted += removed
            batch = self.context.events.find_many(filters, limit=batch_size, include_deleted=True)
        logger.info("Purged %d events matching %s", deleted, dict(filters))
        return deleted

    def soft_delete_many(self, filters: Mapping[str, Any]) -> int:
        return self.context.events.update_many(filters, {"deleted": True, "frequency": Frequency.NONE})

    def undelete(self, event: Event) -> UpdateResult:
        return self.update(event, repost=True)

    # Side channels

    def _announcement(self, event: Event, community: CommunityContext) -> Announcement:
        reserved, waitlist = partition(event.roster, event.player_cap, event.disable_waitlist)
        return Announcement(event=event, reserved=reserved, waitlist=waitlist, lang=community.config.lang)

    def _post_announcement(self, event: Event, community: CommunityContext) -> None:
        if not event.channel_id:
            raise AnnouncementError(f"No channel to announce event {event.id} in")
        event.message_id = self.context.announcements.post(event.channel_id, self._announcement(event, community))
        self.context.events.update_fields(event.id, {"message_id": event.message_id})
        self._add_reactions(event, community)

    def _add_reactions(self, event: Event, community: CommunityContext) -> None:
        if event.signup_method is not SignupMethod.AUTOMATED:
            return
        config = community.config
        wanted = [(config.emoji_add, DEFAULT_EMOJI_ADD)]
        if config.drop_out_enabled:
            wanted.append((config.emoji_remove, DEFAULT_EMOJI_REMOVE))
        for symbol, fallback in wanted:
            for candidate in dict.fromkeys((symbol, fallback)):
                try:
                    self.context.announcements.react_with(event.channel_id, event.message_id, candidate)
                    break
                except (AnnouncementError, DeliveryError) as exc:
                    logger.warning("Reaction %s on event %s failed: %s", candidate, event.id, exc)

    def _discard(self, event_id: Optional[str]) -> None:
        if not event_id:
            return
        try:
            self.hard_delete(event_id)
        except StoreError as exc:
            logger.error("Removing half-created event %s failed: %s", event_id, exc)

    def _publish(self, notice: EventNotice) -> None:
        try:
            self.context.bus.publish(community_topic(notice.community_id), notice.to_message())
        except Exception:
            logger.exception("Publishing %s for event %s failed", notice.action, notice.event_id)


__all__ = ["EventLifecycleService", "derive_fields", "diff_events"]

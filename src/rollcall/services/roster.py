"""Roster reconciliation, signups, drop-outs and waitlist promotion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence
from uuid import uuid4

from ..core.roster import ReconciliationPlan, detect_promotion, partition, plan_reconciliation
from ..domain.community import CommunityConfig, CommunityContext, Member
from ..domain.enums import SignupMethod
from ..domain.models import Event, Registration
from ..domain.participants import ParticipantRef, same_participant
from ..errors import DeliveryError, StoreError
from ..ports import DirectMessage
from .context import ServiceContext
from .messages import format_role_list
from .results import OperationResult, ReconcileResult, RejectionReason, UpdateResult

logger = logging.getLogger(__name__)

Persist = Callable[[Event], UpdateResult]


def has_started(event: Event, now: datetime) -> bool:
    return event.starts_at is not None and now >= event.starts_at


@dataclass(slots=True)
class RosterService:
    context: ServiceContext
    persist: Optional[Persist] = None

    def reconcile(self, event: Event, community: Optional[CommunityContext] = None) -> ReconcileResult:
        """Bring ``event.roster`` and its registration records into agreement.

        The roster is rewritten in place with canonical participant refs
        ordered by registration time. Store failures propagate.
        """

        if not event.id:
            raise ValueError("Cannot reconcile an event without an id")
        if community is None:
            community = self.context.resolver.resolve(event.community_id)
        members: Sequence[Member] = community.members if community else ()

        records = self.context.registrations.list_by_event(event.id)
        plan = plan_reconciliation(
            event.roster,
            records,
            event_id=event.id,
            now=self.context.now(),
            members=members,
            stagger=self.context.settings.roster.backfill_stagger,
        )
        self._apply(plan)
        event.roster = list(plan.roster)
        reserved, waitlist = partition(event.roster, event.player_cap, event.disable_waitlist)
        return ReconcileResult(roster=list(event.roster), reserved=reserved, waitlist=waitlist)

    def _apply(self, plan: ReconciliationPlan) -> None:
        store = self.context.registrations
        for record in plan.created:
            store.create(record)
        for record_id, participant_id in plan.id_corrections:
            store.assign_participant_id(record_id, participant_id)
        for record in plan.removed:
            store.delete(record.record_id)
        if plan.has_writes:
            logger.debug(
                "Reconciled registrations: %d created, %d corrected, %d removed",
                len(plan.created),
                len(plan.id_corrections),
                len(plan.removed),
            )

    def _save(self, event: Event) -> UpdateResult:
        if self.persist is not None:
            return self.persist(event)
        try:
            self.reconcile(event)
            self.context.events.upsert(event)
        except StoreError as exc:
            logger.error("Saving roster of event %s failed: %s", event.id, exc)
            return UpdateResult(modified=False, event=event, reason=RejectionReason.UPDATE_FAILED)
        return UpdateResult(modified=True, event=event)

    def _reject(
        self,
        reason: RejectionReason,
        lang: str,
        member: Optional[Member] = None,
        event: Optional[Event] = None,
        **params: str,
    ) -> OperationResult:
        message = self.context.catalog.text(reason.value, lang, **params)
        if member is not None:
            self.send_dm(member.ref, DirectMessage(kind=reason.value, text=message, event_id=event.id if event else None))
        return OperationResult.rejected(reason, message)

    def sign_up(
        self, event: Event, participant: ParticipantRef, timestamp: Optional[datetime] = None
    ) -> OperationResult:
        community = self.context.resolver.resolve(event.community_id)
        if community is None:
            return self._reject(RejectionReason.COMMUNITY_NOT_FOUND, self.context.default_lang)

        config = community.config
        member = community.find_member(participant)
        now = self.context.now()

        if has_started(event, now) and not event.allow_signups_after_start and not event.hide_schedule:
            return self._reject(RejectionReason.ALREADY_STARTED, config.lang, member, event)

        if event.disable_waitlist and len(event.roster) >= event.player_cap:
            return self._reject(RejectionReason.FULL_NO_WAITLIST, config.lang, member, event)

        template = config.template_for(event.template_id)
        if template is not None and template.player_roles:
            if member is None or not member.has_any_role(template.player_roles):
                roles = format_role_list(
                    [role.name for role in template.player_roles],
                    self.context.catalog.text("or", config.lang),
                )
                return self._reject(RejectionReason.MISSING_ROLE, config.lang, member, event, roles=roles)

        key = participant.id or participant.tag
        try:
            match = self.context.registrations.fetch_one(event.id, key)
            if match is None and participant.id and participant.tag:
                match = self.context.registrations.fetch_one(event.id, participant.tag)
            if match is not None and not any(same_participant(entry, match.participant) for entry in event.roster):
                logger.info("Removing stale registration of %s on event %s", key, event.id)
                self._delete_participant_records(event.id, participant)
                match = None
        except StoreError as exc:
            logger.error("Looking up registration of %s on event %s failed: %s", key, event.id, exc)
            return self._reject(RejectionReason.UPDATE_FAILED, config.lang, member, event)
        if match is not None:
            return self._reject(RejectionReason.ALREADY_SIGNED_UP, config.lang, member, event)

        record = Registration(
            record_id=uuid4().hex,
            event_id=event.id,
            participant_id=member.id if member else participant.id,
            participant_tag=member.tag if member else participant.tag,
            inserted_at=timestamp or now,
        )
        previous_roster = list(event.roster)
        try:
            self.context.registrations.create(record)
        except StoreError as exc:
            logger.error("Creating registration for %s on event %s failed: %s", key, event.id, exc)
            return self._reject(RejectionReason.UPDATE_FAILED, config.lang, member, event)

        event.roster.append(record.participant)
        result = self._save(event)
        if not result.persisted:
            event.roster = previous_roster
            try:
                self.context.registrations.delete(record.record_id)
            except StoreError as exc:
                logger.error("Rolling back registration %s failed: %s", record.record_id, exc)
            return self._reject(RejectionReason.UPDATE_FAILED, config.lang, member, event)

        self.send_custom_instructions(event, record.participant, community)
        return OperationResult.success(event)

    def drop_out(
        self, event: Event, participant: ParticipantRef, config: Optional[CommunityConfig] = None
    ) -> OperationResult:
        community = self.context.resolver.resolve(event.community_id)
        if config is None:
            if community is None:
                return self._reject(RejectionReason.COMMUNITY_NOT_FOUND, self.context.default_lang)
            config = community.config

        if not config.drop_out_enabled:
            return OperationResult.rejected(
                RejectionReason.DROP_OUTS_DISABLED,
                self.context.catalog.text(RejectionReason.DROP_OUTS_DISABLED.value, config.lang),
            )

        if has_started(event, self.context.now()) and not event.allow_signups_after_start and not event.hide_schedule:
            member = community.find_member(participant) if community else None
            return self._reject(RejectionReason.ALREADY_STARTED, config.lang, member, event)

        previous_roster = list(event.roster)
        try:
            self._delete_participant_records(event.id, participant)
        except StoreError as exc:
            logger.error("Dropping %s from event %s failed: %s", participant.tag, event.id, exc)
            return OperationResult.rejected(
                RejectionReason.UPDATE_FAILED,
                self.context.catalog.text(RejectionReason.UPDATE_FAILED.value, config.lang),
            )

        event.roster = [entry for entry in event.roster if not same_participant(entry, participant)]
        result = self._save(event)
        if not result.persisted:
            logger.warning("Event %s kept its roster after a failed drop-out save", event.id)
            event.roster = previous_roster
            return OperationResult.rejected(
                RejectionReason.UPDATE_FAILED,
                self.context.catalog.text(RejectionReason.UPDATE_FAILED.value, config.lang),
            )
        return OperationResult.success(event)

    def _delete_participant_records(self, event_id: str, participant: ParticipantRef) -> int:
        store = self.context.registrations
        deleted = 0
        if participant.id:
            deleted += store.delete_all_for_participant(event_id, participant.id)
        if participant.tag:
            deleted += store.delete_all_for_participant(event_id, participant.tag)
        return deleted

    def notify_promotion(
        self,
        event: Event,
        previous: Sequence[ParticipantRef],
        current: Sequence[ParticipantRef],
        community: Optional[CommunityContext] = None,
    ) -> Optional[ParticipantRef]:
        promoted = detect_promotion(previous, current, event.player_cap)
        if promoted is None:
            return None
        lang = community.config.lang if community else self.context.default_lang
        text = self.context.catalog.text(
            "youre_in",
            lang,
            title=event.title,
            community=community.name if community else event.community_id,
        )
        if event.where:
            text = f"{text}\n{event.where}"
        logger.info("Promoting %s off the waitlist of event %s", promoted.tag or promoted.id, event.id)
        self.send_dm(promoted, DirectMessage(kind="promotion", text=text, event_id=event.id))
        return promoted

    def send_custom_instructions(
        self, event: Event, participant: ParticipantRef, community: Optional[CommunityContext] = None
    ) -> bool:
        if event.signup_method is not SignupMethod.AUTOMATED or not event.custom_signup.strip():
            return False
        if community is not None and community.find_member(participant) is None:
            return False
        lang = community.config.lang if community else self.context.default_lang
        text = self.context.catalog.text(
            "dm_instructions",
            lang,
            organizer=event.owner.tag or event.owner.id or "",
            title=event.title,
            instructions=event.custom_signup,
        )
        position = next(
            (index for index, entry in enumerate(event.roster) if same_participant(entry, participant)),
            None,
        )
        if position is not None and position + 1 > event.player_cap:
            waitlisted = self.context.catalog.text("dm_waitlist", lang, position=str(position + 1 - event.player_cap))
            text = f"{text}\n\n{waitlisted}"
        return self.send_dm(participant, DirectMessage(kind="custom_signup", text=text, event_id=event.id))

    def send_dm(self, participant: ParticipantRef, message: DirectMessage) -> bool:
        try:
            self.context.direct_messages.send_to(participant, message)
        except DeliveryError as exc:
            logger.warning("Direct message %s to %s failed: %s", message.kind, participant.tag or participant.id, exc)
            return False
        return True


__all__ = ["RosterService", "has_started"]

"""Roster reconciliation planning.

Everything here is pure: ``plan_reconciliation`` takes a snapshot of the
intended roster and of the stored registrations and returns the writes the
caller has to issue. ``services.roster`` applies the plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..domain.community import Member, find_member
from ..domain.models import Registration
from ..domain.participants import ParticipantRef, participant_ref, same_participant

BACKFILL_STAGGER = timedelta(milliseconds=100)


@dataclass(slots=True)
class ReconciliationPlan:
    roster: List[ParticipantRef]
    records: List[Registration]
    created: List[Registration] = field(default_factory=list)
    id_corrections: List[Tuple[str, str]] = field(default_factory=list)
    removed: List[Registration] = field(default_factory=list)

    @property
    def has_writes(self) -> bool:
        return bool(self.created or self.id_corrections or self.removed)


def _duplicates(other: ParticipantRef, entry: ParticipantRef) -> bool:
    if entry.id and other.id == entry.id:
        return True
    return entry.qualified and other.tag == entry.tag


def kept_indexes(entries: Sequence[ParticipantRef]) -> List[int]:
    """Indexes that survive deduplication.

    Bare handles without an id are never collapsed. Entries with an id or a
    qualified tag keep only their first occurrence.
    """

    kept: List[int] = []
    for index, entry in enumerate(entries):
        if not entry.id and not entry.qualified:
            kept.append(index)
            continue
        first = next(position for position, other in enumerate(entries) if _duplicates(other, entry))
        if first == index:
            kept.append(index)
    return kept


def dedupe(entries: Sequence[ParticipantRef]) -> List[ParticipantRef]:
    return [entries[index] for index in kept_indexes(entries)]


def normalize_roster(entries: Sequence[ParticipantRef]) -> List[ParticipantRef]:
    normalized = [participant_ref(entry.id, entry.tag) for entry in entries]
    return [entry for entry in normalized if entry.id or entry.tag]


def partition(
    roster: Sequence[ParticipantRef], player_cap: int, disable_waitlist: bool = False
) -> Tuple[List[ParticipantRef], List[ParticipantRef]]:
    cap = max(0, int(player_cap))
    reserved = list(roster[:cap])
    waitlist = [] if disable_waitlist else list(roster[cap:])
    return reserved, waitlist


def detect_promotion(
    previous: Sequence[ParticipantRef], current: Sequence[ParticipantRef], player_cap: int
) -> Optional[ParticipantRef]:
    """Return the participant who moved into the last reserved slot.

    Only a shrinking roster can promote someone off the waitlist.
    """

    if len(previous) <= len(current):
        return None
    if player_cap < 1 or len(current) < player_cap:
        return None
    boundary = player_cap - 1
    before = previous[boundary] if boundary < len(previous) else None
    after = current[boundary]
    if before is not None and same_participant(before, after):
        return None
    return after


def _counts_toward(other: ParticipantRef, entry: ParticipantRef) -> bool:
    if entry.id and other.id == entry.id:
        return True
    return not entry.qualified and other.tag == entry.tag


def _record_matches(record: Registration, entry: ParticipantRef, member: Optional[Member]) -> bool:
    if same_participant(record.participant, entry):
        return True
    return member is not None and same_participant(record.participant, member.ref)


def _new_record_id() -> str:
    return uuid4().hex


def plan_reconciliation(
    roster: Sequence[ParticipantRef],
    records: Sequence[Registration],
    *,
    event_id: str,
    now: datetime,
    members: Sequence[Member] = (),
    stagger: timedelta = BACKFILL_STAGGER,
    make_id: Callable[[], str] = _new_record_id,
) -> ReconciliationPlan:
    entries = dedupe(normalize_roster(roster))
    known = sorted(records, key=lambda record: record.inserted_at)
    reference = now - stagger * len(entries)

    claimed: set[str] = set()
    resolved: List[Registration] = []
    created: List[Registration] = []
    corrections: dict[str, str] = {}

    for index, entry in enumerate(entries):
        member = find_member(members, entry)
        matches = [record for record in known if _record_matches(record, entry, member)]
        prior = sum(1 for other in entries[: index + 1] if _counts_toward(other, entry))
        record = next((candidate for candidate in matches if candidate.record_id not in claimed), None)

        if record is None or prior > len(matches):
            fallback_id = (record.participant_id if record else None) or entry.id
            record = Registration(
                record_id=make_id(),
                event_id=event_id,
                participant_id=member.id if member else fallback_id,
                participant_tag=member.tag if member else entry.tag,
                inserted_at=reference + stagger * index,
            )
            known.append(record)
            created.append(record)
        elif member is not None and not record.participant_id:
            corrected = replace(record, participant_id=member.id)
            known[known.index(record)] = corrected
            corrections[record.record_id] = member.id
            record = corrected

        claimed.add(record.record_id)
        resolved.append(record)

    resolved.sort(key=lambda record: record.inserted_at)
    canonical = [participant_ref(record.participant_id, record.participant_tag) for record in resolved]
    survivors = [resolved[index] for index in kept_indexes(canonical)]
    surviving_ids = {record.record_id for record in survivors}

    return ReconciliationPlan(
        roster=[record.participant for record in survivors],
        records=survivors,
        created=[record for record in created if record.record_id in surviving_ids],
        id_corrections=[(record_id, value) for record_id, value in corrections.items() if record_id in surviving_ids],
        removed=[record for record in records if record.record_id not in surviving_ids],
    )


__all__ = [
    "BACKFILL_STAGGER",
    "ReconciliationPlan",
    "dedupe",
    "detect_promotion",
    "kept_indexes",
    "normalize_roster",
    "partition",
    "plan_reconciliation",
]

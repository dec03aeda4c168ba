from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..domain.models import Event
from ..domain.participants import ParticipantRef


class RejectionReason(str, Enum):
    COMMUNITY_NOT_FOUND = "community_not_found"
    ALREADY_STARTED = "already_started"
    FULL_NO_WAITLIST = "full_no_waitlist"
    MISSING_ROLE = "missing_role"
    ALREADY_SIGNED_UP = "already_signed_up"
    UPDATE_FAILED = "update_failed"
    DROP_OUTS_DISABLED = "drop_outs_disabled"
    EVENT_NOT_FOUND = "event_not_found"
    ANNOUNCEMENT_FAILED = "announcement_failed"


@dataclass(frozen=True, slots=True)
class OperationResult:
    ok: bool
    reason: Optional[RejectionReason] = None
    message: str = ""
    event: Optional[Event] = None

    @classmethod
    def success(cls, event: Optional[Event] = None) -> "OperationResult":
        return cls(ok=True, event=event)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str = "") -> "OperationResult":
        return cls(ok=False, reason=reason, message=message)


@dataclass(slots=True)
class ReconcileResult:
    roster: List[ParticipantRef] = field(default_factory=list)
    reserved: List[ParticipantRef] = field(default_factory=list)
    waitlist: List[ParticipantRef] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class UpdateResult:
    modified: bool
    event: Event
    reason: Optional[RejectionReason] = None

    @property
    def persisted(self) -> bool:
        """The store write went through even if the announcement did not."""

        return self.modified or self.reason is RejectionReason.ANNOUNCEMENT_FAILED


class RetireOutcome(str, Enum):
    SOFT_DELETED = "soft_deleted"
    HARD_DELETED = "hard_deleted"
    FLAGGED = "flagged"
    FAILED = "failed"

    @property
    def retired(self) -> bool:
        return self is not RetireOutcome.FAILED


class RescheduleOutcome(str, Enum):
    RESCHEDULED = "rescheduled"
    PERMISSION_REVOKED = "permission_revoked"
    NOT_DUE = "not_due"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RescheduleResult:
    outcome: RescheduleOutcome
    event: Optional[Event] = None
    retired: Optional[RetireOutcome] = None

    @property
    def ok(self) -> bool:
        return self.outcome is RescheduleOutcome.RESCHEDULED


__all__ = [
    "OperationResult",
    "ReconcileResult",
    "RejectionReason",
    "RescheduleOutcome",
    "RescheduleResult",
    "RetireOutcome",
    "UpdateResult",
]

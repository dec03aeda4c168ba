"""Application services orchestrating stores, community context and side channels."""

from __future__ import annotations

from .context import ServiceContext
from .lifecycle import EventLifecycleService
from .messages import DefaultMessageCatalog
from .results import (
    OperationResult,
    ReconcileResult,
    RejectionReason,
    RescheduleOutcome,
    RescheduleResult,
    RetireOutcome,
    UpdateResult,
)
from .roster import RosterService

__all__ = [
    "DefaultMessageCatalog",
    "EventLifecycleService",
    "OperationResult",
    "ReconcileResult",
    "RejectionReason",
    "RescheduleOutcome",
    "RescheduleResult",
    "RetireOutcome",
    "RosterService",
    "ServiceContext",
    "UpdateResult",
]

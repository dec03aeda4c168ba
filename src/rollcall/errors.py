"""Exceptions raised by collaborators and caught by the services."""

from __future__ import annotations

from typing import Any, Optional


class RollcallError(Exception):
    """Base class for rollcall errors."""


class StoreError(RollcallError):
    """Raised by event or registration stores when a read or write fails."""


class AnnouncementError(RollcallError):
    """Raised when an announcement cannot be posted, edited or removed."""


class DeliveryError(RollcallError):
    """Raised when a direct message or reaction cannot be delivered."""


class NotFoundError(RollcallError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Optional[Any]):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")

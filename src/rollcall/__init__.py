"""Rollcall: recurring events with bounded rosters and waitlist promotion."""

from __future__ import annotations

from .logging import configure_logging
from .services import EventLifecycleService, RosterService, ServiceContext

__all__ = ["EventLifecycleService", "RosterService", "ServiceContext", "configure_logging"]

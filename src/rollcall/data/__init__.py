"""Data access layer."""

from __future__ import annotations

from .local import JsonStateStore, LocalEventStore, LocalRegistrationStore
from .supabase import SupabaseGateway, SupabaseNotInitializedError

__all__ = [
    "JsonStateStore",
    "LocalEventStore",
    "LocalRegistrationStore",
    "SupabaseGateway",
    "SupabaseNotInitializedError",
]

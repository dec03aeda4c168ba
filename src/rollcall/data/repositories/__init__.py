"""Supabase-backed stores."""

from __future__ import annotations

from .events import EventRepository
from .registrations import RegistrationRepository

__all__ = ["EventRepository", "RegistrationRepository"]

"""Configuration models and helpers."""

from __future__ import annotations

from .settings import AppSettings, RosterSettings, StorageSettings, SupabaseSettings, get_settings

__all__ = ["AppSettings", "RosterSettings", "StorageSettings", "SupabaseSettings", "get_settings"]

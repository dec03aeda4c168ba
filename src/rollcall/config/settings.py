from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ..core.config import STATE_FILE

load_dotenv()


@dataclass(frozen=True)
class SupabaseSettings:
    url: Optional[str]
    anon_key: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @property
    def missing_env_vars(self) -> list[str]:
        missing = []
        if not self.url:
            missing.append("SUPABASE_URL")
        if not self.anon_key:
            missing.append("SUPABASE_ANON_KEY")
        return missing


@dataclass(frozen=True)
class StorageSettings:
    backend: str
    state_file: Path
    events_table: str
    registrations_table: str

    @property
    def uses_supabase(self) -> bool:
        return self.backend == "supabase"


@dataclass(frozen=True)
class RosterSettings:
    backfill_stagger: timedelta
    purge_batch_size: int
    purge_limit: int
    default_lang: str


@dataclass(frozen=True)
class AppSettings:
    supabase: SupabaseSettings
    storage: StorageSettings
    roster: RosterSettings
    log_level: str


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    supabase = SupabaseSettings(
        url=os.getenv("SUPABASE_URL"),
        anon_key=os.getenv("SUPABASE_ANON_KEY"),
    )

    state_file = os.getenv("ROLLCALL_STATE_FILE")
    storage = StorageSettings(
        backend=os.getenv("ROLLCALL_STORAGE_BACKEND", "local").strip().lower(),
        state_file=Path(state_file).expanduser() if state_file else STATE_FILE,
        events_table=os.getenv("SUPABASE_EVENTS_TABLE", "events"),
        registrations_table=os.getenv("SUPABASE_REGISTRATIONS_TABLE", "event_registrations"),
    )

    roster = RosterSettings(
        backfill_stagger=timedelta(milliseconds=_int_from_env("ROLLCALL_BACKFILL_STAGGER_MS", 100)),
        purge_batch_size=max(1, _int_from_env("ROLLCALL_PURGE_BATCH_SIZE", 200)),
        purge_limit=max(1, _int_from_env("ROLLCALL_PURGE_LIMIT", 2000)),
        default_lang=os.getenv("ROLLCALL_DEFAULT_LANG", "en"),
    )

    return AppSettings(
        supabase=supabase,
        storage=storage,
        roster=roster,
        log_level=os.getenv("ROLLCALL_LOG_LEVEL", "INFO"),
    )

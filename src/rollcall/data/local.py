"""JSON state file back end.

Both stores share one ``JsonStateStore`` so a single file holds events and
their registration history. Writes go through ``mutate`` and are flushed
immediately.
"""

from __future__ import annotations

from copy import deepcopy
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import orjson

from ..core.config import DEFAULT_STATE_CONTENT, STATE_FILE, ensure_data_dir
from ..domain.models import Event, Registration
from ..domain.participants import normalize_tag
from ..ports import EventStore, RegistrationStore


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _matches(record: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(record.get(key) == _plain(value) for key, value in filters.items())


class JsonStateStore:
    """Lightweight persistence for the whole application state."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or STATE_FILE
        self._state: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_materialized(self) -> None:
        if self._state is not None:
            return
        if not self._path.exists():
            ensure_data_dir(self._path)
            self._state = deepcopy(DEFAULT_STATE_CONTENT)
            return
        raw = self._path.read_bytes()
        if not raw.strip():
            self._state = deepcopy(DEFAULT_STATE_CONTENT)
            return
        self._state = orjson.loads(raw)
        # Backfill missing keys when upgrading.
        for key, value in DEFAULT_STATE_CONTENT.items():
            if key not in self._state:
                self._state[key] = deepcopy(value)

    @property
    def data(self) -> Dict[str, Any]:
        self._ensure_materialized()
        assert self._state is not None
        return self._state

    def persist(self) -> None:
        if self._state is None:
            return
        payload = orjson.dumps(self._state, option=orjson.OPT_INDENT_2)
        self._path.write_bytes(payload + b"\n")

    def mutate(self, callback: Callable[[Dict[str, Any]], Any]) -> Any:
        self._ensure_materialized()
        assert self._state is not None
        result = callback(self._state)
        self.persist()
        return result


class LocalEventStore(EventStore):
    def __init__(self, state: JsonStateStore) -> None:
        self._state = state

    def _events(self) -> Dict[str, Dict[str, Any]]:
        return self._state.data["events"]

    def get(self, event_id: str) -> Optional[Event]:
        record = self._events().get(str(event_id))
        return Event.from_record(record) if record else None

    def upsert(self, event: Event) -> int:
        if not event.id:
            raise ValueError("Cannot store an event without an id")

        def _write(state: Dict[str, Any]) -> int:
            state["events"][event.id] = event.to_record()
            return 1

        return self._state.mutate(_write)

    def update_fields(self, event_id: str, fields: Mapping[str, Any]) -> int:
        def _patch(state: Dict[str, Any]) -> int:
            record = state["events"].get(str(event_id))
            if record is None:
                return 0
            record.update({key: _plain(value) for key, value in fields.items()})
            return 1

        return self._state.mutate(_patch)

    def soft_delete(self, event_id: str) -> int:
        return self.update_fields(event_id, {"deleted": True, "frequency": "none"})

    def hard_delete(self, event_id: str) -> int:
        def _remove(state: Dict[str, Any]) -> int:
            return 1 if state["events"].pop(str(event_id), None) is not None else 0

        return self._state.mutate(_remove)

    def find_many(
        self,
        filters: Mapping[str, Any],
        limit: Optional[int] = None,
        include_deleted: bool = False,
    ) -> List[Event]:
        found: List[Event] = []
        for record in self._events().values():
            if not include_deleted and record.get("deleted"):
                continue
            if not _matches(record, filters):
                continue
            found.append(Event.from_record(record))
            if limit is not None and len(found) >= limit:
                break
        return found

    def update_many(self, filters: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        def _patch_all(state: Dict[str, Any]) -> int:
            modified = 0
            for record in state["events"].values():
                if _matches(record, filters):
                    record.update({key: _plain(value) for key, value in patch.items()})
                    modified += 1
            return modified

        return self._state.mutate(_patch_all)


class LocalRegistrationStore(RegistrationStore):
    def __init__(self, state: JsonStateStore) -> None:
        self._state = state

    def _records(self) -> Dict[str, Dict[str, Any]]:
        return self._state.data["registrations"]

    def list_by_event(self, event_id: str) -> List[Registration]:
        records = [
            Registration.from_record(record)
            for record in self._records().values()
            if record.get("event_id") == str(event_id)
        ]
        return sorted(records, key=lambda record: record.inserted_at)

    def fetch_one(self, event_id: str, id_or_tag: str) -> Optional[Registration]:
        tag = normalize_tag(id_or_tag)
        for record in self.list_by_event(event_id):
            if record.participant_id == id_or_tag or normalize_tag(record.participant_tag) == tag:
                return record
        return None

    def create(self, record: Registration) -> Registration:
        def _insert(state: Dict[str, Any]) -> Registration:
            state["registrations"][record.record_id] = record.to_record()
            return record

        return self._state.mutate(_insert)

    def delete(self, record_id: str) -> int:
        def _remove(state: Dict[str, Any]) -> int:
            return 1 if state["registrations"].pop(record_id, None) is not None else 0

        return self._state.mutate(_remove)

    def _delete_where(self, predicate: Callable[[Dict[str, Any]], bool]) -> int:
        def _remove(state: Dict[str, Any]) -> int:
            doomed = [key for key, record in state["registrations"].items() if predicate(record)]
            for key in doomed:
                del state["registrations"][key]
            return len(doomed)

        return self._state.mutate(_remove)

    def delete_all_for_event(self, event_id: str) -> int:
        return self._delete_where(lambda record: record.get("event_id") == str(event_id))

    def delete_all_for_participant(self, event_id: str, id_or_tag: str) -> int:
        tag = normalize_tag(id_or_tag)
        return self._delete_where(
            lambda record: record.get("event_id") == str(event_id)
            and (
                (bool(record.get("participant_id")) and record.get("participant_id") == id_or_tag)
                or normalize_tag(record.get("participant_tag") or "") == tag
            )
        )

    def assign_participant_id(self, record_id: str, participant_id: str) -> int:
        def _patch(state: Dict[str, Any]) -> int:
            record = state["registrations"].get(record_id)
            if record is None:
                return 0
            record["participant_id"] = participant_id
            return 1

        return self._state.mutate(_patch)


__all__ = ["JsonStateStore", "LocalEventStore", "LocalRegistrationStore"]

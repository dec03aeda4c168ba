from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ...domain.models import Event
from ...ports import EventStore
from ..supabase import SupabaseGateway


def _column_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


@dataclass(slots=True)
class EventRepository(EventStore):
    gateway: SupabaseGateway
    table_name: str

    def get(self, event_id: str) -> Optional[Event]:
        query = self.gateway.table(self.table_name).select("*").eq("id", event_id).limit(1)
        records = self.gateway.execute(query, "event fetch")
        return Event.from_record(records[0]) if records else None

    def upsert(self, event: Event) -> int:
        query = self.gateway.table(self.table_name).upsert(event.to_record(), on_conflict="id")
        return len(self.gateway.execute(query, "event upsert"))

    def update_fields(self, event_id: str, fields: Mapping[str, Any]) -> int:
        query = self.gateway.table(self.table_name).update(_column_values(fields)).eq("id", event_id)
        return len(self.gateway.execute(query, "event update"))

    def soft_delete(self, event_id: str) -> int:
        return self.update_fields(event_id, {"deleted": True, "frequency": "none"})

    def hard_delete(self, event_id: str) -> int:
        query = self.gateway.table(self.table_name).delete().eq("id", event_id)
        return len(self.gateway.execute(query, "event delete"))

    def find_many(
        self,
        filters: Mapping[str, Any],
        limit: Optional[int] = None,
        include_deleted: bool = False,
    ) -> List[Event]:
        query = self.gateway.table(self.table_name).select("*")
        for column, value in _column_values(filters).items():
            query = query.eq(column, value)
        if not include_deleted:
            query = query.eq("deleted", False)
        query = query.order("created_at", desc=False)
        if limit is not None:
            query = query.limit(limit)
        return [Event.from_record(record) for record in self.gateway.execute(query, "event search")]

    def update_many(self, filters: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        query = self.gateway.table(self.table_name).update(_column_values(patch))
        for column, value in _column_values(filters).items():
            query = query.eq(column, value)
        return len(self.gateway.execute(query, "event bulk update"))

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ...domain.models import Registration
from ...domain.participants import normalize_tag
from ...ports import RegistrationStore
from ..supabase import SupabaseGateway


def _participant_filter(id_or_tag: str) -> str:
    tag = normalize_tag(id_or_tag)
    return f'participant_id.eq."{id_or_tag}",participant_tag.eq."{tag}"'


@dataclass(slots=True)
class RegistrationRepository(RegistrationStore):
    gateway: SupabaseGateway
    table_name: str

    def list_by_event(self, event_id: str) -> List[Registration]:
        query = (
            self.gateway.table(self.table_name)
            .select("*")
            .eq("event_id", event_id)
            .order("inserted_at", desc=False)
        )
        return [Registration.from_record(record) for record in self.gateway.execute(query, "registration list")]

    def fetch_one(self, event_id: str, id_or_tag: str) -> Optional[Registration]:
        query = (
            self.gateway.table(self.table_name)
            .select("*")
            .eq("event_id", event_id)
            .or_(_participant_filter(id_or_tag))
            .order("inserted_at", desc=False)
            .limit(1)
        )
        records = self.gateway.execute(query, "registration fetch")
        return Registration.from_record(records[0]) if records else None

    def create(self, record: Registration) -> Registration:
        query = self.gateway.table(self.table_name).insert(record.to_record())
        records = self.gateway.execute(query, "registration insert")
        return Registration.from_record(records[0]) if records else record

    def delete(self, record_id: str) -> int:
        query = self.gateway.table(self.table_name).delete().eq("record_id", record_id)
        return len(self.gateway.execute(query, "registration delete"))

    def delete_all_for_event(self, event_id: str) -> int:
        query = self.gateway.table(self.table_name).delete().eq("event_id", event_id)
        return len(self.gateway.execute(query, "registration purge"))

    def delete_all_for_participant(self, event_id: str, id_or_tag: str) -> int:
        query = (
            self.gateway.table(self.table_name)
            .delete()
            .eq("event_id", event_id)
            .or_(_participant_filter(id_or_tag))
        )
        return len(self.gateway.execute(query, "registration drop-out"))

    def assign_participant_id(self, record_id: str, participant_id: str) -> int:
        query = (
            self.gateway.table(self.table_name)
            .update({"participant_id": participant_id})
            .eq("record_id", record_id)
        )
        return len(self.gateway.execute(query, "registration id correction"))

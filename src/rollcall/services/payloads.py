"""Notification payloads published on ``community:<id>`` topics."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.models import Event


def community_topic(community_id: str) -> str:
    return f"community:{community_id}"


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    community_id: str
    channel_id: Optional[str] = Field(default=None)
    title: str
    starts_at: Optional[str] = Field(default=None)
    frequency: str
    player_cap: int
    roster: list[Dict[str, Any]] = Field(default_factory=list)
    sequence: int
    deleted: bool = Field(default=False)

    @classmethod
    def from_domain(cls, event: Event) -> "EventPayload":
        record = event.to_record()
        return cls(
            id=event.id or "",
            community_id=event.community_id,
            channel_id=event.channel_id,
            title=event.title,
            starts_at=record["starts_at"],
            frequency=event.frequency.value,
            player_cap=event.player_cap,
            roster=record["roster"],
            sequence=event.sequence,
            deleted=event.deleted,
        )


class EventNotice(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Literal["new", "updated", "deleted", "rescheduled"]
    community_id: str
    event_id: str
    event: Optional[EventPayload] = Field(default=None)
    changes: Dict[str, Any] = Field(default_factory=dict)
    new_event_id: Optional[str] = Field(default=None)

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


__all__ = ["EventNotice", "EventPayload", "community_topic"]

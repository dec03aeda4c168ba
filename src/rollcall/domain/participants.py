"""Participant identity.

A participant is either ``Identified`` (the chat platform id is known) or
``Unidentified`` (only a display handle was typed in). Tags such as
``name#1234`` carry a discriminator and are precise enough to act as an
identity on their own; bare handles are not.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

QUALIFIED_TAG = re.compile(r"#\d{4}$")
MENTION = re.compile(r"^<@!?(\d+)>$")


def normalize_tag(tag: Optional[str]) -> str:
    text = (tag or "").strip()
    if text.startswith("@"):
        text = text[1:]
    return text


def is_qualified(tag: Optional[str]) -> bool:
    return bool(QUALIFIED_TAG.search((tag or "").strip()))


def mention_id(tag: Optional[str]) -> Optional[str]:
    """Return the user id embedded in a ``<@123>`` style mention."""

    match = MENTION.match((tag or "").strip())
    return match.group(1) if match else None


@dataclass(frozen=True, slots=True)
class Identified:
    id: str
    tag: str = ""

    @property
    def qualified(self) -> bool:
        return is_qualified(self.tag)


@dataclass(frozen=True, slots=True)
class Unidentified:
    tag: str

    @property
    def id(self) -> None:
        return None

    @property
    def qualified(self) -> bool:
        return is_qualified(self.tag)


ParticipantRef = Union[Identified, Unidentified]


def participant_ref(id: Optional[Any] = None, tag: Optional[str] = None) -> ParticipantRef:
    normalized = normalize_tag(tag)
    identifier = str(id).strip() if id not in (None, "") else ""
    if identifier:
        return Identified(id=identifier, tag=normalized)
    return Unidentified(tag=normalized)


def same_participant(left: ParticipantRef, right: ParticipantRef) -> bool:
    if left.id and right.id:
        return left.id == right.id
    return normalize_tag(left.tag) == normalize_tag(right.tag)


def ref_from_record(record: Any) -> Optional[ParticipantRef]:
    if not record:
        return None
    if isinstance(record, str):
        return participant_ref(tag=record)
    return participant_ref(record.get("id"), record.get("tag"))


def ref_to_record(ref: Optional[ParticipantRef]) -> Optional[Dict[str, Any]]:
    if ref is None:
        return None
    return {"id": ref.id, "tag": ref.tag}


__all__ = [
    "Identified",
    "ParticipantRef",
    "Unidentified",
    "is_qualified",
    "mention_id",
    "normalize_tag",
    "participant_ref",
    "ref_from_record",
    "ref_to_record",
    "same_participant",
]

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .enums import RescheduleMode
from .participants import ParticipantRef, mention_id, normalize_tag, participant_ref

DEFAULT_EMOJI_ADD = "➕"
DEFAULT_EMOJI_REMOVE = "➖"


@dataclass(frozen=True, slots=True)
class Role:
    name: str
    id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Member:
    id: str
    tag: str
    nickname: Optional[str] = None
    roles: Sequence[Role] = ()

    @property
    def ref(self) -> ParticipantRef:
        return participant_ref(self.id, self.tag)

    def has_any_role(self, required: Sequence[Role]) -> bool:
        """True when the member holds at least one of ``required``.

        Roles without an id are matched by name.
        """

        for wanted in required:
            for held in self.roles:
                if wanted.id and held.id == wanted.id:
                    return True
                if not wanted.id and held.name == wanted.name:
                    return True
        return False


@dataclass(frozen=True, slots=True)
class Channel:
    id: str
    name: str
    kind: str = "text"

    @property
    def postable(self) -> bool:
        return self.kind in ("text", "news")


@dataclass(frozen=True, slots=True)
class EventTemplate:
    id: str
    is_default: bool = False
    player_roles: Sequence[Role] = ()


@dataclass(frozen=True, slots=True)
class CommunityConfig:
    """Per-community settings resolved once and handed to each operation."""

    lang: str = "en"
    drop_out_enabled: bool = True
    reschedule_mode: RescheduleMode = RescheduleMode.REPOST
    emoji_add: str = DEFAULT_EMOJI_ADD
    emoji_remove: str = DEFAULT_EMOJI_REMOVE
    channel_ids: Sequence[str] = ()
    templates: Sequence[EventTemplate] = ()

    def template_for(self, template_id: Optional[str]) -> Optional[EventTemplate]:
        if template_id:
            for template in self.templates:
                if str(template.id) == str(template_id):
                    return template
        for template in self.templates:
            if template.is_default:
                return template
        return self.templates[0] if self.templates else None


@dataclass
class CommunityContext:
    id: str
    name: str = ""
    members: List[Member] = field(default_factory=list)
    channels: List[Channel] = field(default_factory=list)
    config: CommunityConfig = field(default_factory=CommunityConfig)
    can_post: Optional[Callable[[str, Optional[str]], bool]] = None

    def find_member(self, ref: Optional[ParticipantRef]) -> Optional[Member]:
        return find_member(self.members, ref)

    def channel(self, channel_id: Optional[str]) -> Optional[Channel]:
        for channel in self.channels:
            if channel_id and channel.id == channel_id and channel.postable:
                return channel
        for configured in self.config.channel_ids:
            for channel in self.channels:
                if channel.id == configured:
                    return channel
        for channel in self.channels:
            if channel.kind == "text":
                return channel
        return None

    def organizer_can_post(self, owner: ParticipantRef, channel_id: Optional[str]) -> bool:
        member = self.find_member(owner)
        if member is None:
            return False
        if self.can_post is None:
            return True
        return self.can_post(member.id, channel_id)


def find_member(members: Sequence[Member], ref: Optional[ParticipantRef]) -> Optional[Member]:
    """Match a participant against community members by id, mention or tag."""

    if ref is None:
        return None
    tag = normalize_tag(ref.tag)
    embedded = mention_id(ref.tag)
    for member in members:
        if ref.id and member.id == ref.id:
            return member
        if embedded and member.id == embedded:
            return member
        if tag and member.tag == tag:
            return member
    return None

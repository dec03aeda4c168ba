"""Domain models for event scheduling and rosters."""

from __future__ import annotations

from .community import Channel, CommunityConfig, CommunityContext, EventTemplate, Member, Role
from .enums import Frequency, MonthlyMode, RescheduleMode, SignupMethod, Weekday, WhenMode, weekday_flags, weekdays_from_flags
from .models import Event, Registration
from .participants import Identified, ParticipantRef, Unidentified, participant_ref, same_participant

__all__ = [
    "Channel",
    "CommunityConfig",
    "CommunityContext",
    "Event",
    "EventTemplate",
    "Frequency",
    "Identified",
    "Member",
    "MonthlyMode",
    "ParticipantRef",
    "Registration",
    "RescheduleMode",
    "Role",
    "SignupMethod",
    "Unidentified",
    "Weekday",
    "WhenMode",
    "participant_ref",
    "same_participant",
    "weekday_flags",
    "weekdays_from_flags",
]

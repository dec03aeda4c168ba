from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, FrozenSet, List, Optional

from .enums import Frequency, MonthlyMode, SignupMethod, Weekday, WhenMode, weekday_flags, weekdays_from_flags
from .participants import ParticipantRef, participant_ref, ref_from_record, ref_to_record


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_time(value: Any) -> Optional[time]:
    if value in (None, ""):
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_weekdays(value: Any) -> FrozenSet[Weekday]:
    if not value:
        return frozenset()
    items = list(value)
    if len(items) == 7 and all(isinstance(item, bool) for item in items):
        return weekdays_from_flags(items)
    parsed = set()
    for item in items:
        if isinstance(item, str):
            parsed.add(Weekday[item.strip().upper()])
        else:
            parsed.add(Weekday(int(item)))
    return frozenset(parsed)


def _coerce_cap(value: Any) -> int:
    try:
        return max(1, int(str(value).strip()))
    except (TypeError, ValueError):
        return 1


@dataclass(slots=True)
class Registration:
    record_id: str
    event_id: str
    participant_tag: str
    inserted_at: datetime
    participant_id: Optional[str] = None

    @property
    def participant(self) -> ParticipantRef:
        return participant_ref(self.participant_id, self.participant_tag)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Registration":
        inserted_at = _parse_datetime(record.get("inserted_at"))
        if inserted_at is None:
            raise ValueError(f"Registration {record.get('record_id')!r} has no inserted_at")
        return cls(
            record_id=str(record["record_id"]),
            event_id=str(record["event_id"]),
            participant_tag=record.get("participant_tag") or "",
            inserted_at=inserted_at,
            participant_id=record.get("participant_id") or None,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "event_id": self.event_id,
            "participant_id": self.participant_id,
            "participant_tag": self.participant_tag,
            "inserted_at": self.inserted_at.isoformat(),
        }


@dataclass(slots=True)
class Event:
    community_id: str
    title: str
    owner: ParticipantRef
    player_cap: int = 1
    id: Optional[str] = None
    channel_id: Optional[str] = None
    template_id: Optional[str] = None
    author: Optional[ParticipantRef] = None
    roster: List[ParticipantRef] = field(default_factory=list)
    where: str = ""
    description: str = ""
    signup_method: SignupMethod = SignupMethod.AUTOMATED
    custom_signup: str = ""
    when_mode: WhenMode = WhenMode.DATETIME
    start_date: Optional[date] = None
    start_time: Optional[time] = None
    utc_offset_quarters: int = 0
    timezone_name: Optional[str] = None
    runtime: str = ""
    duration_hours: float = 0.0
    starts_at: Optional[datetime] = None
    hide_schedule: bool = False
    allow_signups_after_start: bool = False
    disable_waitlist: bool = False
    frequency: Frequency = Frequency.NONE
    weekdays: FrozenSet[Weekday] = frozenset()
    monthly_mode: MonthlyMode = MonthlyMode.WEEKDAY
    week_interval: int = 2
    clear_roster_on_recur: bool = False
    rescheduled: bool = False
    reminder_minutes: int = 0
    reminded: bool = False
    message_id: Optional[str] = None
    reminder_message_id: Optional[str] = None
    owner_message_id: Optional[str] = None
    sequence: int = 1
    pruned: bool = False
    deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.player_cap = _coerce_cap(self.player_cap)
        if self.author is None:
            self.author = self.owner

    @property
    def iso_start(self) -> Optional[str]:
        if self.starts_at is None:
            return None
        return self.starts_at.strftime("%Y%m%dT%H%M%S%z")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Event":
        owner = ref_from_record(record.get("owner")) or participant_ref(tag="")
        return cls(
            id=str(record["id"]) if record.get("id") else None,
            community_id=str(record["community_id"]),
            channel_id=record.get("channel_id"),
            template_id=record.get("template_id"),
            title=record.get("title") or "",
            owner=owner,
            author=ref_from_record(record.get("author")) or owner,
            roster=[ref for ref in (ref_from_record(item) for item in record.get("roster") or []) if ref],
            player_cap=record.get("player_cap", 1),
            where=record.get("where") or "",
            description=record.get("description") or "",
            signup_method=SignupMethod(record.get("signup_method") or SignupMethod.AUTOMATED),
            custom_signup=record.get("custom_signup") or "",
            when_mode=WhenMode(record.get("when_mode") or WhenMode.DATETIME),
            start_date=_parse_date(record.get("start_date")),
            start_time=_parse_time(record.get("start_time")),
            utc_offset_quarters=int(record.get("utc_offset_quarters") or 0),
            timezone_name=record.get("timezone_name") or None,
            runtime=str(record.get("runtime") or ""),
            duration_hours=float(record.get("duration_hours") or 0.0),
            starts_at=_parse_datetime(record.get("starts_at")),
            hide_schedule=bool(record.get("hide_schedule")),
            allow_signups_after_start=bool(record.get("allow_signups_after_start")),
            disable_waitlist=bool(record.get("disable_waitlist")),
            frequency=Frequency(record.get("frequency") or Frequency.NONE),
            weekdays=_parse_weekdays(record.get("weekdays")),
            monthly_mode=MonthlyMode(record.get("monthly_mode") or MonthlyMode.WEEKDAY),
            week_interval=int(record.get("week_interval") or 2),
            clear_roster_on_recur=bool(record.get("clear_roster_on_recur")),
            rescheduled=bool(record.get("rescheduled")),
            reminder_minutes=int(record.get("reminder_minutes") or 0),
            reminded=bool(record.get("reminded")),
            message_id=record.get("message_id"),
            reminder_message_id=record.get("reminder_message_id"),
            owner_message_id=record.get("owner_message_id"),
            sequence=int(record.get("sequence") or 1),
            pruned=bool(record.get("pruned")),
            deleted=bool(record.get("deleted")),
            created_at=_parse_datetime(record.get("created_at")),
            updated_at=_parse_datetime(record.get("updated_at")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "community_id": self.community_id,
            "channel_id": self.channel_id,
            "template_id": self.template_id,
            "title": self.title,
            "owner": ref_to_record(self.owner),
            "author": ref_to_record(self.author),
            "roster": [ref_to_record(ref) for ref in self.roster],
            "player_cap": self.player_cap,
            "where": self.where,
            "description": self.description,
            "signup_method": self.signup_method.value,
            "custom_signup": self.custom_signup,
            "when_mode": self.when_mode.value,
            "start_date": _iso(self.start_date),
            "start_time": _iso(self.start_time),
            "utc_offset_quarters": self.utc_offset_quarters,
            "timezone_name": self.timezone_name,
            "runtime": self.runtime,
            "duration_hours": self.duration_hours,
            "starts_at": _iso(self.starts_at),
            "hide_schedule": self.hide_schedule,
            "allow_signups_after_start": self.allow_signups_after_start,
            "disable_waitlist": self.disable_waitlist,
            "frequency": self.frequency.value,
            "weekdays": weekday_flags(self.weekdays),
            "monthly_mode": self.monthly_mode.value,
            "week_interval": self.week_interval,
            "clear_roster_on_recur": self.clear_roster_on_recur,
            "rescheduled": self.rescheduled,
            "reminder_minutes": self.reminder_minutes,
            "reminded": self.reminded,
            "message_id": self.message_id,
            "reminder_message_id": self.reminder_message_id,
            "owner_message_id": self.owner_message_id,
            "sequence": self.sequence,
            "pruned": self.pruned,
            "deleted": self.deleted,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

"""User-facing strings.

Only English ships here. Other languages plug in through another
``MessageCatalog``; unknown languages and keys fall back to English.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from ..ports import MessageCatalog

logger = logging.getLogger(__name__)

ENGLISH: Dict[str, str] = {
    "community_not_found": "Server not found!",
    "already_started": "This event has already started.",
    "full_no_waitlist": "This event is full and has no waitlist.",
    "missing_role": "You need the {roles} role to sign up for this event.",
    "already_signed_up": "You are already signed up for this event.",
    "update_failed": "Your signup could not be saved. Please try again.",
    "drop_outs_disabled": "Dropouts are not allowed",
    "event_not_found": "Event not found.",
    "announcement_failed": "The announcement for {title} could not be posted in {community}.",
    "or": "or",
    "dm_instructions": "Sign up instructions from {organizer} for {title}:\n{instructions}",
    "dm_waitlist": "You are currently number {position} on the waitlist.",
    "youre_in": "You're in! A spot opened up for {title} on {community}.",
}


def format_role_list(names: Sequence[str], conjunction: str = "or") -> str:
    quoted = [f"`{name}`" for name in names]
    if len(quoted) <= 1:
        return "".join(quoted)
    if len(quoted) == 2:
        return f"{quoted[0]} {conjunction} {quoted[1]}"
    return ", ".join(quoted[:-1]) + f", {conjunction} {quoted[-1]}"


class DefaultMessageCatalog(MessageCatalog):
    def __init__(self, translations: Optional[Mapping[str, Mapping[str, str]]] = None) -> None:
        self._translations: Dict[str, Mapping[str, str]] = {"en": ENGLISH}
        if translations:
            self._translations.update(translations)

    def text(self, key: str, lang: str = "en", **params: Any) -> str:
        table = self._translations.get(lang) or ENGLISH
        template = table.get(key) or ENGLISH.get(key)
        if template is None:
            logger.warning("No message for key %r in %s", key, lang)
            return key
        return template.format(**params) if params else template


__all__ = ["DefaultMessageCatalog", "ENGLISH", "format_role_list"]

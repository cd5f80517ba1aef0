from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from cloudcapsule.errors import Sealed, ValidationError

DEFAULT_FEELING = "happy"
DEFAULT_RATING = 0


@dataclass
class RedactedContent:
    letter: Optional[str] = None
    secret: Optional[str] = None
    feeling: Optional[str] = None
    rating: Optional[int] = None
    song: Optional[str] = None
    photo_refs: List[str] = field(default_factory=list)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> datetime:
    """
    Accepts ISO-8601 text ("2099-01-01", "2099-01-01 10:00", "...Z",
    "...+02:00") or a datetime and returns an aware UTC datetime.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if value is None or not str(value).strip():
        raise ValidationError("Title and open date are required")

    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid open date: {value!r}")
    return as_utc(parsed)


def compute_open_state(open_date: datetime, now: datetime) -> bool:
    # inclusive: the capsule opens at exactly open_date
    return as_utc(now) >= as_utc(open_date)


def authorize_mutation(open_date: datetime, now: datetime) -> None:
    if compute_open_state(open_date, now):
        raise Sealed()


def decode_photo_refs(raw: Any) -> List[str]:
    """
    Storage holds a JSON array; older rows may hold one bare URL.
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(ref) for ref in raw if ref]
    text = str(raw).strip()
    if not text:
        return []
    try:
        decoded = json.loads(text)
    except ValueError:
        return [text]
    if isinstance(decoded, list):
        return [str(ref) for ref in decoded if ref]
    if isinstance(decoded, str) and decoded:
        return [decoded]
    return []


def encode_photo_refs(refs: List[str]) -> str:
    return json.dumps(list(refs))


def redact_if_locked(content: Any, is_open: bool) -> RedactedContent:
    """
    Locked capsules expose none of their payload. Open capsules expose all of
    it, with the same defaults a freshly created capsule gets.

    ``content`` is a Content row or anything with the same attributes; None
    means the capsule has no content row.
    """
    if not is_open:
        return RedactedContent()
    if content is None:
        return RedactedContent(feeling=DEFAULT_FEELING, rating=DEFAULT_RATING)

    feeling = getattr(content, "feeling", None)
    rating = getattr(content, "rating", None)
    return RedactedContent(
        letter=getattr(content, "letter", None),
        secret=getattr(content, "secret", None),
        feeling=feeling if feeling else DEFAULT_FEELING,
        rating=rating if rating is not None else DEFAULT_RATING,
        song=getattr(content, "song", None),
        photo_refs=decode_photo_refs(getattr(content, "photo_refs", None)),
    )

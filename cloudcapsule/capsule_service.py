"""
Capsule access: every operation is scoped to one owner.

Ownership is part of each lookup predicate, so a capsule that exists but
belongs to someone else is reported exactly like one that does not exist.
Time is always passed in by the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session

from cloudcapsule import store
from cloudcapsule.errors import NotFound, ValidationError
from cloudcapsule.lifecycle import (
    DEFAULT_FEELING,
    DEFAULT_RATING,
    as_utc,
    authorize_mutation,
    compute_open_state,
    decode_photo_refs,
    encode_photo_refs,
    parse_timestamp,
    redact_if_locked,
)
from cloudcapsule.models import Capsule, Content
from cloudcapsule.schemas import CapsuleCreate, CapsuleRead, CapsuleUpdate, OpenedCapsule

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("letter", "secret", "feeling", "rating", "song")


def present(capsule: Capsule, content: Optional[Content], now: datetime) -> CapsuleRead:
    is_open = compute_open_state(capsule.open_date, now)
    visible = redact_if_locked(content, is_open)
    return CapsuleRead(
        id=capsule.id,
        user_id=capsule.user_id,
        title=capsule.title,
        open_date=as_utc(capsule.open_date),
        created_at=as_utc(capsule.created_at),
        is_open=is_open,
        letter=visible.letter,
        secret=visible.secret,
        feeling=visible.feeling,
        rating=visible.rating,
        song=visible.song,
        photo_refs=visible.photo_refs,
    )


def list_capsules(session: Session, user_id: int, now: datetime) -> List[CapsuleRead]:
    return [present(capsule, content, now) for capsule, content in store.list_owned(session, user_id)]


def get_capsule(session: Session, user_id: int, capsule_id: int, now: datetime) -> CapsuleRead:
    row = store.get_owned(session, capsule_id, user_id)
    if row is None:
        raise NotFound()
    return present(row[0], row[1], now)


def _require_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title and open date are required")
    return title.strip()


def create_capsule(session: Session, user_id: int, payload: CapsuleCreate, now: datetime) -> int:
    title = _require_title(payload.title)
    open_date = parse_timestamp(payload.open_date)

    capsule = Capsule(
        user_id=user_id,
        title=title,
        open_date=open_date,
        created_at=as_utc(now),
    )
    content = Content(
        capsule_id=0,
        letter=payload.letter or "",
        secret=payload.secret or "",
        feeling=payload.feeling or DEFAULT_FEELING,
        rating=payload.rating if payload.rating is not None else DEFAULT_RATING,
        song=payload.song or "",
        photo_refs=encode_photo_refs([ref for ref in payload.photo_refs if ref]),
    )
    capsule_id = store.insert_capsule_with_content(session, capsule, content)
    logger.info("capsule %s created for user %s", capsule_id, user_id)
    return capsule_id


def update_capsule(
    session: Session, user_id: int, capsule_id: int, payload: CapsuleUpdate, now: datetime
) -> CapsuleRead:
    title = _require_title(payload.title) if payload.title is not None else None
    open_date = parse_timestamp(payload.open_date) if payload.open_date is not None else None

    row = store.get_owned(session, capsule_id, user_id)
    if row is None:
        raise NotFound()
    capsule, content = row
    authorize_mutation(capsule.open_date, now)

    with store.transaction(session, "update capsule"):
        if title is not None:
            capsule.title = title
        if open_date is not None:
            capsule.open_date = open_date
        session.add(capsule)

        if content is None:
            content = Content(capsule_id=capsule.id)
        for name in CONTENT_FIELDS:
            value = getattr(payload, name)
            if value is not None:
                setattr(content, name, value)
        new_refs = [ref for ref in payload.photo_refs if ref]
        if new_refs:
            content.photo_refs = encode_photo_refs(decode_photo_refs(content.photo_refs) + new_refs)
        session.add(content)

    logger.info("capsule %s updated by user %s", capsule_id, user_id)
    session.refresh(capsule)
    session.refresh(content)
    return present(capsule, content, now)


def delete_capsule(session: Session, user_id: int, capsule_id: int) -> None:
    if store.delete_owned(session, capsule_id, user_id) == 0:
        raise NotFound()
    logger.info("capsule %s deleted by user %s", capsule_id, user_id)


def check_recently_opened(
    session: Session, user_id: int, now: datetime, only_unnotified: bool = False
) -> List[OpenedCapsule]:
    opened = store.list_opened(session, user_id, as_utc(now))
    if only_unnotified:
        seen = store.notified_capsule_ids(session, user_id)
        opened = [capsule for capsule in opened if capsule.id not in seen]

    result = [
        OpenedCapsule(id=capsule.id, title=capsule.title, open_date=as_utc(capsule.open_date))
        for capsule in opened
    ]
    if only_unnotified:
        store.record_notified(session, user_id, [item.id for item in result], as_utc(now))
    return result

"""
Persistence for capsules and their content.

No business rules live here: callers decide what may be read or written.
This module owns two things the rest of the code relies on:

    - transaction(): commit on success, rollback on any failure, and
      SQLAlchemy errors surfaced as StoreError
    - cascade rules: deleting a user removes its capsules, deleting a
      capsule removes its content and notification rows. These are explicit
      deletes so they hold on any backend, with or without FK enforcement.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from cloudcapsule.errors import StoreError
from cloudcapsule.models import Capsule, Content, OpenedNotification, User

logger = logging.getLogger(__name__)

CapsuleRow = Tuple[Capsule, Optional[Content]]


@contextmanager
def transaction(session: Session, action: str = "write") -> Iterator[Session]:
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("store: %s failed", action)
        raise StoreError(f"Failed to {action}") from e
    except Exception:
        session.rollback()
        raise


def insert_capsule_with_content(session: Session, capsule: Capsule, content: Content) -> int:
    with transaction(session, "create capsule"):
        session.add(capsule)
        session.flush()
        content.capsule_id = capsule.id
        session.add(content)
    return capsule.id


def _owned_query(user_id: int):
    return (
        select(Capsule, Content)
        .join(Content, Content.capsule_id == Capsule.id, isouter=True)
        .where(Capsule.user_id == user_id)
    )


def list_owned(session: Session, user_id: int) -> List[CapsuleRow]:
    query = _owned_query(user_id).order_by(Capsule.created_at.desc(), Capsule.id.desc())
    return [(capsule, content) for capsule, content in session.exec(query).all()]


def get_owned(session: Session, capsule_id: int, user_id: int) -> Optional[CapsuleRow]:
    row = session.exec(_owned_query(user_id).where(Capsule.id == capsule_id)).first()
    if row is None:
        return None
    capsule, content = row
    return capsule, content


def list_opened(session: Session, user_id: int, now: datetime) -> List[Capsule]:
    query = (
        select(Capsule)
        .where(Capsule.user_id == user_id, Capsule.open_date <= now)
        .order_by(Capsule.open_date.desc(), Capsule.id.desc())
    )
    return list(session.exec(query).all())


def notified_capsule_ids(session: Session, user_id: int) -> set:
    query = select(OpenedNotification.capsule_id).where(OpenedNotification.user_id == user_id)
    return set(session.exec(query).all())


def record_notified(session: Session, user_id: int, capsule_ids: List[int], now: datetime) -> None:
    """
    Idempotent. A capsule that is already recorded, including one a
    concurrent poll recorded after our read, is left as it is.
    """
    if not capsule_ids:
        return
    seen = notified_capsule_ids(session, user_id)
    for capsule_id in capsule_ids:
        if capsule_id in seen:
            continue
        session.add(OpenedNotification(user_id=user_id, capsule_id=capsule_id, notified_at=now))
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info("capsule %s already marked notified for user %s", capsule_id, user_id)
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("store: record notifications failed")
            raise StoreError("Failed to record notifications") from e
        seen.add(capsule_id)


def _delete_capsule_dependents(session: Session, capsule_ids: List[int]) -> None:
    if not capsule_ids:
        return
    session.execute(delete(Content).where(Content.capsule_id.in_(capsule_ids)))
    session.execute(delete(OpenedNotification).where(OpenedNotification.capsule_id.in_(capsule_ids)))


def delete_owned(session: Session, capsule_id: int, user_id: int) -> int:
    """Returns the number of capsule rows removed (0 or 1)."""
    with transaction(session, "delete capsule"):
        owned = session.exec(
            select(Capsule.id).where(Capsule.id == capsule_id, Capsule.user_id == user_id)
        ).all()
        _delete_capsule_dependents(session, list(owned))
        result = session.execute(
            delete(Capsule).where(Capsule.id == capsule_id, Capsule.user_id == user_id)
        )
    return result.rowcount or 0


def delete_user(session: Session, user_id: int) -> int:
    with transaction(session, "delete user"):
        capsule_ids = list(session.exec(select(Capsule.id).where(Capsule.user_id == user_id)).all())
        _delete_capsule_dependents(session, capsule_ids)
        session.execute(delete(OpenedNotification).where(OpenedNotification.user_id == user_id))
        session.execute(delete(Capsule).where(Capsule.user_id == user_id))
        result = session.execute(delete(User).where(User.id == user_id))
    return result.rowcount or 0

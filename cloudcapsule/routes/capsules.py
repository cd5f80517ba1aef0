from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from cloudcapsule import capsule_service
from cloudcapsule.database import get_session
from cloudcapsule.deps import get_current_identity, get_now
from cloudcapsule.schemas import (
    CapsuleCreate,
    CapsuleCreated,
    CapsuleRead,
    CapsuleUpdate,
    MessageResponse,
    OpenedCapsule,
)
from cloudcapsule.security import Identity

router = APIRouter(prefix="/api/capsules", tags=["capsules"])


@router.get("", response_model=List[CapsuleRead])
def list_capsules(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Newest first; content of locked capsules comes back empty."""
    return capsule_service.list_capsules(session, identity.id, now)


@router.post("", response_model=CapsuleCreated, status_code=201)
def create_capsule(
    payload: CapsuleCreate,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    capsule_id = capsule_service.create_capsule(session, identity.id, payload, now)
    return CapsuleCreated(id=capsule_id)


# declared before /{capsule_id} so the literal path wins
@router.get("/check-opened", response_model=List[OpenedCapsule])
def check_opened(
    only_new: bool = False,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """
    Capsules whose open date has passed, for client-side polling.
    With only_new=true each capsule is reported once.
    """
    return capsule_service.check_recently_opened(session, identity.id, now, only_unnotified=only_new)


@router.get("/{capsule_id}", response_model=CapsuleRead)
def get_capsule(
    capsule_id: int,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    return capsule_service.get_capsule(session, identity.id, capsule_id, now)


@router.put("/{capsule_id}", response_model=CapsuleRead)
def update_capsule(
    capsule_id: int,
    payload: CapsuleUpdate,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Only allowed while the capsule is still locked. New photo_refs are appended."""
    return capsule_service.update_capsule(session, identity.id, capsule_id, payload, now)


@router.delete("/{capsule_id}", response_model=MessageResponse)
def delete_capsule(
    capsule_id: int,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    capsule_service.delete_capsule(session, identity.id, capsule_id)
    return MessageResponse(message="Capsule deleted successfully")

import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, or_, select

from cloudcapsule import store
from cloudcapsule.config import Settings
from cloudcapsule.database import get_session
from cloudcapsule.deps import get_current_identity, get_now, get_settings
from cloudcapsule.errors import NotFound, StoreError, Unauthenticated, ValidationError
from cloudcapsule.lifecycle import as_utc
from cloudcapsule.models import User
from cloudcapsule.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserRead,
)
from cloudcapsule.security import (
    Identity,
    create_access_token,
    hash_password,
    new_reset_token,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

RESET_REPLY = "If your email exists, you will receive a reset link"


def _token_response(user: User, settings: Settings, now: datetime) -> TokenResponse:
    identity = Identity(id=user.id, username=user.username)
    token = create_access_token(identity, settings.secret_key, settings.token_expire_min, now=now)
    return TokenResponse(
        access_token=token,
        user=UserRead(id=user.id, username=user.username, email=user.email),
    )


def _hash(password: str) -> str:
    # bcrypt refuses passwords over 72 bytes
    try:
        return hash_password(password)
    except ValueError as e:
        raise ValidationError(str(e))


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
):
    """
    Register:
    - username, email and password are all required
    - duplicate username or email is rejected before hashing
    """
    username = payload.username.strip()
    email = payload.email.strip().lower()
    if not username or not email or not payload.password:
        raise ValidationError("Username, email, and password required")

    existing = session.exec(
        select(User).where(or_(User.email == email, User.username == username))
    ).first()
    if existing:
        raise ValidationError("User with this email or username already exists")

    user = User(
        username=username,
        email=email,
        password_hash=_hash(payload.password),
        created_at=as_utc(now),
    )
    session.add(user)

    try:
        session.commit()
        session.refresh(user)
    except IntegrityError:
        session.rollback()
        raise ValidationError("User with this email or username already exists")
    except Exception as e:
        session.rollback()
        logger.exception("register failed")
        raise StoreError("Failed to create user") from e

    logger.info("user %s registered", user.id)
    return _token_response(user, settings, now)


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
):
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise ValidationError("Email and password required")

    user = session.exec(select(User).where(User.email == email)).first()
    if not user:
        raise Unauthenticated("Invalid email or password")

    try:
        ok = verify_password(payload.password, user.password_hash)
    except ValueError as e:
        raise ValidationError(str(e))

    if not ok:
        logger.warning("failed login for user %s", user.id)
        raise Unauthenticated("Invalid email or password")

    return _token_response(user, settings, now)


@router.get("/me", response_model=UserRead)
def me(identity: Identity = Depends(get_current_identity), session: Session = Depends(get_session)):
    user = session.get(User, identity.id)
    return UserRead(id=user.id, username=user.username, email=user.email)


@router.delete("/me", response_model=MessageResponse)
def delete_account(identity: Identity = Depends(get_current_identity), session: Session = Depends(get_session)):
    """Removes the account together with every capsule it owns."""
    if store.delete_user(session, identity.id) == 0:
        raise NotFound("User not found")
    logger.info("user %s deleted", identity.id)
    return MessageResponse(message="Account deleted")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
):
    """
    Issues a reset token valid for settings.reset_expire_min minutes.
    The reply is identical whether or not the email is registered.
    """
    email = payload.email.strip().lower()
    if not email:
        raise ValidationError("Email required")

    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        with store.transaction(session, "issue reset token"):
            user.reset_token = new_reset_token()
            user.reset_token_expiry = as_utc(now + timedelta(minutes=settings.reset_expire_min))
            session.add(user)
        logger.info("reset token issued for user %s", user.id)

    return MessageResponse(message=RESET_REPLY)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    if not payload.token or not payload.password:
        raise ValidationError("Token and new password required")

    user = session.exec(select(User).where(User.reset_token == payload.token)).first()
    if user is None or user.reset_token_expiry is None or as_utc(user.reset_token_expiry) <= as_utc(now):
        raise ValidationError("Invalid or expired reset token")

    with store.transaction(session, "reset password"):
        user.password_hash = _hash(payload.password)
        user.reset_token = None
        user.reset_token_expiry = None
        session.add(user)

    logger.info("password reset for user %s", user.id)
    return MessageResponse(message="Password updated")

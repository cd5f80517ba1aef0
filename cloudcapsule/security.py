import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from cloudcapsule.errors import Unauthenticated

ALGO = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    id: int
    username: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(
    identity: Identity, secret_key: str, expire_min: int, now: Optional[datetime] = None
) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(identity.id),
        "username": identity.username,
        "exp": issued + timedelta(minutes=expire_min),
    }
    return jwt.encode(payload, secret_key, algorithm=ALGO)


def decode_access_token(token: str, secret_key: str) -> Identity:
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGO])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")

    sub = payload.get("sub")
    username = payload.get("username")
    if not sub or username is None:
        raise Unauthenticated("Invalid token")
    try:
        return Identity(id=int(sub), username=username)
    except ValueError:
        raise Unauthenticated("Invalid token")


def new_reset_token() -> str:
    return secrets.token_hex(32)

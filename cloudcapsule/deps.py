from datetime import datetime

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from cloudcapsule.blobstore import LocalBlobStore
from cloudcapsule.config import Settings
from cloudcapsule.database import get_session
from cloudcapsule.errors import Unauthenticated
from cloudcapsule.models import User
from cloudcapsule.security import Identity, decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_now(request: Request) -> datetime:
    return request.app.state.clock()


def get_blob_store(request: Request) -> LocalBlobStore:
    return request.app.state.blob_store


def get_current_identity(
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
) -> Identity:
    if not token:
        raise Unauthenticated("Access token required")
    identity = decode_access_token(token, settings.secret_key)
    # tokens outlive deleted accounts
    if session.get(User, identity.id) is None:
        raise Unauthenticated("Invalid token")
    return identity

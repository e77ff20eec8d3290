"""Shared API dependencies for authentication and service wiring."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from dealroom.core.security import decode_access_token
from dealroom.db.session import get_db
from dealroom.models import ActorRole
from dealroom.services import Actor, ConversationService
from dealroom.services.events import (
    EventEmitter,
    LoggingEventEmitter,
    PresenceOracle,
    RedisPresenceOracle,
)

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> Actor:
    """Build the calling ``Actor`` from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        Actor carrying the ``sub`` user id and ``role`` claim

    Raises:
        HTTPException: If the token is invalid or its claims are unusable
    """
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as err:
        raise _credentials_error() from err

    subject = payload.get("sub")
    role = payload.get("role")
    if subject is None or role is None:
        raise _credentials_error()
    try:
        return Actor(user_id=int(subject), role=ActorRole(role))
    except ValueError as err:
        raise _credentials_error("Unsupported token claims") from err


CurrentActorDep = Annotated[Actor, Depends(get_current_actor)]


def require_admin(actor: CurrentActorDep) -> Actor:
    """Reject non-admin callers."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


AdminDep = Annotated[Actor, Depends(require_admin)]


def get_event_emitter() -> EventEmitter:
    return LoggingEventEmitter()


@lru_cache(maxsize=1)
def get_presence_oracle() -> PresenceOracle:
    """Return the shared Redis-backed presence oracle."""
    return RedisPresenceOracle()


def get_conversation_service(
    db: SessionDep,
    emitter: Annotated[EventEmitter, Depends(get_event_emitter)],
    presence: Annotated[PresenceOracle, Depends(get_presence_oracle)],
) -> ConversationService:
    return ConversationService(db, emitter=emitter, presence=presence)


ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]

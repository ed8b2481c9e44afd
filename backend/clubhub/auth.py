"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens, a dependency
`get_current_user` that validates the bearer token and returns the
corresponding `User` from the database, and `require_member` for routes
only members may call (following clubs).

Token verification raises HTTPExceptions on failure so the helpers can be
used directly as route dependencies.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import get_engine
from . import models, repositories

bearer_scheme = HTTPBearer()


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The lookup runs in its own short-lived session so the request's
    session stays free for the service transaction.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    with Session(get_engine()) as session:
        user = repositories.UserRepository(session).get(user_id)
        if not user:
            raise HTTPException(status_code=401, detail='user not found')
        session.expunge(user)
        return user


def require_member(user: models.User = Depends(get_current_user)) -> models.User:
    """Allow only accounts with the `member` role."""
    if user.role != models.UserRole.MEMBER.value:
        raise HTTPException(status_code=403, detail='only members can follow clubs')
    return user

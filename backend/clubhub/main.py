"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Service errors are translated into
HTTP responses by a single exception handler.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- POST /follows/{club_id}
- GET /follows
- GET /clubs
- GET /clubs/{club_id}
- GET /health
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import models, services
from .auth import get_current_user, require_member
from .config import settings
from .database import dispose_db, get_session, init_db
from .errors import ServiceError
from .schemas import (
    ClubOut,
    ClubPage,
    FollowPage,
    FollowToggleOut,
    LoginIn,
    PaginationParams,
    RegisterIn,
    TokenOut,
    UserOut,
)

logger = logging.getLogger("clubhub.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield
    dispose_db()


app = FastAPI(title="Club Follow API", lifespan=lifespan)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def _pagination(page: Optional[int], limit: Optional[int], sort_by: Optional[str], sort_order: Optional[str]) -> PaginationParams:
    return PaginationParams(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


@app.post('/auth/register', response_model=UserOut)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a member or club account.

    Answers 409 when the username already exists.
    """
    user = services.AuthService(db).register(payload.username, payload.password, payload.role, payload.display_name)
    return UserOut(id=user.id, username=user.username, role=user.role, display_name=user.display_name)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id`, `username` and `role` and is
    signed using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.post('/follows/{club_id}', response_model=FollowToggleOut)
def toggle_follow(club_id: str, db: Session = Depends(get_session), user: models.User = Depends(require_member)):
    """Follow the club if the caller does not follow it yet, otherwise unfollow."""
    status = services.FollowService(db).toggle_follow(user.id, club_id)
    message = 'Followed successfully' if status.is_following else 'Unfollowed successfully'
    return FollowToggleOut(success=True, message=message, data=status)


@app.get('/follows', response_model=FollowPage)
def list_follows(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_member),
):
    """Page through the clubs the caller follows."""
    return services.FollowService(db).list_follows(user.id, _pagination(page, limit, sort_by, sort_order))


@app.get('/clubs', response_model=ClubPage)
def list_clubs(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """List clubs with `is_following` set for the caller."""
    return services.ClubService(db).list_clubs(user.id, _pagination(page, limit, sort_by, sort_order))


@app.get('/clubs/{club_id}', response_model=ClubOut)
def get_club(club_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ClubService(db).get_club(club_id, user.id)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}

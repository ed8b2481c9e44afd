"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services validate their inputs, run domain logic inside explicit
transactions and raise the errors defined in `errors`; controllers only
translate those errors into HTTP responses.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import AlreadyExists, InvalidInput, NotFound, StorageFault, TransientConflict, classify_db_error
from .schemas import ClubOut, ClubPage, FollowOut, FollowPage, FollowStatus, PaginationParams
from .utils.pagination import calculate_pagination, page_meta

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

FOLLOW_SORT_FIELDS = ("created_at", "updated_at", "id")
CLUB_SORT_FIELDS = ("created_at", "followers_count", "username", "id")
# largest value a 64-bit signed INTEGER column holds
MAX_ID = 2**63 - 1

logger = logging.getLogger("clubhub.follow")


def parse_id(value, field: str) -> int:
    """Return `value` as a positive integer id or raise `InvalidInput`.

    Accepts ints and ASCII digit strings (path parameters arrive as text).
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a positive integer id")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise InvalidInput(f"{field} must be a positive integer id")
    if parsed < 1 or parsed > MAX_ID:
        raise InvalidInput(f"{field} must be a positive integer id")
    return parsed


def _storage_error(exc: SQLAlchemyError):
    if isinstance(exc, DBAPIError):
        return classify_db_error(exc)
    return StorageFault("storage error")


def club_out(user: models.User, is_following: Optional[bool] = None) -> ClubOut:
    return ClubOut(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        followers_count=user.followers_count,
        is_following=is_following,
    )


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str, role: str = models.UserRole.MEMBER.value,
                 display_name: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password.

        Raises `AlreadyExists` when the username is taken.
        """
        if self.user_repo.get_by_username(username):
            raise AlreadyExists(f"username already registered: {username}")
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed, role=role, display_name=display_name)
        try:
            return self.user_repo.create(u)
        except IntegrityError as exc:
            # lost a race with a concurrent registration of the same name
            self.session.rollback()
            raise AlreadyExists(f"username already registered: {username}") from exc

    def authenticate(self, username: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return issue_token(user)


def issue_token(user: models.User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"user_id": user.id, "username": user.username, "role": user.role, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class FollowService:
    """Follow/unfollow toggling and follow listings.

    `toggle_follow` flips the edge for an (actor, target) pair and moves
    the target's `followers_count` by one in the same transaction, so the
    edge table and the counter never disagree once the transaction is
    over. Transient store conflicts re-run the whole transaction up to
    `max_attempts` times.
    """
    def __init__(self, session: Session, max_attempts: Optional[int] = None):
        self.session = session
        self.follows = repositories.FollowRepository(session)
        self.users = repositories.UserRepository(session)
        self.max_attempts = max_attempts or settings.FOLLOW_MAX_ATTEMPTS

    def toggle_follow(self, actor_id, target_id) -> FollowStatus:
        actor_id = parse_id(actor_id, "actor_id")
        target_id = parse_id(target_id, "target_id")
        for attempt in range(1, self.max_attempts + 1):
            try:
                status = self._toggle_once(actor_id, target_id)
            except TransientConflict as exc:
                if attempt >= self.max_attempts:
                    logger.error("follow toggle gave up actor=%s target=%s attempts=%s", actor_id, target_id, attempt)
                    raise StorageFault(f"follow toggle failed after {attempt} attempts") from exc
                logger.warning("follow conflict actor=%s target=%s attempt=%s/%s: %s",
                               actor_id, target_id, attempt, self.max_attempts, exc.message)
                continue
            logger.info("follow toggled actor=%s target=%s following=%s count=%s",
                        actor_id, target_id, status.is_following, status.follower_count)
            return status

    def _toggle_once(self, actor_id: int, target_id: int) -> FollowStatus:
        try:
            # commits on success, rolls back on any exception
            with self.session.begin():
                edge = self.follows.find(actor_id, target_id)
                if edge is not None:
                    self.follows.delete(edge)
                    delta, is_following = -1, False
                else:
                    self.follows.insert(actor_id, target_id)
                    delta, is_following = 1, True
                count = self.follows.increment_followers(target_id, delta)
                if count is None:
                    raise NotFound(f"club not found: {target_id}")
                if count < 0:
                    # counter had drifted below the live edge count
                    raise StorageFault(f"followers_count for club {target_id} would become negative")
                status = FollowStatus(target_id=target_id, is_following=is_following, follower_count=count)
        except SQLAlchemyError as exc:
            error = _storage_error(exc)
            if isinstance(error, StorageFault):
                logger.exception("follow toggle failed actor=%s target=%s", actor_id, target_id)
            raise error from exc
        return status

    def list_follows(self, actor_id, pagination: Optional[PaginationParams] = None) -> FollowPage:
        """Return one page of the actor's follow edges with each club expanded.

        `meta.total` comes from a separate count query, so it can drift
        from `data` if edges change between the two reads.
        """
        actor_id = parse_id(actor_id, "actor_id")
        p = calculate_pagination(pagination, FOLLOW_SORT_FIELDS)
        try:
            with self.session.begin():
                edges = self.follows.list_for_actor(actor_id, p.skip, p.limit, p.sort_by, p.sort_order)
                total = self.follows.count_for_actor(actor_id)
                clubs = self.users.get_clubs(e.target_id for e in edges)
                data = [
                    FollowOut(
                        id=e.id,
                        actor_id=e.actor_id,
                        target_id=e.target_id,
                        created_at=e.created_at,
                        updated_at=e.updated_at,
                        target=club_out(clubs[e.target_id], True) if e.target_id in clubs else None,
                    )
                    for e in edges
                ]
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return FollowPage(meta=page_meta(p, total), data=data)


class ClubService:
    """Read-side club directory with per-viewer follow flags."""
    def __init__(self, session: Session):
        self.session = session
        self.users = repositories.UserRepository(session)
        self.follows = repositories.FollowRepository(session)

    def list_clubs(self, viewer_id=None, pagination: Optional[PaginationParams] = None) -> ClubPage:
        viewer = parse_id(viewer_id, "viewer_id") if viewer_id is not None else None
        p = calculate_pagination(pagination, CLUB_SORT_FIELDS)
        try:
            with self.session.begin():
                clubs = self.users.list_clubs(p.skip, p.limit, p.sort_by, p.sort_order)
                total = self.users.count_clubs()
                followed = self.follows.followed_target_ids(viewer, (c.id for c in clubs)) if viewer else set()
                data = [club_out(c, (c.id in followed) if viewer else None) for c in clubs]
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return ClubPage(meta=page_meta(p, total), data=data)

    def get_club(self, club_id, viewer_id=None) -> ClubOut:
        club_id = parse_id(club_id, "club_id")
        viewer = parse_id(viewer_id, "viewer_id") if viewer_id is not None else None
        try:
            with self.session.begin():
                club = self.users.get_club(club_id)
                if club is None:
                    raise NotFound(f"club not found: {club_id}")
                is_following = None
                if viewer:
                    is_following = self.follows.find(viewer, club_id) is not None
                out = club_out(club, is_following)
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return out

    def recount_followers(self, club_id) -> Tuple[int, int]:
        """Return `(stored followers_count, live edge count)` for a club.

        Read-only; the two numbers differ only if the counter invariant
        has been broken.
        """
        club_id = parse_id(club_id, "club_id")
        try:
            with self.session.begin():
                club = self.users.get_club(club_id)
                if club is None:
                    raise NotFound(f"club not found: {club_id}")
                return club.followers_count, self.follows.count_for_target(club_id)
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc

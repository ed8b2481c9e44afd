"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users and
follow edges). `UserRepository.create` commits on its own; the
`FollowRepository` write helpers only flush, because the follow service
owns the transaction they run in.
"""

from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, update
from sqlmodel import Session, select

from . import models


def _order(column, direction: str):
    return column.asc() if direction == "asc" else column.desc()


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_club(self, club_id: int) -> Optional[models.User]:
        stmt = select(models.User).where(
            models.User.id == club_id,
            models.User.role == models.UserRole.CLUB.value,
        )
        return self.session.exec(stmt).first()

    def get_clubs(self, club_ids: Iterable[int]) -> Dict[int, models.User]:
        """Return clubs keyed by id for the given ids (missing ids are absent)."""
        ids = list(set(club_ids))
        if not ids:
            return {}
        stmt = select(models.User).where(
            models.User.id.in_(ids),
            models.User.role == models.UserRole.CLUB.value,
        )
        return {u.id: u for u in self.session.exec(stmt).all()}

    def list_clubs(self, skip: int, limit: int, sort_by: str, sort_order: str) -> List[models.User]:
        column = getattr(models.User, sort_by)
        stmt = (
            select(models.User)
            .where(models.User.role == models.UserRole.CLUB.value)
            .order_by(_order(column, sort_order), _order(models.User.id, sort_order))
            .offset(skip)
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def count_clubs(self) -> int:
        stmt = select(func.count()).select_from(models.User).where(models.User.role == models.UserRole.CLUB.value)
        return self.session.exec(stmt).one()


class FollowRepository:
    """Follow edge queries plus the atomic follower counter update."""
    def __init__(self, session: Session):
        self.session = session

    def find(self, actor_id: int, target_id: int) -> Optional[models.Follow]:
        stmt = select(models.Follow).where(
            models.Follow.actor_id == actor_id,
            models.Follow.target_id == target_id,
        )
        return self.session.exec(stmt).first()

    def insert(self, actor_id: int, target_id: int) -> models.Follow:
        """Add a new edge and flush so constraint violations surface here."""
        now = models.utcnow()
        edge = models.Follow(actor_id=actor_id, target_id=target_id, created_at=now, updated_at=now)
        self.session.add(edge)
        self.session.flush()
        return edge

    def delete(self, edge: models.Follow) -> None:
        self.session.delete(edge)
        self.session.flush()

    def increment_followers(self, target_id: int, delta: int) -> Optional[int]:
        """Atomically add `delta` to a club's follower count.

        Issues a single ``UPDATE ... SET followers_count = followers_count + delta``
        and returns the updated value, or `None` when no club row matched.
        """
        stmt = (
            update(models.User)
            .where(
                models.User.id == target_id,
                models.User.role == models.UserRole.CLUB.value,
            )
            .values(followers_count=models.User.followers_count + delta)
            .returning(models.User.followers_count)
        )
        return self.session.exec(stmt).scalar_one_or_none()

    def list_for_actor(self, actor_id: int, skip: int, limit: int, sort_by: str, sort_order: str) -> List[models.Follow]:
        """Return one page of an actor's edges; `id` breaks ties so pages never overlap."""
        column = getattr(models.Follow, sort_by)
        stmt = (
            select(models.Follow)
            .where(models.Follow.actor_id == actor_id)
            .order_by(_order(column, sort_order), _order(models.Follow.id, sort_order))
            .offset(skip)
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def count_for_actor(self, actor_id: int) -> int:
        stmt = select(func.count()).select_from(models.Follow).where(models.Follow.actor_id == actor_id)
        return self.session.exec(stmt).one()

    def count_for_target(self, target_id: int) -> int:
        stmt = select(func.count()).select_from(models.Follow).where(models.Follow.target_id == target_id)
        return self.session.exec(stmt).one()

    def followed_target_ids(self, actor_id: int, target_ids: Iterable[int]) -> Set[int]:
        """Subset of `target_ids` the actor currently follows."""
        ids = list(set(target_ids))
        if not ids:
            return set()
        stmt = select(models.Follow.target_id).where(
            models.Follow.actor_id == actor_id,
            models.Follow.target_id.in_(ids),
        )
        return set(self.session.exec(stmt).all())

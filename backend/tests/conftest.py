import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from clubhub import database, models, repositories, services
from clubhub.main import app


@pytest.fixture()
def engine(tmp_path):
    """Fresh SQLite database file for each test."""
    database.dispose_db()
    eng = database.init_db(f"sqlite:///{tmp_path / 'test.db'}")
    yield eng
    database.dispose_db()


@pytest.fixture()
def client(engine):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(engine):
    """Create an account and return its id."""
    def _make(username, role="member", display_name=None, password="pass123"):
        with Session(engine) as session:
            user = services.AuthService(session).register(username, password, role, display_name)
            return user.id
    return _make


@pytest.fixture()
def make_clubs(engine):
    """Bulk-insert clubs without hashing passwords; returns their ids in order."""
    def _make(count, prefix="club"):
        with Session(engine) as session:
            clubs = [
                models.User(username=f"{prefix}{i}", password_hash="x", role=models.UserRole.CLUB.value)
                for i in range(count)
            ]
            session.add_all(clubs)
            session.commit()
            return [c.id for c in clubs]
    return _make


@pytest.fixture()
def toggle(engine):
    """Run one follow toggle in its own session, like a single request."""
    def _toggle(actor_id, target_id):
        with Session(engine) as session:
            return services.FollowService(session).toggle_follow(actor_id, target_id)
    return _toggle


@pytest.fixture()
def counts(engine):
    """Return (stored followers_count, live edge count) for a club."""
    def _counts(club_id):
        with Session(engine) as session:
            return services.ClubService(session).recount_followers(club_id)
    return _counts


@pytest.fixture()
def edge_exists(engine):
    def _exists(actor_id, target_id):
        with Session(engine) as session:
            return repositories.FollowRepository(session).find(actor_id, target_id) is not None
    return _exists

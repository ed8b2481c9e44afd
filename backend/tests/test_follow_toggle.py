import pytest
from sqlalchemy import update
from sqlmodel import Session, select

from clubhub import models, repositories
from clubhub.errors import InvalidInput, NotFound, StorageFault


def test_follow_then_unfollow_scenario(make_user, toggle, edge_exists):
    actor = make_user("alice")
    club = make_user("chess", role="club")

    first = toggle(actor, club)
    assert first.target_id == club
    assert first.is_following is True
    assert first.follower_count == 1
    assert edge_exists(actor, club)

    second = toggle(actor, club)
    assert second.is_following is False
    assert second.follower_count == 0
    assert not edge_exists(actor, club)

    with pytest.raises(NotFound):
        toggle(actor, 99999)
    assert not edge_exists(actor, 99999)


def test_toggle_twice_restores_original_state(make_user, toggle, counts):
    club = make_user("robotics", role="club")
    members = [make_user(f"m{i}") for i in range(3)]
    for m in members[:2]:
        toggle(m, club)
    before = counts(club)

    toggle(members[2], club)
    status = toggle(members[2], club)

    assert status.is_following is False
    assert counts(club) == before == (2, 2)


def test_counter_matches_edges_after_mixed_sequence(make_user, toggle, counts):
    clubs = [make_user(f"club{i}", role="club") for i in range(3)]
    members = [make_user(f"member{i}") for i in range(4)]
    sequence = [
        (0, 0), (1, 0), (2, 0), (0, 1), (1, 0), (3, 2),
        (0, 0), (2, 1), (3, 0), (1, 0), (2, 2), (3, 2),
    ]
    for m, c in sequence:
        toggle(members[m], clubs[c])

    for club in clubs:
        stored, live = counts(club)
        assert stored == live
    assert counts(clubs[0]) == (3, 3)
    assert counts(clubs[1]) == (2, 2)
    assert counts(clubs[2]) == (1, 1)


def test_string_ids_are_accepted(make_user, toggle):
    actor = make_user("dana")
    club = make_user("drama", role="club")
    status = toggle(str(actor), f" {club} ")
    assert status.target_id == club
    assert status.is_following is True


@pytest.mark.parametrize("bad", ["", "abc", "0", "-3", "1.5", "١٢", "99999999999999999999999", 2**63, 0, -1, True, None, 2.0])
def test_invalid_ids_rejected_before_store_access(make_user, toggle, monkeypatch, bad):
    actor = make_user("erin")

    def _boom(*_args, **_kwargs):
        raise AssertionError("store must not be touched")

    monkeypatch.setattr(repositories.FollowRepository, "find", _boom)
    with pytest.raises(InvalidInput):
        toggle(actor, bad)
    with pytest.raises(InvalidInput):
        toggle(bad, actor)


def test_member_target_is_not_found_and_leaves_no_edge(make_user, toggle, edge_exists, engine):
    actor = make_user("frank")
    other_member = make_user("gina")

    with pytest.raises(NotFound):
        toggle(actor, other_member)

    assert not edge_exists(actor, other_member)
    with Session(engine) as session:
        assert session.get(models.User, other_member).followers_count == 0


def test_missing_target_rolls_back_existing_edge_removal(make_user, toggle, edge_exists, engine):
    actor = make_user("hank")
    club = make_user("closing", role="club")
    toggle(actor, club)
    with Session(engine) as session:
        session.delete(session.get(models.User, club))
        session.commit()

    with pytest.raises(NotFound):
        toggle(actor, club)

    # the delete ran before the counter step failed; rollback restores the row
    assert edge_exists(actor, club)


def test_new_edge_timestamps(make_user, toggle, engine):
    actor = make_user("ivy")
    club = make_user("photo", role="club")
    toggle(actor, club)
    with Session(engine) as session:
        edge = session.exec(select(models.Follow).where(models.Follow.actor_id == actor)).one()
        assert edge.target_id == club
        assert edge.created_at == edge.updated_at


def test_largest_store_id_is_still_accepted(make_user, toggle):
    actor = make_user("jo")
    with pytest.raises(NotFound):
        toggle(actor, 2**63 - 1)


def test_drifted_counter_never_goes_negative(make_user, toggle, counts, edge_exists, engine):
    actor = make_user("kim")
    club = make_user("chess", role="club")
    toggle(actor, club)
    with Session(engine) as session:
        session.exec(update(models.User).where(models.User.id == club).values(followers_count=0))
        session.commit()

    with pytest.raises(StorageFault):
        toggle(actor, club)

    # the unfollow was rolled back with the rejected counter change
    assert edge_exists(actor, club)
    assert counts(club) == (0, 1)

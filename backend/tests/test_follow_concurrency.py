from concurrent.futures import ThreadPoolExecutor
import threading

from sqlmodel import Session, select

from clubhub import models


def _run_concurrently(fn, args_list):
    barrier = threading.Barrier(len(args_list))

    def _call(args):
        barrier.wait()
        return fn(*args)

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(_call, args_list))


def test_distinct_actors_following_same_club_lose_no_updates(make_user, toggle, counts):
    club = make_user("orchestra", role="club")
    actors = [make_user(f"fan{i}") for i in range(8)]

    results = _run_concurrently(toggle, [(a, club) for a in actors])

    assert all(r.is_following for r in results)
    assert sorted(r.follower_count for r in results) == list(range(1, len(actors) + 1))
    assert counts(club) == (len(actors), len(actors))


def test_concurrent_toggles_on_same_pair_serialize(make_user, toggle, counts, engine):
    club = make_user("debate", role="club")
    actor = make_user("gil")

    results = _run_concurrently(toggle, [(actor, club)] * 6)

    # an even number of serialized toggles ends unfollowed, alternating on the way
    assert sorted(r.is_following for r in results) == [False] * 3 + [True] * 3
    assert counts(club) == (0, 0)
    with Session(engine) as session:
        edges = session.exec(select(models.Follow).where(models.Follow.actor_id == actor)).all()
        assert edges == []


def test_mixed_follow_and_unfollow_traffic_keeps_counter_exact(make_user, toggle, counts):
    club = make_user("hiking", role="club")
    actors = [make_user(f"walker{i}") for i in range(6)]
    for a in actors[:3]:
        toggle(a, club)

    # first three unfollow, last three follow, all at once
    _run_concurrently(toggle, [(a, club) for a in actors])

    assert counts(club) == (3, 3)

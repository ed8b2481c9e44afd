"""CLI script comparing each club's stored follower count with its live follow edges.
Usage: python scripts/check_follower_counts.py [--database-url URL]

Read-only: mismatches are reported, never repaired. Exits with status 1
when any club disagrees.
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `clubhub` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from clubhub import database, services
from clubhub.config import settings
from clubhub.schemas import PaginationParams


def main(database_url: Optional[str] = None) -> int:
    """Check every club and return the number of mismatches found."""
    engine = database.init_db(database_url)
    mismatches = 0
    checked = 0
    page = 1
    while True:
        with Session(engine) as session:
            listing = services.ClubService(session).list_clubs(
                pagination=PaginationParams(page=page, limit=settings.MAX_PAGE_LIMIT, sort_by='id', sort_order='asc')
            )
        for club in listing.data:
            with Session(engine) as session:
                stored, live = services.ClubService(session).recount_followers(club.id)
            checked += 1
            if stored != live:
                mismatches += 1
                print(f'club {club.id} ({club.username}): followers_count={stored} edges={live}')
        if page >= listing.meta.total_pages:
            break
        page += 1
    print(f'Checked {checked} clubs, {mismatches} mismatched')
    return mismatches


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--database-url', help='Database URL (defaults to DATABASE_URL)')
    args = parser.parse_args()
    try:
        found = main(args.database_url)
    finally:
        database.dispose_db()
    sys.exit(1 if found else 0)

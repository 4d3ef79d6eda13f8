"""
Load or wipe the sample tours, users and reviews.

    python -m tourbook.scripts.import_dev_data --import [--data-dir backend/dev-data]
    python -m tourbook.scripts.import_dev_data --delete
"""

import argparse
import asyncio
import json
from pathlib import Path

from sqlalchemy import delete, text

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger, setup_logging
from tourbook.core.security import hash_password
from tourbook.db.base import Base
from tourbook.db.session import build_engine, build_sessionmaker
from tourbook.models import Booking, Review, Tour, User, tour_guides
from tourbook.repositories.reviews import ReviewRepository
from tourbook.repositories.tours import TourRepository

logger = get_logger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "dev-data"


def _load(data_dir: Path, name: str) -> list[dict]:
    with open(data_dir / f"{name}.json", encoding="utf-8") as f:
        return json.load(f)


async def import_data(session, data_dir: Path) -> None:
    # Users first: tours reference guides, reviews reference both
    for user in _load(data_dir, "users"):
        session.add(User(**{**user, "email": user["email"].lower(), "password": hash_password(user["password"])}))
    await session.flush()

    tours = TourRepository(session)
    for tour in _load(data_dir, "tours"):
        await tours.create(tour)

    reviews = ReviewRepository(session)
    touched = set()
    for review in _load(data_dir, "reviews"):
        session.add(Review(review=review["review"], rating=review["rating"], tour_id=review["tour"], user_id=review["user"]))
        touched.add(review["tour"])
    await session.flush()
    for tour_id in sorted(touched):
        await reviews.calc_average_ratings(tour_id)


async def reset_sequences(session) -> None:
    """Move PostgreSQL id sequences past the explicit ids in the sample data."""
    if session.bind.dialect.name != "postgresql":
        return
    for table in ("users", "tours"):
        await session.execute(
            text(f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), (SELECT MAX(id) FROM {table}))")
        )


async def delete_data(session) -> None:
    for table in (Booking.__table__, Review.__table__, tour_guides, Tour.__table__, User.__table__):
        await session.execute(delete(table))


async def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Import or delete development data")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="do_import", action="store_true", help="load the sample data")
    action.add_argument("--delete", dest="do_delete", action="store_true", help="delete all data")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR)
    parser.add_argument("--create-tables", action="store_true", help="create missing tables first")
    args = parser.parse_args(argv)

    setup_logging()
    engine = build_engine(get_settings())
    session_factory = build_sessionmaker(engine)
    try:
        if args.create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as session:
            if args.do_import:
                await import_data(session, args.data_dir)
                await reset_sequences(session)
            else:
                await delete_data(session)
            await session.commit()
        logger.info("dev_data_done", action="import" if args.do_import else "delete")
    finally:
        await engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""
Backfill tailors.location_point from latitude/longitude.

Safe to re-run: tailors that already have a point are skipped. Meant to be
run by hand after bulk imports or on a schedule.

Exit codes: 0 success (warnings included), 1 failed / misconfigured,
75 timed out or store unreachable (retry later).
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from .cache import SearchCache
from .config import DATABASE_URL, DB_STATEMENT_TIMEOUT_SECONDS, LOG_LEVEL
from .db import Database
from .errors import LocationSyncError, StoreTimeout
from .location_sync import SyncResult, count_pending, sync_location_points
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TEMPFAIL = 75


async def run(database: Database, cache: SearchCache, dry_run: bool = False) -> SyncResult:
    database.open()
    try:
        async with database.session() as session:
            if dry_run:
                pending = await count_pending(session)
                logger.info("%d tailor(s) waiting for a location point", pending)
                return SyncResult(updated_count=0)
            result = await sync_location_points(session)

        # cached search pages predate the new points
        if result.updated_count:
            await cache.invalidate()
        return result
    finally:
        await cache.close()
        await database.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill tailor location points for proximity search")
    parser.add_argument(
        "--database-url",
        default=DATABASE_URL,
        help="SQLAlchemy async URL (default: $TAILOR_DB)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DB_STATEMENT_TIMEOUT_SECONDS,
        help="Statement timeout in seconds (default: $DB_STATEMENT_TIMEOUT_SECONDS)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many tailors would be updated",
    )
    args = parser.parse_args(argv)

    configure_logging(LOG_LEVEL)

    if not args.database_url:
        logger.error("no database configured: pass --database-url or set TAILOR_DB")
        return EXIT_FAILED

    database = Database(url=args.database_url, statement_timeout_seconds=args.timeout)

    logger.info("starting location backfill")
    try:
        result = asyncio.run(run(database, SearchCache(), dry_run=args.dry_run))
    except StoreTimeout as e:
        logger.error("location backfill timed out, retry later: %s", e)
        return EXIT_TEMPFAIL
    except OSError as e:
        logger.error("tailor store unreachable, retry later: %s", e)
        return EXIT_TEMPFAIL
    except (LocationSyncError, SQLAlchemyError) as e:
        logger.error("location backfill failed: %s", e)
        return EXIT_FAILED

    if result.warnings:
        logger.info("location backfill finished with %d warning(s)", len(result.warnings))
    logger.info("location backfill completed, %d tailor(s) updated", result.updated_count)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

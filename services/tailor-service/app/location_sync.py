import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import LocationSyncError, StoreTimeout, translate_store_error
from .geo import point_from_columns
from .models import Tailor

logger = logging.getLogger(__name__)

POSTGIS_EXTENSION = "postgis"


@dataclass
class CapabilityCheck:
    enabled: bool
    warning: str | None = None


@dataclass
class SyncResult:
    updated_count: int
    warnings: list[str] = field(default_factory=list)


async def _extension_installed(session: AsyncSession) -> bool:
    result = await session.execute(
        text("SELECT 1 FROM pg_extension WHERE extname = :name"),
        {"name": POSTGIS_EXTENSION},
    )
    return result.scalar_one_or_none() is not None


async def ensure_postgis(session: AsyncSession) -> CapabilityCheck:
    """
    Make sure the postgis extension is available before writing geography values.

    Managed databases often refuse CREATE EXTENSION to non-superusers while
    having postgis enabled already, so a refusal is reported as a warning and
    the caller carries on.
    """
    if await _extension_installed(session):
        return CapabilityCheck(enabled=True)

    try:
        async with session.begin_nested():
            await session.execute(text(f"CREATE EXTENSION IF NOT EXISTS {POSTGIS_EXTENSION}"))
    except DBAPIError as e:
        warning = f"could not enable {POSTGIS_EXTENSION} extension, assuming it is managed elsewhere: {e.orig}"
        logger.warning(warning)
        return CapabilityCheck(enabled=False, warning=warning)

    logger.info("%s extension enabled", POSTGIS_EXTENSION)
    return CapabilityCheck(enabled=True)


def build_sync_statement(tailor_ids=None):
    stmt = (
        update(Tailor)
        .where(
            Tailor.latitude.is_not(None),
            Tailor.longitude.is_not(None),
            Tailor.location_point.is_(None),
        )
        .values(location_point=point_from_columns(Tailor.longitude, Tailor.latitude))
        .execution_options(synchronize_session=False)
    )
    if tailor_ids is not None:
        stmt = stmt.where(Tailor.id.in_(list(tailor_ids)))
    return stmt


async def count_pending(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Tailor).where(
            Tailor.latitude.is_not(None),
            Tailor.longitude.is_not(None),
            Tailor.location_point.is_(None),
        )
    )
    return int(result.scalar_one())


async def sync_location_points(
    session: AsyncSession,
    tailor_ids=None,
    commit: bool = True,
) -> SyncResult:
    """
    Derive location_point for every tailor that has both coordinates but no point.

    Idempotent: rows that already carry a point are not touched, so a second run
    reports 0. The update runs as one statement in one transaction; on failure it
    is rolled back and LocationSyncError (or StoreTimeout) is raised.

    With commit=False the caller owns the transaction (used by the write routes
    to derive the point together with the coordinate change).
    """
    warnings: list[str] = []

    try:
        capability = await ensure_postgis(session)
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        await session.rollback()
        raise _sync_failure(e) from e

    if capability.warning:
        warnings.append(capability.warning)

    try:
        result = await session.execute(build_sync_statement(tailor_ids))
        if commit:
            await session.commit()
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        await session.rollback()
        raise _sync_failure(e) from e

    updated = result.rowcount or 0
    logger.info("location sync updated %d tailor(s)", updated)
    return SyncResult(updated_count=updated, warnings=warnings)


def _sync_failure(e: Exception) -> Exception:
    translated = translate_store_error(e)
    if isinstance(translated, StoreTimeout):
        logger.warning("location sync timed out: %s", translated)
        return translated
    logger.error("location sync failed: %s", e)
    return LocationSyncError(str(getattr(e, "orig", None) or e))

import asyncio

from sqlalchemy import exc as sa_exc

QUERY_CANCELED_SQLSTATE = "57014"


class LocationSyncError(Exception):
    """Bulk coordinate-to-point conversion failed; nothing was written."""


class StoreTimeout(Exception):
    """A store round-trip exceeded its bound. Safe to retry."""


def _is_timeout(e: BaseException) -> bool:
    if isinstance(e, (asyncio.TimeoutError, TimeoutError, sa_exc.TimeoutError)):
        return True

    if isinstance(e, sa_exc.DBAPIError):
        orig = e.orig
        if getattr(orig, "sqlstate", None) == QUERY_CANCELED_SQLSTATE:
            return True
        if isinstance(getattr(orig, "__cause__", None), (asyncio.TimeoutError, TimeoutError)):
            return True

    return False


def translate_store_error(e: BaseException) -> BaseException:
    """
    Map driver/pool timeouts to StoreTimeout; anything else is returned unchanged
    so the caller can re-raise it.
    """
    if _is_timeout(e):
        return StoreTimeout(str(e) or e.__class__.__name__)
    return e

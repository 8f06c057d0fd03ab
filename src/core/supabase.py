"""Supabase client for the storefront tables and database functions."""

import logging
from functools import lru_cache
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions

from src.core.config import get_settings

logger = logging.getLogger(__name__)

STORE_TABLES = ("products", "cart_items", "orders", "coupons", "notifications")

# SQLSTATE codes surfaced by place_order
UNIQUE_VIOLATION = "23505"
RAISED_EXCEPTION = "P0001"


@lru_cache
def get_supabase_client() -> Client:
    """Get the cached service-role client.

    The secret key bypasses row level security, so callers must have
    authorized the shopper or administrator before touching a table.
    """
    settings = get_settings()
    options = SyncClientOptions(
        postgrest_client_timeout=settings.supabase_timeout_seconds,
        auto_refresh_token=False,
        persist_session=False,
    )
    return create_client(settings.supabase_url, settings.supabase_secret_key, options=options)


def raised_reason(error: APIError) -> tuple[str, str] | None:
    """Split a ``raise exception 'reason:detail'`` from a database function.

    Returns:
        (reason, detail), or None when the error was not raised that way.
    """
    if error.code != RAISED_EXCEPTION:
        return None
    reason, sep, detail = (error.message or "").partition(":")
    if not sep or not reason or " " in reason:
        return None
    return reason, detail.strip()


async def check_database_connection() -> dict[str, Any]:
    """Check that every storefront table answers a query.

    Returns:
        dict: 'healthy' boolean and, on failure, an 'error' naming the table.
    """
    client = get_supabase_client()
    for table in STORE_TABLES:
        try:
            client.table(table).select("id").limit(1).execute()
        except Exception as e:
            logger.warning("Database check failed on %s: %s", table, e)
            return {"healthy": False, "error": str(e), "table": table}
    return {"healthy": True}

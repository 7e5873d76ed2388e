import logging
import time

from supabase import Client, create_client
from supabase.client import ClientOptions

from catalog_sync.config.config import Config

logger = logging.getLogger(__name__)

_supabase_client: Client | None = None
_last_error: Exception | None = None  # Track last initialization error
_last_error_time: float = 0  # Timestamp of last error
ERROR_CACHE_TTL = 60.0  # Retry after 60 seconds


def get_supabase_client() -> Client:
    """
    Return the shared Supabase client, creating it on first use.

    A failed initialization is remembered for ERROR_CACHE_TTL seconds so a
    misconfigured deployment does not hammer the database on every call.

    Raises:
        RuntimeError: If the client cannot be created or the connection test fails
    """
    global _supabase_client, _last_error, _last_error_time

    if _supabase_client is not None:
        return _supabase_client

    # Check if error is stale (>60s old), retry if so
    if _last_error is not None:
        time_since_error = time.time() - _last_error_time
        if time_since_error < ERROR_CACHE_TTL:
            retry_in = int(ERROR_CACHE_TTL - time_since_error)
            logger.debug(
                f"Supabase client unavailable (retry in {retry_in}s). "
                f"Last error: {_last_error}"
            )
            raise RuntimeError(
                f"Supabase unavailable (retry in {retry_in}s): {_last_error}"
            ) from _last_error
        else:
            logger.info("Error cache expired, retrying Supabase initialization...")
            _last_error = None
            _last_error_time = 0

    try:
        if not Config.SUPABASE_URL:
            raise RuntimeError(
                "SUPABASE_URL environment variable is not set. "
                "Please configure it with your Supabase project URL (e.g., https://xxxxx.supabase.co)"
            )
        if not Config.SUPABASE_URL.startswith(("http://", "https://")):
            raise RuntimeError(
                f"SUPABASE_URL must start with 'http://' or 'https://'. "
                f"Current value: '{Config.SUPABASE_URL}'. "
                f"Expected: 'https://{Config.SUPABASE_URL}'"
            )
        if not Config.SUPABASE_KEY:
            raise RuntimeError("SUPABASE_KEY environment variable is not set")

        masked_url = Config.SUPABASE_URL[:30] + "..." if len(Config.SUPABASE_URL) > 30 else Config.SUPABASE_URL
        logger.info(f"Initializing Supabase client with URL: {masked_url}")

        client = create_client(
            supabase_url=Config.SUPABASE_URL,
            supabase_key=Config.SUPABASE_KEY,
            options=ClientOptions(
                postgrest_client_timeout=45,
                schema="public",
                headers={"X-Client-Info": "catalog-sync/1.0"},
            ),
        )

        _test_connection_internal(client)
        _supabase_client = client
        return _supabase_client

    except Exception as e:
        _last_error = e
        _last_error_time = time.time()
        logger.error(
            f"❌ Failed to initialize Supabase client: {type(e).__name__}: {e}",
            exc_info=True,
        )
        raise RuntimeError(f"Supabase client initialization failed: {e}") from e


def _test_connection_internal(client: Client) -> bool:
    """
    Test database connection using the provided client directly.

    Takes the client as a parameter so it can run before the client is cached.

    Raises:
        RuntimeError: If connection test fails
    """
    try:
        client.table("models").select("id").limit(1).execute()
        logger.info("✅ Database connection test successful")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {type(e).__name__}: {e}")
        raise RuntimeError(f"Database connection failed: {e}") from e


def get_initialization_status() -> dict:
    """Report whether the shared client is initialized and the last error, if any."""
    return {
        "initialized": _supabase_client is not None,
        "has_error": _last_error is not None,
        "error_message": str(_last_error) if _last_error else None,
        "error_type": type(_last_error).__name__ if _last_error else None,
    }


def reset_supabase_client() -> bool:
    """
    Drop the cached client and any cached initialization error.

    Returns:
        bool: True if a cached client was dropped
    """
    global _supabase_client, _last_error, _last_error_time

    had_client = _supabase_client is not None
    _supabase_client = None
    _last_error = None
    _last_error_time = 0
    if had_client:
        logger.info("🔄 Supabase client reset - next call will create a fresh connection")
    return had_client

import logging
import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from catalog_sync.config import Config

logger = logging.getLogger(__name__)

ERROR_INVALID_ADMIN_API_KEY = "Invalid admin API key"


async def get_admin_key(credentials: HTTPAuthorizationCredentials = Depends(HTTPBearer())) -> str:
    """
    Validate the admin API key sent as a bearer token.

    Uses constant-time comparison against Config.ADMIN_API_KEY.

    Raises:
        HTTPException: 401 if the key is missing, not configured or wrong
    """
    admin_key = credentials.credentials
    expected_key = Config.ADMIN_API_KEY

    if not expected_key:
        logger.error("ADMIN_API_KEY environment variable is not configured")
        raise HTTPException(status_code=401, detail=ERROR_INVALID_ADMIN_API_KEY)

    if not admin_key or not secrets.compare_digest(admin_key.encode(), expected_key.encode()):
        logger.warning(f"Invalid admin key attempt with key prefix: {admin_key[:4]}...")
        raise HTTPException(status_code=401, detail=ERROR_INVALID_ADMIN_API_KEY)

    return admin_key

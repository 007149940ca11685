from typing import Optional
import logging

from jose import JWTError, jwt

from config import ApplicationConfig

logger = logging.getLogger(__name__)


def verify_jwt(token: str) -> Optional[dict]:
    """
    Verify and decode a gallery access token

    Args:
        token: JWT token string

    Returns:
        Decoded payload dict (user id under "user_id" or "sub") or None if invalid
    """
    try:
        payload = jwt.decode(
            token, ApplicationConfig.JWT_SECRET, algorithms=["HS256"]
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {type(e).__name__} - {str(e)}")
        return None

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        logger.warning("JWT verification failed: token carries no user id")
        return None
    payload["user_id"] = user_id
    return payload

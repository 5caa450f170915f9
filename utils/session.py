import logging
import time
from typing import Any, Dict, Optional

import jwt

from business.errors import Unauthenticated
from models.session import SessionContext

logger = logging.getLogger(__name__)


def decode_token_claims(token: str) -> Optional[Dict[str, Any]]:
    """Read JWT claims without verifying; the backend owns verification"""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        # Opaque (non-JWT) tokens are allowed
        return None


def is_token_expired(token: str, now: Optional[float] = None) -> bool:
    claims = decode_token_claims(token)
    if not claims or "exp" not in claims:
        return False
    try:
        exp = float(claims["exp"])
    except (TypeError, ValueError):
        return False
    return exp <= (now if now is not None else time.time())


def require_user(session: Optional[SessionContext]) -> str:
    """Return the signed-in user id or raise Unauthenticated"""
    if session is None or not session.user_id:
        raise Unauthenticated()

    if session.token and is_token_expired(session.token):
        logger.info(f"Session token for user {session.user_id} has expired")
        raise Unauthenticated("Your session has expired. Please sign in again.")

    return session.user_id

"""Bearer token handling

Customer and staff sessions are signed by the account service with the
shared secret. The marketplace API only needs to read the subject back.
"""

from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from marketplace.config import settings

BEARER_PREFIX = "Bearer "


def issue_access_token(user_id: str, lifetime: timedelta = timedelta(hours=1)) -> str:
    """Sign a session token whose subject is `user_id`"""
    issued_at = datetime.utcnow()
    claims = {"sub": user_id, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an Authorization header, if it carries one"""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip() or None


def token_subject(token: str) -> Optional[str]:
    """
    Verify `token` and return its subject

    Returns None when the token cannot be trusted or names no subject.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    return claims.get("sub")

# Overview: Bearer token issuance and verification (HS256 JWT).

from __future__ import annotations

import datetime
import logging
from typing import Optional

from flask import current_app
from jose import ExpiredSignatureError, JWTError, jwt

from ..errors import InvalidToken, TokenExpired, TokenVerificationError

logger = logging.getLogger(__name__)


def create_access_token(subject, role: Optional[str] = None, expires_minutes: Optional[float] = None) -> str:
    """
    Issue a signed token for subject (a user id).

    Issuance belongs to the login flow; this exists for provisioning and tests.
    """
    if expires_minutes is None:
        expires_minutes = current_app.config["JWT_EXPIRE_MINUTES"]
    now = datetime.datetime.now(datetime.timezone.utc)
    claims = {
        "sub": str(subject),
        "iat": now,
        "exp": now + datetime.timedelta(minutes=expires_minutes),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def verify_token(token: str) -> dict:
    """
    Verify signature and expiry and return the claims.

    Raises TokenExpired, InvalidToken (malformed, bad signature, no
    subject) or TokenVerificationError for anything else.
    """
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except ExpiredSignatureError:
        raise TokenExpired() from None
    except JWTError:
        raise InvalidToken() from None
    except Exception as exc:
        logger.exception("Token verification failed unexpectedly")
        raise TokenVerificationError() from exc

    if not claims.get("sub"):
        raise InvalidToken()
    return claims

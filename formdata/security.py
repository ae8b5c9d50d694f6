"""
Admin boundary checks.

Admin routes need the configured admin token, and state-changing admin actions
additionally need a nonce issued for that specific action.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import Settings, get_settings
from .rules import NONCE_ACTIONS

logger = logging.getLogger(__name__)


def _serializer(settings: Settings, action: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt=f"formdata.{action}")


def issue_nonce(settings: Settings, action: str) -> str:
    if action not in NONCE_ACTIONS:
        raise ValueError(f"unknown action {action!r}")
    return _serializer(settings, action).dumps(secrets.token_urlsafe(16))


def verify_nonce(settings: Settings, action: str, nonce: Optional[str]) -> bool:
    if not nonce or action not in NONCE_ACTIONS:
        return False
    try:
        _serializer(settings, action).loads(nonce, max_age=settings.nonce_max_age)
        return True
    except (BadSignature, SignatureExpired):
        return False


def _presented_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_admin_token:
        return x_admin_token
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value:
            return value.strip()
    return None


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.admin_token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access is disabled")
    token = _presented_token(x_admin_token, authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized access",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not secrets.compare_digest(token.encode(), settings.admin_token.encode()):
        logger.warning("Rejected admin request with an invalid token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")


def nonce_guard(action: str):
    """Dependency factory checking the nonce for ``action``."""

    def check(
        x_form_nonce: Optional[str] = Header(default=None),
        nonce: Optional[str] = Query(default=None),
        settings: Settings = Depends(get_settings),
    ) -> None:
        if not verify_nonce(settings, action, x_form_nonce or nonce):
            logger.warning("Nonce check failed for %s", action)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Security check failed")

    return check

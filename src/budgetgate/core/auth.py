"""
API key authentication for the SLO endpoints.

CI/CD pipelines call the release gate with ``Authorization: Bearer <API_KEY>``.
Health probes stay public.
"""

import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from budgetgate.core.config import settings

# auto_error=False so a missing header reaches verify_token when auth is off
security = HTTPBearer(auto_error=False)


def _key_matches(candidate: str) -> bool:
    return secrets.compare_digest(candidate.encode("utf-8"), settings.API_KEY.encode("utf-8"))


def verify_token(credentials: Optional[HTTPAuthorizationCredentials] = Security(security)) -> str:
    """
    FastAPI dependency guarding the SLO router.

    AUTH_ENABLED is read per request so tests and operators can toggle it
    without rebuilding the app.

    Raises:
        HTTPException: 403 when auth is enabled and the token is missing or wrong
    """
    if not settings.AUTH_ENABLED:
        return "auth-disabled"

    if credentials is None:
        raise HTTPException(
            status_code=403,
            detail="Authentication required. Please provide a Bearer token.",
        )
    if not _key_matches(credentials.credentials):
        raise HTTPException(
            status_code=403,
            detail="Invalid API key. Please provide a valid Bearer token.",
        )
    return credentials.credentials

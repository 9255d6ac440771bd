"""Bearer-token verification for identities issued by the external identity provider."""

import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import settings
from .request_context import set_user_id

logger = logging.getLogger("shipshow.security")

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a provider-issued access token. Raises ValueError when invalid."""
    options = {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.auth_verification_key,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            issuer=settings.AUTH_JWT_ISSUER or None,
            options=options,
        )
    except JWTError as exc:
        raise ValueError("Invalid or expired access token.") from exc

    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise ValueError("Access token missing subject.")
    return payload


def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    set_user_id(str(payload["sub"]).strip())
    return payload

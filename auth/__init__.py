"""Admin authentication for the lifecycle routes.

Admin tokens are HS256 JWTs issued by the admin login service and signed
with the shared ``admin_token_secret``. This module only verifies them:
- Bearer token extraction for FastAPI routes
- Signature and expiry checks
- Mapping the claims to the acting admin recorded in the audit log
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

# Configure logging
logger = logging.getLogger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
TOKEN_EXPIRY = timedelta(hours=24)

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class TokenExpiredError(AuthError):
    """Raised when an admin token has expired."""
    pass

class InvalidTokenError(AuthError):
    """Raised when an admin token is malformed or badly signed."""
    pass

def _secret(secret: Optional[str]) -> str:
    if secret:
        return secret
    from config import pricing_settings
    if not pricing_settings.admin_token_secret:
        raise AuthError("Admin authentication is not configured")
    return pricing_settings.admin_token_secret

def create_admin_token(
    admin_id: str,
    email: Optional[str] = None,
    role: str = 'admin',
    secret: Optional[str] = None,
    expires_in: timedelta = TOKEN_EXPIRY
) -> str:
    """Issue an admin token.

    Used by operator tooling and tests; production tokens come from the
    admin login service.

    Args:
        admin_id: Admin identifier, stored in ``sub``
        email: Admin email
        role: Admin role
        secret: Signing secret. Defaults to ``admin_token_secret``.
        expires_in: Token lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': admin_id,
        'email': email,
        'role': role,
        'iat': int(now.timestamp()),
        'exp': int((now + expires_in).timestamp())
    }
    return jwt.encode(payload, _secret(secret), algorithm=JWT_ALGORITHM)

def verify_admin_token(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    """Verify an admin token and return the acting admin.

    Args:
        token: Encoded JWT
        secret: Verification secret. Defaults to ``admin_token_secret``.

    Returns:
        Dict with ``id``, ``email`` and ``role``

    Raises:
        TokenExpiredError: If the token has expired
        InvalidTokenError: If the token is malformed, badly signed or has no subject
        AuthError: If no secret is configured
    """
    try:
        payload = jwt.decode(token, _secret(secret), algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError("Admin token has expired")
    except JWTError as e:
        raise InvalidTokenError(f"Invalid admin token: {e}")

    if not payload.get('sub'):
        raise InvalidTokenError("Admin token has no subject")

    return {
        'id': payload['sub'],
        'email': payload.get('email'),
        'role': payload.get('role', 'admin')
    }

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=False,
    description="Admin JWT Bearer token required"
)

async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> Dict[str, Any]:
    """FastAPI dependency for getting the authenticated admin.

    Raises:
        HTTPException: 401 if the token is missing or fails verification
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )
    try:
        return verify_admin_token(credentials.credentials)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token has expired",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except AuthError as e:
        logger.warning(f"Rejected admin request: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )

# Export public interface
__all__ = [
    'get_current_admin',
    'create_admin_token',
    'verify_admin_token',
    'AuthError',
    'TokenExpiredError',
    'InvalidTokenError'
]

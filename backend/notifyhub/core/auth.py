import jwt
from fastapi import HTTPException, Request

from notifyhub.core.config import settings


def decode_user_token(token: str) -> str:
    """Verify an access token and return the user id it was issued for.

    Tokens are issued by the upstream auth service; this only checks the
    signature and expiry and reads the ``sub`` claim.
    """
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    user_id = payload.get("sub") or payload.get("_id")
    if not user_id:
        raise jwt.InvalidTokenError("Token has no subject")
    return str(user_id)


def get_current_user(request: Request) -> str:
    """Extract the authenticated user id from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    raw_token = auth_header[7:]
    if not raw_token:
        raise HTTPException(status_code=401, detail="Access token is required")

    try:
        return decode_user_token(raw_token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token has expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token") from None

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from app.core.config import ALGORITHM, SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from app.core.errors import AuthError, InternalError

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """Verify an identity-provider access token and return its claims."""
    if not SUPABASE_JWT_SECRET:
        raise InternalError("Token verification secret not configured")

    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        raise AuthError("Invalid token")


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    """Get current user ID from the bearer token."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing bearer token")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub")

    if user_id is None:
        raise AuthError("Invalid token")

    return user_id

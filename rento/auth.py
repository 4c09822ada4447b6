from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError

from .config import settings

api_key_header = APIKeyHeader(name="Authorization")


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


def decode_token(token: str) -> dict:
    scheme, jwt_token = token.split()
    if scheme.lower() != "bearer":
        raise ValueError("Unsupported authorization scheme")
    return jwt.decode(
        jwt_token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        options={"verify_aud": False},
    )


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the JWT token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    try:
        payload = decode_token(request.headers.get("Authorization"))
        user_id = payload.get("sub")
        if user_id:
            return str(user_id)
    except (JWTError, ValueError, AttributeError, TypeError):
        pass
    return request.client.host


async def get_current_user(
        token: Annotated[str, Depends(api_key_header)]
) -> CurrentUser:
    """
    Decodes the JWT from the 'Authorization: Bearer ...' header to get the user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
    except (JWTError, ValueError, AttributeError):
        raise credentials_exception
    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception
    return CurrentUser(id=str(user_id), email=payload.get("email"))

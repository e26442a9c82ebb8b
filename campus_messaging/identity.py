from fastapi import HTTPException, Request, WebSocket, status
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from campus_messaging.config import get_settings

settings = get_settings()


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a session token. Used by the campus auth service and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    return jwt.encode({"sub": user_id, "exp": expire}, settings.secret_key, algorithm=settings.algorithm)


def decode_user_id(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    return payload.get("sub") or None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


async def get_current_user_id(request: Request) -> str:
    """Current user id from the session cookie or a bearer token."""
    token = request.cookies.get(settings.session_cookie_name) or _bearer_token(request.headers.get("authorization"))
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def websocket_user_id(websocket: WebSocket) -> Optional[str]:
    token = (
        websocket.cookies.get(settings.session_cookie_name)
        or _bearer_token(websocket.headers.get("authorization"))
        or websocket.query_params.get("token")
    )
    if not token:
        return None
    return decode_user_id(token)

"""Request tracking middleware and JWT authentication."""

import uuid
from datetime import UTC, datetime, timedelta

from fastapi import Header, HTTPException, Query, Request, status
from jose import JWTError, jwt
from loguru import logger

from .config import settings


async def add_request_id(request: Request, call_next):
    """Bind a request ID to every log line of the request.

    Streaming responses keep the ID in their headers; the body is produced
    after this middleware returns.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug("Request completed", status_code=response.status_code)
        return response


def create_token(user_id: str) -> str:
    """Create a JWT token for a user.

    Args:
        user_id: The user identifier to encode in the token.

    Returns:
        Encoded JWT token as string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
        "iat": now,
    }
    token: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> str:
    """Return the user id of a valid token.

    Raises:
        HTTPException: If the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise _credentials_exception() from e

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise _credentials_exception()
    return user_id


async def get_current_user(authorization: str | None = Header(None)) -> str:
    """Extract and validate user_id from a Bearer Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _credentials_exception()
    return decode_token(authorization.removeprefix("Bearer "))


async def get_stream_user(
    authorization: str | None = Header(None),
    token: str | None = Query(None),
) -> str:
    """Authenticate a stream request.

    Browser EventSource cannot send headers, so the token may also come as
    the ``token`` query parameter.
    """
    if authorization and authorization.startswith("Bearer "):
        return decode_token(authorization.removeprefix("Bearer "))
    if token:
        return decode_token(token)
    raise _credentials_exception()

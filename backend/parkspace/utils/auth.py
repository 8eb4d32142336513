from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

BEARER_PREFIX = "bearer "


def create_access_token(
    *,
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(hours=1)),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token part of an `Authorization: Bearer <token>` header."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise ValueError("bearer token required")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise ValueError("bearer token required")
    return token


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> int:
    """Return the user id carried in `sub`. Raises ValueError for any bad token."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    subject = claims.get("sub")
    if subject is None:
        raise ValueError("token missing sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not a user id") from exc

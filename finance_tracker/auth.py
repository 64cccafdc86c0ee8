from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

ALGORITHM = "HS256"


class InvalidTokenError(ValueError):
    """Raised for a missing, malformed, tampered or expired access token."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str, secret: str, expire_days: int = 30) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=expire_days)
    return jwt.encode({"id": user_id, "exp": expire}, secret, algorithm=ALGORITHM)


def decode_access_token(token: str | None, secret: str) -> str:
    if not token:
        raise InvalidTokenError("Missing token.")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("Invalid or expired token.") from exc
    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidTokenError("Token does not identify a user.")
    return user_id


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

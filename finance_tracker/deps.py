"""Shared FastAPI dependencies: storage, settings, the authenticated user and ownership checks."""

from typing import Any, Mapping

from fastapi import Depends, Header, HTTPException, Request

from finance_tracker.auth import InvalidTokenError, bearer_token, decode_access_token
from finance_tracker.config import Settings
from finance_tracker.insights import InsightProvider
from finance_tracker.log import logger
from finance_tracker.repositories import Record, Repository, Storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Storage is not ready.")
    return storage


def get_insight_provider(request: Request) -> InsightProvider | None:
    return getattr(request.app.state, "insight_provider", None)


def get_current_user(
    authorization: str | None = Header(None),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> Record:
    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Not authorized to access this route.")
    try:
        user_id = decode_access_token(token, settings.jwt_secret)
    except InvalidTokenError as exc:
        logger.warning("Rejected token: %s", exc)
        raise HTTPException(
            status_code=401, detail="Not authorized to access this route."
        ) from exc

    user = storage.users.get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found. Please login again.")
    return user


def get_owned(repository: Repository, record_id: str, user: Mapping[str, Any], label: str) -> Record:
    """Load a record and make sure the caller owns it (404 if missing, 403 if not theirs)."""
    record = repository.get(record_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found.")
    if record["user_id"] != user["id"]:
        raise HTTPException(
            status_code=403, detail=f"Not authorized to access this {label}."
        )
    return record

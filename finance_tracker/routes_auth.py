from fastapi import APIRouter, Depends, HTTPException

from finance_tracker.auth import create_access_token, hash_password, verify_password
from finance_tracker.config import Settings
from finance_tracker.deps import get_current_user, get_settings, get_storage
from finance_tracker.repositories import DuplicateRecordError, Record, Storage
from finance_tracker.schemas import (
    AuthResponse,
    LoginPayload,
    PasswordPayload,
    RegisterPayload,
    UserDetailsPayload,
    UserResponse,
    changes_from,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def user_response(user: Record) -> UserResponse:
    return UserResponse(
        id=user["id"],
        name=user["name"],
        email=user["email"],
        default_currency=user["default_currency"],
        created_at=user.get("created_at"),
    )


def token_response(user: Record, settings: Settings) -> AuthResponse:
    token = create_access_token(user["id"], settings.jwt_secret, settings.jwt_expire_days)
    return AuthResponse(token=token, user=user_response(user))


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterPayload,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    try:
        payload = RegisterPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if storage.users.find(equals={"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already exists.")
    try:
        user = storage.users.create(
            {
                "name": payload.name,
                "email": payload.email,
                "password": hash_password(payload.password),
                "default_currency": payload.default_currency,
            }
        )
    except DuplicateRecordError as exc:
        raise HTTPException(status_code=400, detail="User already exists.") from exc
    return token_response(user, settings)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginPayload,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Please provide an email and password.")

    found = storage.users.find(equals={"email": email})
    if not found or not verify_password(payload.password, found[0]["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return token_response(found[0], settings)


@router.get("/me", response_model=UserResponse)
def get_me(user: Record = Depends(get_current_user)) -> UserResponse:
    return user_response(user)


@router.put("/details", response_model=UserResponse)
def update_details(
    payload: UserDetailsPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> UserResponse:
    try:
        payload = UserDetailsPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        updated = storage.users.update(user["id"], changes_from(payload))
    except DuplicateRecordError as exc:
        raise HTTPException(status_code=400, detail="Email already in use.") from exc
    if not updated:
        raise HTTPException(status_code=404, detail="User not found.")
    return user_response(updated)


@router.put("/password", response_model=AuthResponse)
def update_password(
    payload: PasswordPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    if not verify_password(payload.current_password, user["password"]):
        raise HTTPException(status_code=401, detail="Password is incorrect.")
    try:
        payload = PasswordPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    updated = storage.users.update(user["id"], {"password": hash_password(payload.new_password)})
    if not updated:
        raise HTTPException(status_code=404, detail="User not found.")
    return token_response(updated, settings)

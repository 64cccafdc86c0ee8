from fastapi import APIRouter, Depends, HTTPException, Query

from finance_tracker.deps import get_current_user, get_owned, get_storage
from finance_tracker.reminder_engine import budget_check_reminder, expense_log_reminder
from finance_tracker.repositories import Record, Storage
from finance_tracker.schemas import (
    ReminderPayload,
    ReminderResponse,
    ReminderUpdatePayload,
    changes_from,
)

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("", response_model=list[ReminderResponse])
def list_reminders(
    active: bool | None = Query(None),
    reminder_type: str | None = Query(None, alias="type"),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[ReminderResponse]:
    equals = {"user_id": user["id"]}
    if active is not None:
        equals["is_active"] = active
    if reminder_type:
        equals["type"] = reminder_type.strip().lower()
    records = storage.reminders.find(equals=equals, order_by="date_time")
    return [ReminderResponse(**record) for record in records]


@router.post("/defaults", response_model=list[ReminderResponse], status_code=201)
def create_default_reminders(
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[ReminderResponse]:
    budget_reminder = storage.reminders.create(budget_check_reminder(user))
    expense_reminder = storage.reminders.create(expense_log_reminder(user["id"]))
    return [ReminderResponse(**budget_reminder), ReminderResponse(**expense_reminder)]


@router.post("", response_model=ReminderResponse, status_code=201)
def create_reminder(
    payload: ReminderPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> ReminderResponse:
    try:
        payload = ReminderPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = storage.reminders.create(
        {
            "user_id": user["id"],
            "type": payload.type,
            "message": payload.message,
            "date_time": payload.date_time,
            "frequency": payload.frequency,
            "is_active": payload.is_active,
        }
    )
    return ReminderResponse(**record)


@router.get("/{reminder_id}", response_model=ReminderResponse)
def get_reminder(
    reminder_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> ReminderResponse:
    return ReminderResponse(**get_owned(storage.reminders, reminder_id, user, "reminder"))


@router.put("/{reminder_id}", response_model=ReminderResponse)
def update_reminder(
    reminder_id: str,
    payload: ReminderUpdatePayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> ReminderResponse:
    get_owned(storage.reminders, reminder_id, user, "reminder")
    try:
        payload = ReminderUpdatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = storage.reminders.update(reminder_id, changes_from(payload))
    if not record:
        raise HTTPException(status_code=404, detail="Reminder not found.")
    return ReminderResponse(**record)


@router.delete("/{reminder_id}")
def delete_reminder(
    reminder_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> dict:
    get_owned(storage.reminders, reminder_id, user, "reminder")
    storage.reminders.delete(reminder_id)
    return {"status": "deleted"}

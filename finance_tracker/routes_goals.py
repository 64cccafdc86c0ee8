from fastapi import APIRouter, Depends, HTTPException, Query

from finance_tracker.currency_conversion import convert_amount_safe
from finance_tracker.deps import get_current_user, get_owned, get_storage
from finance_tracker.repositories import Record, Storage
from finance_tracker.schemas import (
    GoalPayload,
    GoalProgressPayload,
    GoalResponse,
    GoalUpdatePayload,
    changes_from,
)

router = APIRouter(prefix="/goals", tags=["goals"])


@router.get("", response_model=list[GoalResponse])
def list_goals(
    completed: bool | None = Query(None),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[GoalResponse]:
    equals = {"user_id": user["id"]}
    if completed is not None:
        equals["completed"] = completed
    records = storage.goals.find(equals=equals, order_by="deadline")
    return [GoalResponse(**record) for record in records]


@router.post("", response_model=GoalResponse, status_code=201)
def create_goal(
    payload: GoalPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> GoalResponse:
    try:
        payload = GoalPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = storage.goals.create(
        {
            "user_id": user["id"],
            "title": payload.title,
            "description": payload.description,
            "target_amount": payload.target_amount,
            "current_amount": payload.current_amount,
            "deadline": payload.deadline,
            "currency": payload.currency,
            "completed": payload.current_amount >= payload.target_amount,
        }
    )
    return GoalResponse(**record)


@router.get("/{goal_id}", response_model=GoalResponse)
def get_goal(
    goal_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> GoalResponse:
    return GoalResponse(**get_owned(storage.goals, goal_id, user, "goal"))


@router.put("/{goal_id}", response_model=GoalResponse)
def update_goal(
    goal_id: str,
    payload: GoalUpdatePayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> GoalResponse:
    goal = get_owned(storage.goals, goal_id, user, "goal")
    try:
        payload = GoalUpdatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    changes = changes_from(payload)
    target_amount = changes.get("target_amount", goal["target_amount"])
    current_amount = changes.get("current_amount", goal["current_amount"])
    if current_amount >= target_amount:
        changes["completed"] = True

    record = storage.goals.update(goal_id, changes)
    if not record:
        raise HTTPException(status_code=404, detail="Goal not found.")
    return GoalResponse(**record)


@router.put("/{goal_id}/progress", response_model=GoalResponse)
def update_goal_progress(
    goal_id: str,
    payload: GoalProgressPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> GoalResponse:
    goal = get_owned(storage.goals, goal_id, user, "goal")
    try:
        payload = GoalProgressPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    amount = payload.amount
    if payload.currency and payload.currency != goal["currency"]:
        amount = convert_amount_safe(amount, payload.currency, goal["currency"])

    current_amount = goal["current_amount"] + amount
    if current_amount < 0:
        raise HTTPException(status_code=400, detail="Current amount cannot be negative.")

    record = storage.goals.update(
        goal_id,
        {
            "current_amount": current_amount,
            "completed": goal["completed"] or current_amount >= goal["target_amount"],
        },
    )
    if not record:
        raise HTTPException(status_code=404, detail="Goal not found.")
    return GoalResponse(**record)


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> dict:
    get_owned(storage.goals, goal_id, user, "goal")
    storage.goals.delete(goal_id)
    return {"status": "deleted"}

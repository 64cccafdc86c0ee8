from fastapi import APIRouter, Depends, HTTPException, Query

from finance_tracker.budget_engine import (
    Budget,
    BudgetStatus,
    Transaction,
    evaluate_budget_status,
    month_range,
    month_token,
)
from finance_tracker.deps import get_current_user, get_owned, get_storage
from finance_tracker.repositories import DuplicateRecordError, Record, Storage
from finance_tracker.schemas import (
    BudgetPayload,
    BudgetResponse,
    BudgetStatusReport,
    BudgetStatusResponse,
    BudgetUpdatePayload,
    changes_from,
)

router = APIRouter(prefix="/budgets", tags=["budgets"])


def status_response(line: BudgetStatus) -> BudgetStatusResponse:
    # JSON has no infinity literal; an unbudgeted category reports null
    percentage = line.percentage if line.percentage.is_finite() else None
    return BudgetStatusResponse(
        budget_id=line.budget_id,
        category=line.category,
        limit=line.limit,
        spent=line.spent,
        remaining=line.remaining,
        percentage=percentage,
        currency=line.currency,
        status=line.status,
    )


def parse_month(value: str) -> str:
    try:
        return month_token(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("", response_model=list[BudgetResponse])
def list_budgets(
    month: str | None = Query(None),
    category: str | None = Query(None),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[BudgetResponse]:
    equals = {"user_id": user["id"]}
    if month:
        equals["month"] = parse_month(month)
    if category:
        equals["category"] = category
    records = storage.budgets.find(equals=equals, order_by="month", descending=True)
    return [BudgetResponse(**record) for record in records]


@router.get("/status", response_model=BudgetStatusReport)
def budget_status(
    month: str | None = Query(None),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> BudgetStatusReport:
    if not month:
        raise HTTPException(
            status_code=400, detail="Month parameter is required (format: YYYY-MM)."
        )
    month = parse_month(month)
    start_date, end_date = month_range(month)

    budget_rows = storage.budgets.find(equals={"user_id": user["id"], "month": month})
    expense_rows = storage.transactions.find(
        equals={"user_id": user["id"], "type": "expense"},
        ranges={"date": (start_date, end_date)},
    )
    lines = evaluate_budget_status(
        [
            Budget(
                category=row["category"],
                limit=row["limit"],
                month=row["month"],
                currency=row["currency"],
                budget_id=row["id"],
            )
            for row in budget_rows
        ],
        [
            Transaction(
                amount=row["amount"],
                type=row["type"],
                date=row["date"],
                category=row["category"],
                currency=row["currency"],
            )
            for row in expense_rows
        ],
        default_currency=user["default_currency"],
    )
    return BudgetStatusReport(month=month, data=[status_response(line) for line in lines])


@router.post("", response_model=BudgetResponse, status_code=201)
def create_budget(
    payload: BudgetPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> BudgetResponse:
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    duplicate_detail = f"Budget for {payload.category} in {payload.month} already exists."
    existing = storage.budgets.find(
        equals={"user_id": user["id"], "category": payload.category, "month": payload.month}
    )
    if existing:
        raise HTTPException(status_code=400, detail=duplicate_detail)
    try:
        record = storage.budgets.create(
            {
                "user_id": user["id"],
                "category": payload.category,
                "limit": payload.limit,
                "month": payload.month,
                "currency": payload.currency,
            }
        )
    except DuplicateRecordError as exc:
        raise HTTPException(status_code=400, detail=duplicate_detail) from exc
    return BudgetResponse(**record)


@router.get("/{budget_id}", response_model=BudgetResponse)
def get_budget(
    budget_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> BudgetResponse:
    return BudgetResponse(**get_owned(storage.budgets, budget_id, user, "budget"))


@router.put("/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: str,
    payload: BudgetUpdatePayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> BudgetResponse:
    get_owned(storage.budgets, budget_id, user, "budget")
    try:
        payload = BudgetUpdatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        record = storage.budgets.update(budget_id, changes_from(payload))
    except DuplicateRecordError as exc:
        raise HTTPException(
            status_code=400, detail="A budget for this category and month already exists."
        ) from exc
    if not record:
        raise HTTPException(status_code=404, detail="Budget not found.")
    return BudgetResponse(**record)


@router.delete("/{budget_id}")
def delete_budget(
    budget_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> dict:
    get_owned(storage.budgets, budget_id, user, "budget")
    storage.budgets.delete(budget_id)
    return {"status": "deleted"}

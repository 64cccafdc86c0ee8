from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from finance_tracker.budget_engine import CategoryTotals, month_range, summarize_transactions
from finance_tracker.currency_conversion import normalize_amounts
from finance_tracker.deps import get_current_user, get_owned, get_storage
from finance_tracker.repositories import Record, Storage
from finance_tracker.schemas import (
    CategoryTotalsResponse,
    TransactionPayload,
    TransactionResponse,
    TransactionSummaryResponse,
    TransactionUpdatePayload,
    changes_from,
    validate_currency,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


def resolve_date_range(
    month: str | None, start_date: date | None, end_date: date | None
) -> tuple[date | None, date | None]:
    """A month token wins over an explicit start/end range."""
    if month:
        try:
            return month_range(month)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date.")
    return start_date, end_date


def parse_currency(value: str) -> str:
    try:
        return validate_currency(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def totals_response(totals: CategoryTotals) -> CategoryTotalsResponse:
    return CategoryTotalsResponse(total=totals.total, by_category=dict(totals.by_category))


@router.get("", response_model=list[TransactionResponse])
def list_transactions(
    txn_type: str | None = Query(None, alias="type"),
    category: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    month: str | None = Query(None),
    currency: str | None = Query(None),
    normalize: bool = Query(False),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[TransactionResponse]:
    equals = {"user_id": user["id"]}
    if txn_type:
        equals["type"] = txn_type.strip().lower()
    if category:
        equals["category"] = category
    range_start, range_end = resolve_date_range(month, start_date, end_date)
    ranges = {}
    if range_start or range_end:
        ranges["date"] = (range_start, range_end)

    records = storage.transactions.find(
        equals=equals, ranges=ranges, order_by="date", descending=True
    )
    if normalize and currency:
        records = normalize_amounts(records, parse_currency(currency))
    return [TransactionResponse(**record) for record in records]


@router.get("/summary", response_model=TransactionSummaryResponse)
def transaction_summary(
    month: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    currency: str | None = Query(None),
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> TransactionSummaryResponse:
    range_start, range_end = resolve_date_range(month, start_date, end_date)
    ranges = {}
    if range_start or range_end:
        ranges["date"] = (range_start, range_end)
    records = storage.transactions.find(equals={"user_id": user["id"]}, ranges=ranges)

    report_currency = user["default_currency"]
    if currency:
        report_currency = parse_currency(currency)
        records = normalize_amounts(records, report_currency)

    summary = summarize_transactions(records, report_currency)
    return TransactionSummaryResponse(
        income=totals_response(summary.income),
        expense=totals_response(summary.expense),
        net_cashflow=summary.net_cashflow,
        currency=summary.currency,
    )


@router.post("", response_model=TransactionResponse, status_code=201)
def create_transaction(
    payload: TransactionPayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> TransactionResponse:
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = storage.transactions.create(
        {
            "user_id": user["id"],
            "type": payload.type,
            "category": payload.category,
            "amount": payload.amount,
            "currency": payload.currency,
            "date": payload.date or date.today(),
            "notes": payload.notes,
        }
    )
    return TransactionResponse(**record)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> TransactionResponse:
    record = get_owned(storage.transactions, transaction_id, user, "transaction")
    return TransactionResponse(**record)


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdatePayload,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> TransactionResponse:
    get_owned(storage.transactions, transaction_id, user, "transaction")
    try:
        payload = TransactionUpdatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = storage.transactions.update(transaction_id, changes_from(payload))
    if not record:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return TransactionResponse(**record)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> dict:
    get_owned(storage.transactions, transaction_id, user, "transaction")
    storage.transactions.delete(transaction_id)
    return {"status": "deleted"}

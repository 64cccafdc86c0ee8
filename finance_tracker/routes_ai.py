from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException

from finance_tracker.currency_conversion import normalize_amounts
from finance_tracker.deps import get_current_user, get_insight_provider, get_storage
from finance_tracker.insights import (
    SUGGESTED_EXPENSE_CATEGORIES,
    SUGGESTED_INCOME_CATEGORIES,
    InsightProvider,
    generate_financial_insights,
)
from finance_tracker.repositories import Record, Storage
from finance_tracker.schemas import (
    AdviceResponse,
    DateRange,
    SuggestedCategoriesResponse,
    SuggestedCategory,
)

router = APIRouter(prefix="/ai", tags=["ai"])

ADVICE_WINDOW_DAYS = 30


@router.post("/advice", response_model=AdviceResponse)
def financial_advice(
    user: Record = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: InsightProvider | None = Depends(get_insight_provider),
) -> AdviceResponse:
    end = datetime.now()
    start = end - timedelta(days=ADVICE_WINDOW_DAYS)
    records = storage.transactions.find(
        equals={"user_id": user["id"]},
        ranges={"date": (start.date(), end.date())},
        order_by="date",
        descending=True,
    )
    if not records:
        raise HTTPException(
            status_code=400,
            detail="No transactions found in the last 30 days. Add some transactions first.",
        )

    currency = user["default_currency"]
    insights = generate_financial_insights(
        normalize_amounts(records, currency), currency, provider
    )
    return AdviceResponse(
        insights=insights,
        transaction_count=len(records),
        currency=currency,
        date_range=DateRange(start=start, end=end),
    )


@router.get("/categories", response_model=SuggestedCategoriesResponse)
def suggested_categories(user: Record = Depends(get_current_user)) -> SuggestedCategoriesResponse:
    return SuggestedCategoriesResponse(
        expense=[SuggestedCategory(**item) for item in SUGGESTED_EXPENSE_CATEGORIES],
        income=[SuggestedCategory(**item) for item in SUGGESTED_INCOME_CATEGORIES],
    )

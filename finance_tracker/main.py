from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_tracker.config import Settings, load_settings
from finance_tracker.deps import get_storage
from finance_tracker.file_store import create_file_storage
from finance_tracker.insights import InsightProvider, OpenAIInsightProvider
from finance_tracker.log import configure_logging, logger
from finance_tracker.reminder_engine import ReminderPoller
from finance_tracker.repositories import Storage, StorageError
from finance_tracker import (
    routes_ai,
    routes_auth,
    routes_budgets,
    routes_goals,
    routes_reminders,
    routes_transactions,
)
from finance_tracker.storage import open_storage


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages


def create_app(
    settings: Settings | None = None,
    storage: Storage | None = None,
    insight_provider: InsightProvider | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_file)

    app = FastAPI(title="Finance Tracker API")
    app.state.settings = settings
    app.state.storage = storage
    app.state.insight_provider = insight_provider or OpenAIInsightProvider(
        settings.openai_api_key, settings.insights_model
    )
    app.state.poller = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": _validation_messages(exc)},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Server Error"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Server Error"})

    @app.on_event("startup")
    def init_storage() -> None:
        if app.state.storage is None:
            app.state.storage = open_storage(settings)
        if settings.reminders_enabled:
            fallback = None
            if app.state.storage.backend != "file":
                fallback = create_file_storage(settings.data_dir).reminders
            app.state.poller = ReminderPoller(
                app.state.storage.reminders,
                interval=settings.reminder_poll_seconds,
                fallback=fallback,
            )
            app.state.poller.start()

    @app.on_event("shutdown")
    def close_storage() -> None:
        if app.state.poller is not None:
            app.state.poller.stop()
            app.state.poller = None
        if app.state.storage is not None:
            app.state.storage.close()

    @app.get("/")
    def root() -> dict:
        return {"message": "Finance Tracker API is running..."}

    @app.get("/health")
    def health(storage: Storage = Depends(get_storage)) -> dict:
        return {"status": "ok", "storage": storage.backend}

    app.include_router(routes_auth.router)
    app.include_router(routes_transactions.router)
    app.include_router(routes_budgets.router)
    app.include_router(routes_goals.router)
    app.include_router(routes_reminders.router)
    app.include_router(routes_ai.router)
    return app


app = create_app()

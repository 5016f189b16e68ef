"""
HTTP API for Room Ledger

A thin FastAPI layer over the flows in roomledger.orchestrator.
Routes only translate between HTTP and the flows; validation,
storage and settlement all happen below this layer.

Run with:
    uvicorn app.main:create_app --factory
"""

from typing import Any, Optional

import structlog
import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from roomledger import __version__
from roomledger.config import AppSettings, get_settings
from roomledger.errors import (
    ConfigurationError,
    DataIntegrityError,
    ExpenseValidationError,
)
from roomledger.orchestrator import (
    ExpenseFlow,
    StatisticsFlow,
    create_app_components,
)
from roomledger.services.storage import NotFoundError, StorageError


logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, **extra},
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Map ledger exceptions onto JSON error responses."""

    @app.exception_handler(ExpenseValidationError)
    async def validation_error(request: Request, exc: ExpenseValidationError):
        return JSONResponse(
            status_code=400,
            content={"status": "error", "errors": exc.result.to_error_list()},
        )

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(DataIntegrityError)
    async def data_integrity_error(request: Request, exc: DataIntegrityError):
        logger.error("data_integrity_error", error=str(exc), path=request.url.path)
        return _error(500, str(exc), offending=exc.offending)

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        logger.error("configuration_error", error=str(exc), path=request.url.path)
        return _error(500, str(exc))

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        logger.error("storage_error", error=str(exc), path=request.url.path)
        return _error(500, "Storage unavailable")

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "errors": [{
                    "field": "body",
                    "type": "invalid_format",
                    "message": "Request body must be valid JSON",
                }],
            },
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded):
        logger.warning("rate_limited", client=get_remote_address(request), limit=str(exc.detail))
        return _error(429, "Too many requests, please try again later")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail))


def _limit_body_size(app: FastAPI, max_bytes: int) -> None:
    """Refuse requests whose declared Content-Length exceeds max_bytes."""

    @app.middleware("http")
    async def body_size_guard(request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            return _error(413, f"Request body exceeds {max_bytes} bytes")
        return await call_next(request)


def create_app(
    expense_flow: Optional[ExpenseFlow] = None,
    statistics_flow: Optional[StatisticsFlow] = None,
    app_settings: Optional[AppSettings] = None,
) -> FastAPI:
    """
    Build the API.

    Flows default to the ones configured by the environment. Tests pass
    their own, typically backed by in-memory storage.

    Every /api route draws on one per-client request budget
    (app_settings.rate_limit); the health check is not limited.
    """
    app_settings = app_settings or get_settings().app
    if expense_flow is None or statistics_flow is None:
        default_expenses, default_statistics = create_app_components()
        expense_flow = expense_flow or default_expenses
        statistics_flow = statistics_flow or default_statistics

    app = FastAPI(
        title="Room Ledger API",
        description="Shared expenses and monthly settlements for a flat",
        version=__version__,
    )

    _limit_body_size(app, app_settings.max_body_bytes)

    # CORS middleware to allow frontend connections
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    # Request counters belong to this app instance
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    api_limit = limiter.shared_limit(app_settings.rate_limit, scope="api")

    @app.get("/")
    async def health():
        return {"status": "ok", "service": "room-ledger", "version": __version__}

    @app.get("/api/expenses")
    @api_limit
    async def list_expenses(request: Request):
        expenses = await expense_flow.list_expenses()
        return [expense.to_wire() for expense in expenses]

    @app.post("/api/expenses", status_code=201)
    @api_limit
    async def add_expense(request: Request, payload: Any = Body(None)):
        expense = await expense_flow.add_expense(payload)
        return expense.to_wire()

    @app.delete("/api/expenses/{expense_id}")
    @api_limit
    async def delete_expense(request: Request, expense_id: str):
        expense = await expense_flow.delete_expense(expense_id)
        return {"message": "Expense deleted successfully", "id": str(expense.id)}

    @app.get("/api/statistics")
    @api_limit
    async def statistics(request: Request):
        report = await statistics_flow.get_statistics()
        return report.to_response()

    @app.post("/api/reset")
    @api_limit
    async def reset(request: Request):
        deleted = await expense_flow.reset()
        return {"message": "All expenses have been reset", "deleted": deleted}

    return app


if __name__ == "__main__":
    app_settings = get_settings().app
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=app_settings.api_host,
        port=app_settings.api_port,
        reload=app_settings.debug_mode,
    )

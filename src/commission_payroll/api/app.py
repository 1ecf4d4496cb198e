"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commission_payroll import __version__
from commission_payroll.api.routes import (
    adjustments_router,
    health_router,
    payroll_runs_router,
    users_router,
)
from commission_payroll.database import dispose_db
from commission_payroll.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NoEligibleEntriesError,
    NotFoundError,
    PayrollError,
    RunNotEditableError,
    SelfApprovalForbiddenError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[PayrollError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (SelfApprovalForbiddenError, status.HTTP_403_FORBIDDEN),
    (RunNotEditableError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NoEligibleEntriesError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_code_for(exc: PayrollError) -> int:
    """HTTP status for a payroll error."""
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Commission Payroll API",
        description="Lock, adjust, approve and export commission payroll runs",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map typed payroll errors to HTTP responses."""
        response = JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())
        if exc.retryable:
            response.headers["Retry-After"] = "1"
        return response

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(adjustments_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

"""
Bank Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional, Type

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .accounts import router as accounts_router
from .transactions import router as transactions_router
from .users import router as users_router
from .. import __version__
from ..config import LedgerConfig, get_config
from ..errors import (
    AccountAlreadyClosed, AccountAlreadyExists, AccountInactive, AccountNotFound,
    DependencyError, GenerationExhausted, InsufficientFunds, InvalidAccountData,
    InvalidAmount, LedgerError, SelfTransfer, StoreUnavailable
)
from ..logging_config import correlation_context, get_logger, log_action, setup_logging
from ..system import BankingSystem


logger = get_logger("bank_ledger.api")

STATUS_CODES: Dict[Type[LedgerError], int] = {
    InvalidAmount: 400,
    InvalidAccountData: 400,
    InsufficientFunds: 400,
    SelfTransfer: 400,
    AccountAlreadyClosed: 400,
    AccountNotFound: 404,
    AccountAlreadyExists: 409,
    AccountInactive: 409,
    DependencyError: 409,
    GenerationExhausted: 503,
    StoreUnavailable: 503,
}


def status_code_for(error: LedgerError) -> int:
    """HTTP status for a ledger error, resolved along its class hierarchy"""
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


def create_app(system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    When no system is given, one is built from configuration at startup and
    closed at shutdown; a system passed in stays owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.system is None
        if owned:
            app.state.system = BankingSystem.from_config()
        yield
        if owned:
            app.state.system.close()
            app.state.system = None

    app = FastAPI(
        title="Bank Ledger API",
        description="Account balances and an append-only transaction ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.system = system

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Bind a correlation id to every request for log tracing
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        with correlation_context(request.headers.get("X-Request-ID")) as correlation_id:
            response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            log_action(
                logger, "error", f"Request failed: {exc.message}",
                action=request.method, resource=request.url.path,
                extra={"error": exc.code}
            )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # Include routers
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transactions_router, prefix="/accounts", tags=["Transactions"])
    app.include_router(users_router, prefix="/users", tags=["Users"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "bank_ledger_api",
            "version": __version__
        }

    return app


def run_server(config: Optional[LedgerConfig] = None):
    """Run the API server with uvicorn"""
    config = config or get_config()
    setup_logging(config.log_level, config.log_format)

    system = BankingSystem.from_config(config)
    try:
        uvicorn.run(
            create_app(system),
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower()
        )
    finally:
        system.close()

"""
Venue Ledger Service with Chapa Integration
FastAPI Application Entry Point
"""

import logging
import os
import sys
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from venue_ledger.db.session import close_db, init_db
from venue_ledger.routes.admin_routes import router as admin_router
from venue_ledger.routes.auth_routes import router as auth_router
from venue_ledger.routes.deposit_routes import router as deposit_router
from venue_ledger.routes.transaction_routes import router as transaction_router
from venue_ledger.routes.withdrawal_routes import router as withdrawal_router
from venue_ledger.utils.exceptions import LedgerServiceError
from venue_ledger.utils.responses import error_response

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(os.getenv("LOG_FILE", "app.log")),
    ],
)
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup"""
    logger.info("Starting up venue ledger service...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("Shutting down venue ledger service...")
    try:
        await close_db()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database: {str(e)}", exc_info=True)


app = FastAPI(
    title="Venue Ledger API",
    description="Deposits, withdrawals and balances for venue owners, settled through Chapa",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerServiceError)
async def ledger_exception_handler(request: Request, exc: LedgerServiceError):
    """Render ledger errors with their own status and code"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")

    response = error_response(
        status_code=exc.status_code,
        message=exc.message,
        error=exc.code,
        errors=exc.errors,
    )
    if exc.retryable:
        response.headers["Retry-After"] = "30"
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render body/query parsing errors in the same shape as ledger errors"""
    errors = defaultdict(list)
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        errors[field or "body"].append(error["msg"])

    return error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Invalid request",
        error="VALIDATION_ERROR",
        errors=dict(errors),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
    )
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to catch unhandled exceptions
    Logs error and returns generic error message to client
    """
    logger.error(
        f"Unhandled exception: {str(exc)} - Path: {request.url.path}", exc_info=True
    )

    return error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An internal error occurred. Please try again later.",
        error="SERVER_ERROR",
    )


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(deposit_router, prefix="/deposits", tags=["Deposits"])
app.include_router(withdrawal_router, prefix="/withdrawals", tags=["Withdrawals"])
app.include_router(transaction_router, tags=["Transactions"])
app.include_router(admin_router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Venue Ledger API",
        "version": "1.0.0",
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

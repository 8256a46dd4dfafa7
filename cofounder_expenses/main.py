"""
Main FastAPI Application Entry Point
Co-founder Expenses: expense approval by founder consensus
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import math
import time

from cofounder_expenses.config.settings import settings
from cofounder_expenses.config.database import init_db
from cofounder_expenses.utils.exceptions import ExpenseWorkflowError, RateLimitedError
from cofounder_expenses.utils.helpers import utcnow
from cofounder_expenses.utils.logger import setup_logger
from cofounder_expenses.middleware.logging_middleware import LoggingMiddleware

# Import routes
from cofounder_expenses.routes import (
    auth, expense, team, company as company_routes, balances, notification, categories, dashboard, users
)

# Setup logger
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for application startup and shutdown
    """
    logger.info(f"Starting {settings.APP_NAME}...")

    init_db()
    logger.info("Database tables created successfully")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Expense approval and reimbursement by co-founder consensus",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)


# Exception handlers
@app.exception_handler(ExpenseWorkflowError)
async def workflow_exception_handler(request: Request, exc: ExpenseWorkflowError):
    """Render domain errors with the status and code carried on the exception"""
    logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")

    headers = None
    if isinstance(exc, RateLimitedError):
        seconds = math.ceil((exc.retry_after - utcnow()).total_seconds())
        headers = {"Retry-After": str(max(seconds, 0))}

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    logger.warning(f"Validation error: {errors}")

    message = errors[0]["msg"].removeprefix("Value error, ") if errors else "Validation error"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "validation_error",
            "message": message,
            "errors": errors
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_error",
            "message": str(exc) if settings.DEBUG else "Internal server error"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health"
    }


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(expense.router, prefix="/api/expenses", tags=["Expenses"])
app.include_router(team.router, prefix="/api/team", tags=["Team"])
app.include_router(company_routes.router, prefix="/api/company-settings", tags=["Company"])
app.include_router(balances.router, prefix="/api/balances", tags=["Balances"])
app.include_router(notification.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cofounder_expenses.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )

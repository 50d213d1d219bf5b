"""
QA Release Tracker - FastAPI Application

Main entry point for the QA release verification backend.

Flow:
- Login → AccessGate (credentials + QA entitlement) → session token cookie
- Every call → TokenService (validate) → VerificationWorkflow / DashboardAggregator
- Workflow → RecordStore (SQLAlchemy)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db
from .errors import QAError, StoreError
from .routers import auth_router, verification_router, release_verification_router, teams_router

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="QA Release Tracker",
    description="""
    QA Release Tracker - CRF Release Verification Portal API

    Testers record verification results against daily CRF releases; the
    owning tech lead confirms or returns each submission.

    ## Workflow
    1. **Tester SAVE**: submission (status 1, or 4 after a return)
    2. **TL CONFIRM**: approved (status 2), release marked QA verified (16)
    3. **TL RETURN**: returned (status 3), release sent back to development (4)
    """,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS. Credentials are required for the session cookie, so
# origins must be listed explicitly.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(verification_router)
app.include_router(release_verification_router)
app.include_router(teams_router)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(QAError)
async def qa_error_handler(request: Request, exc: QAError):
    body = {"error": exc.message}
    if isinstance(exc, StoreError):
        logger.error("Store error on %s %s: code=%s %s", request.method, request.url.path, exc.code, exc.details)
        if get_settings().expose_error_detail:
            body["details"] = exc.details
            body["errorCode"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "errors": errors})


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "QA Release Tracker",
        "version": APP_VERSION,
        "description": "CRF Release Verification Portal API",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": APP_VERSION}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)

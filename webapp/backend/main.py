"""
FastAPI main application for the reporting hub.
Provides schema-driven table access for the reporting workspaces.
"""
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import PoolRegistry, get_pool_registry
from errors import ReportingError

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Reporting Hub API"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the workspace pool registry for the process lifetime."""
    app.state.pool_registry = PoolRegistry()
    logger.info(f"[REPORTING-HUB] Environment: {os.getenv('ENVIRONMENT', 'development')}")
    try:
        yield
    finally:
        await app.state.pool_registry.dispose()


# Initialize FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="Schema-driven table browser and editor for reporting databases",
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5055").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ============================================================================
# Error Handlers
# ============================================================================

def describe_validation_error(exc: RequestValidationError) -> str:
    """Turn the first request validation error into a short message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    error = errors[0]
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = loc[0] if loc else "Request body"

    error_type = error.get("type")
    if error_type == "missing":
        return f"{field} is required."
    if error_type == "dict_type":
        return f"{field} must be an object."
    ctx_error = (error.get("ctx") or {}).get("error")
    if error_type == "value_error" and ctx_error is not None:
        return str(ctx_error)
    return f"{field}: {error.get('msg', 'invalid value')}"


@app.exception_handler(ReportingError)
async def reporting_error_handler(request: Request, exc: ReportingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": describe_validation_error(exc)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error."},
    )


# ============================================================================
# Health
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": os.getenv("ENVIRONMENT", "development")
    }


@app.get("/health")
async def health_check(registry: PoolRegistry = Depends(get_pool_registry)):
    """Configured workspaces and which of them have an open pool"""
    return {
        "status": "healthy",
        "workspaces": [key for key, _ in registry.workspaces()],
        "open_workspaces": registry.open_workspaces(),
        "environment": os.getenv("ENVIRONMENT", "development")
    }


from routers import reporting

# Register routers
app.include_router(reporting.router, prefix="/api/reporting")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("REPORTING_PORT", "5055")),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )

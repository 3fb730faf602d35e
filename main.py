"""Main FastAPI application"""
import os
import re
import logging
import logging.config
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from routes import router as api_router
from models.expense import ErrorResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

load_dotenv() # Searches current dir and parents for .env

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            # RichHandler renders its own timestamp and level
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False
        },
    },
    "loggers": {
        "uvicorn": {
             "handlers": ["default"],
             "level": "INFO",
             "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "expense_tracker")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "expenses")
_prefix = os.getenv("API_PREFIX", "/api").strip("/")
API_PREFIX = f"/{_prefix}" if _prefix else ""
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"

# Comma-separated allow-list, plus a pattern for preview deployments
ALLOWED_ORIGINS = [
    origin.strip().rstrip("/")
    for origin in os.getenv("FRONTEND_URL", "http://localhost:5000").split(",")
    if origin.strip()
]
PREVIEW_ORIGIN_REGEX = os.getenv("PREVIEW_ORIGIN_REGEX", r"https://[a-z0-9-]+\.vercel\.app")
PREVIEW_ORIGIN_PATTERN = re.compile(PREVIEW_ORIGIN_REGEX) if PREVIEW_ORIGIN_REGEX else None

RATE_LIMIT = os.getenv("RATE_LIMIT", "100/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "false").lower() == "true"

# Application state to hold the database client and collection
app_state = {}

# --- Rate Limiter Setup ---
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT], enabled=RATE_LIMIT_ENABLED)


def is_origin_allowed(origin: str) -> bool:
    """True if the origin is on the allow-list or matches the preview pattern."""
    if "*" in ALLOWED_ORIGINS or origin.rstrip("/") in ALLOWED_ORIGINS:
        return True
    return bool(PREVIEW_ORIGIN_PATTERN and PREVIEW_ORIGIN_PATTERN.fullmatch(origin))


def error_body(message: str) -> dict:
    return ErrorResponse(message=message).model_dump()


# --- Middleware for Cross-Origin Rejection ---
class RejectDisallowedOriginMiddleware(BaseHTTPMiddleware):
    """
    Rejects cross-origin requests from unknown origins before they reach a handler.
    Preflights never get here; CORSMiddleware answers those itself.
    """
    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if origin:
            own_origin = f"{request.url.scheme}://{request.url.netloc}"
            if origin != own_origin and not is_origin_allowed(origin):
                logger.warning(f"Request rejected: origin {origin} is not allowed ({request.method} {request.url.path}).")
                return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=error_body("Origin not allowed"))
        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Connect to MongoDB
    logger.info(f"Connecting to MongoDB database '{DB_NAME}'...")
    try:
        app_state["db_client"] = AsyncIOMotorClient(MONGODB_URI, tz_aware=True)
        app_state["db"] = app_state["db_client"][DB_NAME]
        app_state["expenses_collection"] = app_state["db"].get_collection(COLLECTION_NAME)
        await app_state["db_client"].admin.command('ping')
        logger.info(f"Connected to MongoDB database: {DB_NAME} (collection '{COLLECTION_NAME}').")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        if app_state.get("db_client"):
            app_state["db_client"].close()
        app_state["db_client"] = None
        app_state["db"] = None
        app_state["expenses_collection"] = None

    yield # Application runs here

    # Shutdown: Close MongoDB connection
    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")

app = FastAPI(
    title="Expense Tracker API",
    description="CRUD API for personal expense records.",
    version="1.0.0",
    lifespan=lifespan
)

# --- Error Envelope Handlers ---

def _format_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        parts.append(f"{field}: {error.get('msg', 'Invalid value')}")
    return "; ".join(parts) or "Invalid request data"

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = _format_validation_errors(exc.errors())
    logger.warning(f"Validation error on {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message))

@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {exc.detail}")
    return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=error_body(f"Rate limit exceeded: {exc.detail}"))

def server_error_response(request: Request, exc: Exception) -> JSONResponse:
    # Never leaks internal details to the client
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_body("Server Error"))

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Last resort for errors raised outside the routes; this response bypasses CORS
    return server_error_response(request, exc)

# --- Apply Rate Limiter State ---
app.state.limiter = limiter

# Make app state accessible via middleware
@app.middleware("http")
async def add_app_config_to_request(request: Request, call_next):
    """
    Adds the expenses collection to the request state.
    Unexpected route errors become the 500 envelope here, inside CORS, so
    allowed origins can still read the response.
    """
    request.state.expenses_collection = app_state.get("expenses_collection")
    try:
        return await call_next(request)
    except Exception as exc:
        return server_error_response(request, exc)

# --- Add Middleware (Order Matters: last added runs first) ---
# 1. Origin rejection for non-preflight requests
app.add_middleware(RejectDisallowedOriginMiddleware)
# 2. Rate Limiter Middleware (no-op unless RATE_LIMIT_ENABLED)
app.add_middleware(SlowAPIMiddleware)
# 3. CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=PREVIEW_ORIGIN_REGEX or None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# --- API Routes ---
app.include_router(api_router, prefix=API_PREFIX, tags=["expenses"])

@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url=f"{API_PREFIX}/expenses")

@app.get("/health", tags=["system"])
async def healthcheck() -> dict:
    database = "connected" if app_state.get("expenses_collection") is not None else "unavailable"
    return {"status": "ok", "database": database}


if __name__ == "__main__":
    import uvicorn
    # Our application logs use the RichHandler configured above
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=RELOAD,
        log_config=LOGGING_CONFIG
    )

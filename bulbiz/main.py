import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_google,  # noqa: F401
    models_invoice,  # noqa: F401
)
from .cache import get_redis_client
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.billing.router import router as billing_router
from .domain.dossiers.router import router as dossiers_router
from .domain.integrations.router import router as integrations_router
from .domain.invoices.router import router as invoices_router
from .domain.lifecycle import LifecycleError
from .domain.profile.router import router as profile_router
from .domain.public.router import router as public_router
from .domain.quotes.router import router as quotes_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if get_redis_client():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - dashboard cache will operate in fail-open mode")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Bulbiz API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
            return JSONResponse(status_code=401, content={"detail": "Non autorisé"})

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    """pydantic error contexts can hold exception instances"""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    logger.warning(f"⚠️ {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={
            "detail": "Transition de statut non autorisée",
            "axis": exc.axis,
            "current": exc.current,
            "requested": exc.new,
            "allowed": exc.allowed,
        },
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://bulbiz.fr,https://www.bulbiz.fr,http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(dossiers_router)
app.include_router(appointments_router)
app.include_router(quotes_router)
app.include_router(invoices_router)
app.include_router(public_router)
app.include_router(profile_router)
app.include_router(integrations_router)
app.include_router(billing_router)


@app.get("/")
def root():
    return {"message": "Bulbiz API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}

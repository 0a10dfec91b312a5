# backend/app/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import uuid

from app.api import pages
from app.api.dependencies import region_code_from_request
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import SecureXError
from app.core.i18n import Translator
from app.core.logging import logger
from app.core.regions import resolve_region
from app.db.database import close_backend_client
from app.middleware.security_headers import SecurityHeadersMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME} API")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME} API")
    await close_backend_client()


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=("/api/docs" if settings.ENVIRONMENT == "development" else None),
    redoc_url=("/api/redoc" if settings.ENVIRONMENT == "development" else None),
    lifespan=lifespan
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    SecurityHeadersMiddleware,
    connect_sources=[
        settings.SUPABASE_URL,
        settings.SUPABASE_URL.replace("https://", "wss://").replace("http://", "ws://"),
    ],
    hsts=settings.ENVIRONMENT != "development",
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


@app.exception_handler(SecureXError)
async def securex_exception_handler(request: Request, exc: SecureXError):
    """Render domain errors with a localized, user-presentable message"""
    translator = Translator(resolve_region(region_code_from_request(request)).language)
    extra = {"request_id": getattr(request.state, "request_id", None)}
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {str(exc)}", extra=extra)
    else:
        logger.info(f"{exc.error_code}: {str(exc)}", extra=extra)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail(translator(exc.message_key, **exc.params))},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.exception("Unhandled exception while handling request", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include routers
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


# SPA routes are mounted last so the catch-all never shadows the API
app.include_router(pages.router)

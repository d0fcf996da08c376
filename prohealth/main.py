import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import Base, engine
from .domain.bookings import router as bookings_router
from .domain.catalog import router as catalog_router
from .domain.insights import router as insights_router
from .domain.insights.gemini_client import GeminiClient
from .domain.payments import router as payments_router
from .domain.payments.mpesa_gateway import MpesaService
from .domain.payments.stripe_gateway import StripeService
from .errors import register_error_handlers
from .rate_limiter import RateLimiter
from .routes.auth import router as auth_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)

# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{config.FRONTEND_URL},http://localhost:3000").split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables created successfully")

    if not app.state.mpesa_service.is_available():
        logger.warning("⚠️ M-Pesa credentials not configured - STK push will be unavailable")
    if not app.state.stripe_service.is_available():
        logger.warning("⚠️ STRIPE_SECRET_KEY not configured - card payments will be unavailable")
    if not app.state.insight_client.is_available():
        logger.warning("⚠️ GOOGLE_GEMINI_API_KEY not configured - AI assistant will be unavailable")

    yield
    logger.info("Application shutting down...")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised ValueError, which is not JSON serializable
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


def create_app(
    *,
    mpesa_service: Optional[MpesaService] = None,
    stripe_service: Optional[StripeService] = None,
    rate_limiter: Optional[RateLimiter] = None,
    insight_client: Optional[GeminiClient] = None,
    lifespan_enabled: bool = True,
) -> FastAPI:
    """Build the application; gateways and the limiter live on app.state"""
    app = FastAPI(
        title="ProHealth Connect API",
        version="1.0.0",
        lifespan=lifespan if lifespan_enabled else None,
    )

    app.state.mpesa_service = mpesa_service or MpesaService.from_config()
    app.state.stripe_service = stripe_service or StripeService.from_config()
    app.state.rate_limiter = rate_limiter or RateLimiter(
        default_limit=config.AI_RATE_LIMIT, default_window_ms=config.AI_RATE_LIMIT_WINDOW_MS
    )
    app.state.insight_client = insight_client or GeminiClient.from_config()

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    register_error_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise
        duration_ms = (time.time() - start) * 1000
        logger.info(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )

    # Routes
    app.include_router(auth_router)
    app.include_router(catalog_router)
    app.include_router(bookings_router)
    app.include_router(payments_router)
    app.include_router(insights_router)

    @app.get("/")
    def root():
        return {"message": "ProHealth Connect API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()

"""
Mystic Star API
Tarot, horoscopes, natal charts, synastry, numerology and the Star Mentor
"""

from pathlib import Path
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from auth import auth_router
from config.settings import settings, IS_PRODUCTION
from database import init_db
from routers.admin_router import admin_router
from routers.billing_router import billing_router, webhook_router
from routers.divination_router import divination_router
from routers.horoscope_router import horoscope_router
from routers.mentor_router import mentor_router
from routers.newsletter_router import newsletter_router
from routers.readings_router import readings_router
from services.ai_gateway import AIGatewayError
from services.billing_service import CheckoutError, WebhookVerificationError
from services.premium_service import PremiumRequiredError
from utils.rate_limit import RateLimitExceeded, RateLimiterMiddleware, too_many_requests_response
from utils.responses import error_response
from utils.shared_utils import utcnow

# Logging setup - write ALL events to /logs/app.log
LOGS_DIR = Path("./logs")
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Shown when the AI is down or the circuit is open
AI_FALLBACK_MESSAGES = {
    "/api/crystal-ball": "The crystal ball is veiled in mist... Please try again in a moment.",
    "/api/tarot": "The cards refuse to speak right now... Please try again in a moment.",
    "/api/tarot-summary": "The voice of the universe is silent for now...",
    "/api/natal-chart": "The stars cannot be read at this moment...",
    "/api/synastry": "The celestial bonds are temporarily veiled...",
    "/api/numerology": "The numbers cannot speak right now...",
    "/api/astrocartography": "The planetary lines are shrouded in fog...",
    "/api/horoscope": "The prediction is not available right now...",
    "/api/mentor/chat": "The connection with the Mentor was lost among the stars. Please try again.",
}
DEFAULT_AI_FALLBACK = "The stars are silent right now. Please try again later."

app = FastAPI(title="Mystic Star API")


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return error_response("Internal Server Error", status=500)


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # JSON API only: nothing may be loaded or framed from these responses
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # HSTS only where HTTPS is guaranteed
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(RateLimiterMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), status=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]
    logger.info(f"Validation failed on {request.url.path}: {details}")
    return error_response("Invalid request", status=400, details=details)


@app.exception_handler(PremiumRequiredError)
async def premium_required_handler(request: Request, exc: PremiumRequiredError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return too_many_requests_response(exc.message, exc.retry_after)


@app.exception_handler(AIGatewayError)
async def ai_gateway_error_handler(request: Request, exc: AIGatewayError):
    logger.error(f"AI unavailable for {request.url.path}: {exc}")
    return error_response(AI_FALLBACK_MESSAGES.get(request.url.path, DEFAULT_AI_FALLBACK), status=503)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return error_response(exc.message, status=exc.status_code)


@app.exception_handler(WebhookVerificationError)
async def webhook_error_handler(request: Request, exc: WebhookVerificationError):
    logger.error(f"Stripe webhook rejected: {exc}")
    return error_response(f"Webhook Error: {exc}", status=400)


# ============================================================================
# STARTUP CHECKS
# ============================================================================
@app.on_event("startup")
async def check_env_keys_on_startup():
    """Check for missing environment variables on startup (non-fatal warning)"""
    ai_key_name = "OPENAI_API_KEY" if settings.ai_provider.lower() == "openai" else "GEMINI_API_KEY"
    key_checks = {
        "JWT_SECRET": settings.jwt_secret,
        ai_key_name: settings.openai_api_key if ai_key_name == "OPENAI_API_KEY" else settings.gemini_api_key,
        "STRIPE_SECRET_KEY": settings.stripe_secret_key,
        "STRIPE_WEBHOOK_SECRET": settings.stripe_webhook_secret,
    }
    missing = [env_key for env_key, value in key_checks.items() if not value]
    if missing:
        logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
    else:
        logger.info("Startup check: All critical environment variables are set")


# Initialize database on startup
@app.on_event("startup")
async def initialize_database():
    """Create all tables that do not exist yet."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(webhook_router)
app.include_router(auth_router)
app.include_router(divination_router)
app.include_router(horoscope_router)
app.include_router(mentor_router)
app.include_router(readings_router)
app.include_router(billing_router)
app.include_router(admin_router)
app.include_router(newsletter_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

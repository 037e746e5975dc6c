import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ✅ Import All API Routes
from app.api.routes import billing, billing_webhook, health, subscriptions

from app.core import config
from app.core.errors import BillingError
from app.core.logging_config import sanitize_log_data, setup_logging
from app.db.migrate import run_migrations

logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP
# ============================================

@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)
    settings = sanitize_log_data({
        "database_url": config.DATABASE_URL,
        "frontend_url": config.FRONTEND_URL,
        "stripe_secret_key": config.STRIPE_SECRET_KEY,
        "enforce_event_ordering": config.WEBHOOK_ENFORCE_EVENT_ORDERING,
    })
    logger.info(f"Starting Funnel Billing API: {settings}")
    if config.RUN_MIGRATIONS:
        run_migrations()
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Funnel Billing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ ERROR RESPONSES
# ============================================

@app.exception_handler(BillingError)
async def billing_error_handler(_: Request, exc: BillingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
    message = f"Invalid or missing parameters: {', '.join(f for f in fields if f)}" if any(fields) else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(subscriptions.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Funnel Billing API running"}

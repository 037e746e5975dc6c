import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./funnel_billing.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Identity provider (Supabase JWTs)
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION")

# ✅ Frontend
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

# ✅ Billing rules
FREE_TIER_NAME = os.getenv("FREE_TIER_NAME", "Free")
PENDING_SUBSCRIPTION_TTL_DAYS = int(os.getenv("PENDING_SUBSCRIPTION_TTL_DAYS", "7"))
LINKED_PERIOD_DAYS = int(os.getenv("LINKED_PERIOD_DAYS", "30"))
DEFAULT_FUNNEL_LIMIT = int(os.getenv("DEFAULT_FUNNEL_LIMIT", "3"))
WEBHOOK_ENFORCE_EVENT_ORDERING = os.getenv("WEBHOOK_ENFORCE_EVENT_ORDERING", "0") == "1"

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

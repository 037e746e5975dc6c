"""
Logging configuration for the Funnel Billing API.

Webhook and checkout logs carry Stripe identifiers; API keys, webhook
secrets and bearer tokens are masked before any handler writes them.
"""
import logging
import re
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

# Stripe secret/restricted keys, webhook signing secrets, bearer tokens
SECRET_PATTERN = re.compile(r"\b(sk|rk)_(live|test)_[A-Za-z0-9]+|\bwhsec_[A-Za-z0-9]+|Bearer\s+[A-Za-z0-9\-_.]+")

BILLING_LOG_FILE = "funnel_billing.log"


class StripeSecretFilter(logging.Filter):
    """Mask Stripe keys and bearer tokens in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = SECRET_PATTERN.sub("***REDACTED***", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating billing log file
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    secret_filter = StripeSecretFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    console_handler.addFilter(secret_filter)

    # Webhook outcomes are audited from this file
    file_handler = RotatingFileHandler(
        log_path / BILLING_LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    file_handler.addFilter(secret_filter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    # The SDK logs full request bodies at DEBUG
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)


SENSITIVE_KEYS = [
    "password", "token", "secret", "api_key", "signature", "authorization",
    "stripe_secret_key", "stripe_webhook_secret", "supabase_jwt_secret",
]


def _mask_url_password(url: str) -> str:
    return re.sub(r"(://[^:/@]+:)[^@]+@", r"\1***@", url)


def sanitize_log_data(data: dict) -> dict:
    """
    Sanitize settings before logging them.

    Secret-named keys are redacted, database URLs keep everything but the
    password, and nested dictionaries are sanitized too.

    Args:
        data: Dictionary to sanitize

    Returns:
        Sanitized copy without secrets
    """
    sanitized = {}
    for key, value in data.items():
        lowered = key.lower()
        if isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        elif value is not None and any(sensitive in lowered for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
        elif lowered.endswith("_url") and isinstance(value, str):
            sanitized[key] = _mask_url_password(value)
        else:
            sanitized[key] = value
    return sanitized

"""
Startup migrations for the billing schema.

Brings the database to the Alembic head revision and then checks that the
tier catalog can serve webhooks: downgrades need the Free tier to exist.
"""
import logging
import os
from typing import List

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core import config as app_config

logger = logging.getLogger(__name__)

# Shared by every API replica so only one of them upgrades at a time
BILLING_MIGRATION_LOCK_ID = 5_310_417_001

BILLING_TABLES = [
    "subscription_tiers",
    "user_subscriptions",
    "pending_subscriptions",
    "stripe_events",
    "funnels",
]


def alembic_config(database_url: str) -> Config:
    """Alembic config for alembic.ini at the repository root."""
    root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    cfg = Config(os.path.join(root, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(root, "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    # Keep the application's logging handlers
    cfg.attributes["configure_logger"] = False
    return cfg


def missing_billing_tables(engine: Engine) -> List[str]:
    existing = set(inspect(engine).get_table_names())
    return [table for table in BILLING_TABLES if table not in existing]


def check_tier_catalog(engine: Engine) -> bool:
    """
    Warn when the Free tier is absent. Subscription deletes and refunds fail
    with a 500 until it is seeded (scripts/seed_tiers.py).

    Returns:
        True if the Free tier exists
    """
    with engine.connect() as conn:
        count = conn.execute(
            text("SELECT COUNT(*) FROM subscription_tiers WHERE name = :name"),
            {"name": app_config.FREE_TIER_NAME},
        ).scalar()
    if not count:
        logger.warning(
            f"Tier catalog has no '{app_config.FREE_TIER_NAME}' tier; "
            f"downgrade webhooks will fail until scripts/seed_tiers.py is run"
        )
        return False
    return True


def run_migrations():
    """
    Run Alembic migrations to head revision.
    Uses an advisory lock on PostgreSQL to prevent concurrent migrations.
    """
    database_url = app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    logger.info("RUN_MIGRATIONS=1 -> upgrading billing schema to head")

    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None

    try:
        if database_url.startswith("postgresql"):
            lock_conn = engine.connect()
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_lock({BILLING_MIGRATION_LOCK_ID})"))
                lock_conn.commit()
                logger.info("Billing migration lock acquired")
            except SQLAlchemyError as lock_error:
                logger.warning(f"Could not acquire advisory lock: {lock_error}")
                lock_conn.close()
                lock_conn = None

        pending_tables = missing_billing_tables(engine)
        if pending_tables:
            logger.info(f"Creating billing tables: {', '.join(pending_tables)}")

        command.upgrade(alembic_config(database_url), "head")

        still_missing = missing_billing_tables(engine)
        if still_missing:
            raise RuntimeError(f"Billing tables missing after upgrade: {', '.join(still_missing)}")

        check_tier_catalog(engine)
        logger.info("Billing schema up to date")

    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn:
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({BILLING_MIGRATION_LOCK_ID})"))
                lock_conn.commit()
            except SQLAlchemyError as unlock_error:
                logger.warning(f"Could not release advisory lock: {unlock_error}")
            finally:
                lock_conn.close()
        engine.dispose()

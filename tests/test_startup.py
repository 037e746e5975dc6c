"""
Tests for startup logging and migrations.
"""
import logging

from sqlalchemy import create_engine, inspect, text

from app.core import config
from app.core.logging_config import StripeSecretFilter, sanitize_log_data
from app.db import migrate


def test_sanitize_masks_secrets_and_database_password():
    settings = sanitize_log_data({
        "database_url": "postgresql://billing:hunter2@db:5432/funnels",
        "stripe_secret_key": "sk_live_abc123",
        "stripe_webhook_secret": None,
        "nested": {"supabase_jwt_secret": "jwt"},
        "enforce_event_ordering": False,
    })

    assert settings == {
        "database_url": "postgresql://billing:***@db:5432/funnels",
        "stripe_secret_key": "***REDACTED***",
        "stripe_webhook_secret": None,
        "nested": {"supabase_jwt_secret": "***REDACTED***"},
        "enforce_event_ordering": False,
    }


def test_secret_filter_masks_stripe_keys():
    record = logging.LogRecord(
        "app.services.stripe_service", logging.ERROR, __file__, 1,
        "Stripe rejected key %s for customer %s", ("sk_test_4eC39HqLyjWDarjtT1zdp7dc", "cus_1"), None,
    )

    assert StripeSecretFilter().filter(record) is True
    assert record.getMessage() == "Stripe rejected key ***REDACTED*** for customer cus_1"


def test_secret_filter_leaves_identifiers_alone():
    record = logging.LogRecord(
        "app.services.webhook_service", logging.INFO, __file__, 1,
        "Processed webhook event: %s, id=%s", ("checkout.session.completed", "evt_1"), None,
    )

    StripeSecretFilter().filter(record)

    assert record.getMessage() == "Processed webhook event: checkout.session.completed, id=evt_1"


def test_run_migrations_creates_billing_schema(tmp_path, monkeypatch, caplog):
    database_url = f"sqlite:///{tmp_path / 'billing.db'}"
    monkeypatch.setattr(config, "DATABASE_URL", database_url)

    with caplog.at_level(logging.WARNING, logger="app.db.migrate"):
        migrate.run_migrations()

    engine = create_engine(database_url)
    try:
        assert set(migrate.BILLING_TABLES) <= set(inspect(engine).get_table_names())
        assert migrate.missing_billing_tables(engine) == []
    finally:
        engine.dispose()
    assert "no 'Free' tier" in caplog.text


def test_tier_catalog_check_finds_free_tier(tmp_path, monkeypatch):
    database_url = f"sqlite:///{tmp_path / 'billing.db'}"
    monkeypatch.setattr(config, "DATABASE_URL", database_url)
    migrate.run_migrations()

    engine = create_engine(database_url)
    try:
        with engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO subscription_tiers "
                "(id, name, price_monthly, price_yearly, price_lifetime, max_funnels, is_active, sort_order) "
                "VALUES ('t_free', 'Free', 0, 0, 0, 3, 1, 0)"
            ))
        assert migrate.check_tier_catalog(engine) is True
    finally:
        engine.dispose()

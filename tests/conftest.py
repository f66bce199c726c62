"""Shared fixtures for notification dispatcher tests."""

from datetime import datetime, timezone

import pytest

from notifier.config.environment import SETTINGS_ENV_KEYS
from notifier.config.loader import default_kind_registry
from notifier.config.models import AppSettings
from notifier.logging.context import clear_log_context
from notifier.notifications.executor import DispatchExecutor
from notifier.notifications.templates import TemplateRenderer

from tests.helpers import FakeTransportProvider
from tests.helpers.environment import GENERIC_SMTP_ENV, HOSTED_MAILBOX_ENV


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch):
    """Start every test from declared settings defaults, whatever the shell exports."""
    for key in SETTINGS_ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def transport_env():
    """Credentials for both transport schemes as a plain mapping."""
    return {**HOSTED_MAILBOX_ENV, **GENERIC_SMTP_ENV}


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set credentials for both schemes in os.environ."""
    for key, value in {**HOSTED_MAILBOX_ENV, **GENERIC_SMTP_ENV}.items():
        monkeypatch.setenv(key, value)
    for key in ("SMTP_SECURE", "HOSTED_MAILBOX_SERVICE", "PUBLIC_APP_URL", "ADMIN_EMAIL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clear_transport_env(monkeypatch):
    """Remove every transport credential from os.environ."""
    for key in (*HOSTED_MAILBOX_ENV, *GENERIC_SMTP_ENV, "SMTP_SECURE", "HOSTED_MAILBOX_SERVICE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def registry():
    return default_kind_registry()


@pytest.fixture
def now():
    """Fixed dispatch timestamp: 5 January 2026, 3:04:05 PM UTC."""
    return datetime(2026, 1, 5, 15, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def renderer(registry, settings):
    return TemplateRenderer(registry=registry, settings=settings)


@pytest.fixture
def fake_provider():
    return FakeTransportProvider()


@pytest.fixture
def executor(registry, settings, renderer, fake_provider, transport_env):
    """Executor wired to the counting fake transport provider."""
    return DispatchExecutor(
        registry=registry,
        settings=settings,
        renderer=renderer,
        transport_provider=fake_provider,
        environ=transport_env,
    )

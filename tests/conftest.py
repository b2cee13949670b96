"""Pytest configuration and shared fixtures for Community Connect tests."""

import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_ANON_KEY", "test_anon_key_12345678")

import sys
from datetime import UTC, datetime
from typing import Callable

import pytest
from loguru import logger

from communityconnect.config import Environment, Settings
from communityconnect.context import AppContext
from communityconnect.notices import NoticeBoard

from fakes import ALICE, BOB, CAROL, HELPING_HANDS, InMemoryBackend, profile_row


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings for the testing profile with a temporary data directory."""
    return Settings(
        SUPABASE_URL="https://project.supabase.test",
        SUPABASE_ANON_KEY="test_anon_key_12345678",
        environment=Environment.TESTING,
        data_dir=tmp_path,
    )  # type: ignore[call-arg]


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def backend() -> InMemoryBackend:
    """Backend seeded with four profiles and one badge."""
    store = InMemoryBackend()
    store.tables["profiles"] = [
        profile_row(ALICE, "Alice"),
        profile_row(BOB, "Bob"),
        profile_row(CAROL, "Carol", verified=False),
        profile_row(HELPING_HANDS, "Helping Hands", role="organization"),
    ]
    store.tables["badges"] = [
        {
            "id": "badge-first-donor",
            "name": "First Donor",
            "icon": "🩸",
            "description": "Answered a blood request",
        }
    ]
    store.tables["user_badges"] = [
        {"id": "ub-1", "user_id": ALICE, "badge_id": "badge-first-donor"}
    ]
    store.add_account("alice@example.org", "alice-password", ALICE)
    store.add_account("bob@example.org", "bob-password", BOB)
    return store


@pytest.fixture
def make_ctx(
    backend: InMemoryBackend,
    test_settings: Settings,
) -> Callable[[str | None], AppContext]:
    """Build an ``AppContext`` signed in as the given user (None for signed out)."""

    def _make(user_id: str | None = ALICE) -> AppContext:
        backend.sign_in_as(user_id)
        return AppContext.from_backend(backend, NoticeBoard(), test_settings)

    return _make

"""
Shared fixtures for the vacation workflow test suite.

Every test that touches persistence gets its own file-backed SQLite
database under ``tmp_path``, so tests never share state and threaded
tests exercise real database locking.
"""

import json
import logging
from io import StringIO

import pytest

from vacation_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from vacation_kernel.domain.clock import DeterministicClock
from vacation_kernel.domain.vacation import Role, UserProfile, VacationStatus
from vacation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from vacation_kernel.services.request_store import RequestStore
from vacation_kernel.services.sequence_service import SequenceService
from vacation_kernel.services.subscriptions import SubscriptionHub
from vacation_kernel.services.user_directory import UserDirectory
from vacation_services.workflow_engine import VacationWorkflowEngine

from tests.factories import TEST_NOW, make_submission


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture vacation_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "vacation_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("vacation_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'vacation_test.db'}"


@pytest.fixture
def session_factory(database_url):
    """Fresh schema in a per-test SQLite file."""
    init_engine_from_url(database_url, sqlite_busy_timeout=30.0)
    create_tables()
    factory = get_session_factory()
    with session_scope(factory) as session:
        SequenceService(session).initialize_sequences()
    yield factory
    reset_engine()


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def hub():
    return SubscriptionHub()


@pytest.fixture
def request_store(session_factory, deterministic_clock, hub):
    return RequestStore(session_factory, clock=deterministic_clock, hub=hub)


@pytest.fixture
def user_directory(session_factory):
    return UserDirectory(session_factory)


@pytest.fixture
def workflow_engine(request_store, deterministic_clock, user_directory):
    return VacationWorkflowEngine(
        request_store,
        clock=deterministic_clock,
        directory=user_directory,
    )


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def submitted(workflow_engine):
    """Factory: submit a valid request, overriding any field."""

    def _submit(**overrides):
        return workflow_engine.submit(make_submission(**overrides))

    return _submit


@pytest.fixture
def advanced(workflow_engine, submitted):
    """Factory: a request approved up to (but not past) the given status."""

    chain = (
        (VacationStatus.HR_REVIEW, Role.HR),
        (VacationStatus.PM_REVIEW, Role.PM),
        (VacationStatus.APPROVED, Role.MANAGER),
    )

    def _advance(target: VacationStatus, **overrides):
        request = submitted(**overrides)
        for status, role in chain:
            if request.status is target:
                break
            request = workflow_engine.act(request.id, role, "approve")
        assert request.status is target
        return request

    return _advance


@pytest.fixture
def seeded_directory(user_directory):
    for profile in (
        UserProfile("u-anna", "Anna Berger", "anna@example.com", Role.EMPLOYEE),
        UserProfile("u-ben", "Ben Okafor", "ben@example.com", Role.EMPLOYEE),
        UserProfile("u-carl", "carl Adams", "carl@example.com", Role.EMPLOYEE),
        UserProfile("u-hana", "Hana Weiss", "hana@example.com", Role.HR),
        UserProfile("u-new", "Nina Neu", "nina@example.com", Role.EMPLOYEE, is_approved=False),
    ):
        user_directory.upsert_profile(profile)
    return user_directory

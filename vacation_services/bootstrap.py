"""
vacation_services.bootstrap -- Wiring from settings to a ready engine.

Responsibility:
    Turns ``WorkflowSettings`` into an initialized database engine,
    created tables, seeded sequence counters, and a
    ``VacationWorkflowEngine`` backed by a ``RequestStore`` and a
    ``UserDirectory``.  This is the only place the layers meet.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from vacation_config import WorkflowSettings, get_active_settings
from vacation_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from vacation_kernel.domain.clock import Clock, SystemClock
from vacation_kernel.logging_config import configure_logging, get_logger
from vacation_kernel.services.request_store import RequestStore
from vacation_kernel.services.sequence_service import SequenceService
from vacation_kernel.services.subscriptions import SubscriptionHub
from vacation_kernel.services.user_directory import UserDirectory
from vacation_services.workflow_engine import VacationWorkflowEngine

logger = get_logger("services.bootstrap")


def build_workflow_engine(
    settings: WorkflowSettings | None = None,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> VacationWorkflowEngine:
    """
    Initialize persistence and return a wired workflow engine.

    Args:
        settings: Runtime settings; defaults to ``get_active_settings()``.
        clock: Injected clock; defaults to a SystemClock in the configured
            timezone.
        create_schema: Create missing tables and sequence counters.
    """
    settings = settings or get_active_settings()
    configure_logging(level=settings.log_level)

    init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        sqlite_busy_timeout=settings.sqlite_busy_timeout_seconds,
    )
    factory = get_session_factory()

    if create_schema:
        create_tables()
        with session_scope(factory) as session:
            SequenceService(session).initialize_sequences()

    clock = clock or SystemClock(ZoneInfo(settings.timezone))
    store = RequestStore(factory, clock=clock, hub=SubscriptionHub())
    engine = VacationWorkflowEngine(store, clock=clock, directory=UserDirectory(factory))

    logger.info(
        "workflow_engine_ready",
        extra={"timezone": settings.timezone, "schema_created": create_schema},
    )
    return engine

"""
WorkflowSettings schema.

Runtime settings of the vacation workflow: where the database lives, how
the engine pools connections, how loud logging is, and which timezone
decides what "today" means for submission validation.
"""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class WorkflowSettings:
    """Validated, immutable runtime settings."""

    database_url: str
    echo_sql: bool = False
    log_level: str = "INFO"
    pool_size: int = 5
    max_overflow: int = 10
    sqlite_busy_timeout_seconds: float = 30.0
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database.url must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow must be >= 0, got {self.max_overflow}")
        if self.sqlite_busy_timeout_seconds <= 0:
            raise ValueError(
                "database.sqlite_busy_timeout_seconds must be > 0, "
                f"got {self.sqlite_busy_timeout_seconds}"
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

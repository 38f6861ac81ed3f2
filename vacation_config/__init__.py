"""
vacation_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way components obtain settings.
    No other module reads configuration files or ``VACATION_*``
    environment variables.

Architecture position:
    Configuration.  Sits beside ``vacation_kernel``; the kernel never
    imports from here.  ``vacation_services.bootstrap`` translates
    settings into kernel calls (engine URL, pool sizes, log level).

Failure modes:
    - ``FileNotFoundError`` -- ``VACATION_CONFIG_FILE`` names a missing file.
    - ``ValueError`` -- unknown key or invalid value, naming the key.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from vacation_config.loader import load_settings
from vacation_config.schema import WorkflowSettings

_logger = logging.getLogger("vacation_kernel.config")


def get_active_settings(
    environ: Mapping[str, str] | None = None,
    defaults_path: Path | None = None,
) -> WorkflowSettings:
    """The ONLY public settings entrypoint.

    Args:
        environ: Environment to read overrides from; defaults to
            ``os.environ``.
        defaults_path: Alternative defaults file (tests).

    Returns:
        Frozen ``WorkflowSettings``.
    """
    env = os.environ if environ is None else environ
    if defaults_path is None:
        settings = load_settings(env)
    else:
        settings = load_settings(env, defaults_path)

    _logger.info(
        "vacation_settings_loaded",
        extra={
            "database_backend": settings.database_url.split(":", 1)[0],
            "log_level": settings.log_level,
            "timezone": settings.timezone,
            "override_file": env.get("VACATION_CONFIG_FILE"),
        },
    )
    return settings


__all__ = ["WorkflowSettings", "get_active_settings"]

"""
Settings loader (``vacation_config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml``, merges an optional override file and
environment overrides on top, and parses the result into a frozen
``WorkflowSettings``.  Callers go through
``vacation_config.get_active_settings()``; this module is its tooling.

Invariants enforced
-------------------
* Layering order: defaults, then the ``VACATION_CONFIG_FILE`` file, then
  ``VACATION_*`` environment variables.  Later layers win key by key.
* Unknown sections or keys raise ``ValueError`` naming the key; typos never
  fall back to a default silently.

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or bad value  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from vacation_config.schema import WorkflowSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_FILE = "VACATION_CONFIG_FILE"
ENV_DATABASE_URL = "VACATION_DATABASE_URL"
ENV_LOG_LEVEL = "VACATION_LOG_LEVEL"
ENV_ECHO_SQL = "VACATION_ECHO_SQL"

# section -> allowed keys
KNOWN_KEYS: dict[str, frozenset[str]] = {
    "database": frozenset({
        "url",
        "echo_sql",
        "pool_size",
        "max_overflow",
        "sqlite_busy_timeout_seconds",
    }),
    "logging": frozenset({"level"}),
    "calendar": frozenset({"timezone"}),
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def check_known_keys(data: Mapping[str, Any], source: str) -> None:
    for section, values in data.items():
        if section not in KNOWN_KEYS:
            raise ValueError(f"{source}: unknown section {section!r}")
        if not isinstance(values, dict):
            raise ValueError(f"{source}: section {section!r} must be a mapping")
        for key in values:
            if key not in KNOWN_KEYS[section]:
                raise ValueError(f"{source}: unknown key {section}.{key}")


def merge(base: dict[str, dict[str, Any]], override: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Section-wise merge; ``override`` wins key by key."""
    merged = {section: dict(values) for section, values in base.items()}
    for section, values in override.items():
        merged.setdefault(section, {}).update(values)
    return merged


def parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def parse_number(value: Any, key: str, kind: type) -> Any:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def parse_timezone(value: Any) -> str:
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"calendar.timezone: unknown timezone {name!r}") from None
    return name


def env_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    if environ.get(ENV_DATABASE_URL):
        overrides.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_ECHO_SQL):
        overrides.setdefault("database", {})["echo_sql"] = environ[ENV_ECHO_SQL]
    if environ.get(ENV_LOG_LEVEL):
        overrides.setdefault("logging", {})["level"] = environ[ENV_LOG_LEVEL]
    return overrides


def parse_settings(data: Mapping[str, Mapping[str, Any]]) -> WorkflowSettings:
    """Build ``WorkflowSettings`` from merged, key-checked sections."""
    database = data.get("database", {})
    log = data.get("logging", {})
    calendar = data.get("calendar", {})

    if "url" not in database:
        raise ValueError("database.url is required")

    return WorkflowSettings(
        database_url=str(database["url"]),
        echo_sql=parse_bool(database.get("echo_sql", False), "database.echo_sql"),
        log_level=str(log.get("level", "INFO")).upper(),
        pool_size=parse_number(database.get("pool_size", 5), "database.pool_size", int),
        max_overflow=parse_number(database.get("max_overflow", 10), "database.max_overflow", int),
        sqlite_busy_timeout_seconds=parse_number(
            database.get("sqlite_busy_timeout_seconds", 30),
            "database.sqlite_busy_timeout_seconds",
            float,
        ),
        timezone=parse_timezone(calendar.get("timezone", "UTC")),
    )


def load_settings(
    environ: Mapping[str, str],
    defaults_path: Path = DEFAULTS_PATH,
) -> WorkflowSettings:
    """
    Load layered settings.

    Preconditions:
        - ``defaults_path`` exists.
    Postconditions:
        - Returns a validated, frozen ``WorkflowSettings``.
    """
    data = load_yaml_file(defaults_path)
    check_known_keys(data, str(defaults_path))

    override_path = environ.get(ENV_CONFIG_FILE)
    if override_path:
        override = load_yaml_file(Path(override_path))
        check_known_keys(override, override_path)
        data = merge(data, override)

    return parse_settings(merge(data, env_overrides(environ)))

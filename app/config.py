"""
app/config.py

Environment-driven settings for the import service process and pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

ALLOWED_APP_MODES = ("cloud",)

# Settings that must parse as positive integers when present.
_POSITIVE_INT_VARS = ("IMPORT_CHUNK_SIZE", "IMPORT_MAX_RECORDS")


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _raw_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_bool_env(name: str, default: bool) -> bool:
    raw = _raw_env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = _raw_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = _raw_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    return _raw_env(name) or default


@dataclass(frozen=True)
class ServiceSettings:
    """
    Process-level settings read once at API startup.
    """

    app_mode: str | None
    log_level: str = "INFO"


def get_service_settings() -> ServiceSettings:
    mode = _raw_env("APP_MODE")
    return ServiceSettings(
        app_mode=mode.lower() if mode else None,
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
    )


def environment_problems() -> list[str]:
    """
    Every missing or invalid startup variable, so an operator can fix them
    all in one restart. An empty list means the environment is usable.
    """

    problems: list[str] = []
    settings = get_service_settings()
    if settings.app_mode is None:
        problems.append("APP_MODE is not set. It must be explicitly set to 'cloud'.")
    elif settings.app_mode not in ALLOWED_APP_MODES:
        problems.append(
            f"APP_MODE='{settings.app_mode}' is not valid. Allowed values: {list(ALLOWED_APP_MODES)}."
        )

    if not (_raw_env("DATABASE_URL") or _raw_env("CLOUD_DATABASE_URL")):
        problems.append(
            "No database URL configured. Set DATABASE_URL or CLOUD_DATABASE_URL. "
            "SQLite and local database fallbacks are not permitted."
        )

    for name in _POSITIVE_INT_VARS:
        raw = _raw_env(name)
        if raw is not None and (not raw.isdigit() or int(raw) < 1):
            problems.append(f"{name}='{raw}' must be a positive integer.")
    return problems


@dataclass(frozen=True)
class ContentImportSettings:
    """
    Runtime settings for the bulk content import pipeline.
    """

    chunk_size: int = 50
    chunk_pause_seconds: float = 0.1
    record_timeout_ms: int = 5000
    progress_error_window: int = 20
    history_limit: int = 20
    max_records_per_import: int = 5000
    module_id_min: int = 0
    module_id_max: int = 20
    micro_skill_id_min: int = 1
    micro_skill_id_max: int = 74
    default_lifecycle_state: str = "draft"
    stalled_after_minutes: int = 30
    stalled_sweep_interval_minutes: int = 5
    log_row_failures: bool = True


@lru_cache(maxsize=1)
def get_content_import_settings() -> ContentImportSettings:
    """
    Return cached content import settings from IMPORT_* environment variables.
    """

    module_min = max(0, _get_int_env("IMPORT_MODULE_ID_MIN", 0))
    skill_min = max(0, _get_int_env("IMPORT_MICRO_SKILL_ID_MIN", 1))
    return ContentImportSettings(
        chunk_size=max(1, _get_int_env("IMPORT_CHUNK_SIZE", 50)),
        chunk_pause_seconds=max(0.0, _get_float_env("IMPORT_CHUNK_PAUSE_SECONDS", 0.1)),
        record_timeout_ms=max(0, _get_int_env("IMPORT_RECORD_TIMEOUT_MS", 5000)),
        progress_error_window=max(1, _get_int_env("IMPORT_PROGRESS_ERROR_WINDOW", 20)),
        history_limit=max(1, _get_int_env("IMPORT_HISTORY_LIMIT", 20)),
        max_records_per_import=max(1, _get_int_env("IMPORT_MAX_RECORDS", 5000)),
        module_id_min=module_min,
        module_id_max=max(module_min, _get_int_env("IMPORT_MODULE_ID_MAX", 20)),
        micro_skill_id_min=skill_min,
        micro_skill_id_max=max(skill_min, _get_int_env("IMPORT_MICRO_SKILL_ID_MAX", 74)),
        default_lifecycle_state=_get_str_env("IMPORT_DEFAULT_LIFECYCLE_STATE", "draft").lower(),
        stalled_after_minutes=max(1, _get_int_env("IMPORT_STALLED_AFTER_MINUTES", 30)),
        stalled_sweep_interval_minutes=max(1, _get_int_env("IMPORT_STALLED_SWEEP_INTERVAL_MINUTES", 5)),
        log_row_failures=_get_bool_env("IMPORT_LOG_ROW_FAILURES", True),
    )

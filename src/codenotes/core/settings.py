"""Settings loader for codenotes."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_EXPORT_FILENAME = "code_audit_report.xlsx"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    gemini_api_key: str | None
    gemini_base_url: str
    gemini_model: str
    gemini_timeout_s: float
    gemini_search_grounding: bool
    export_path: Path
    log_level: str


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))
    data_dir = Path(os.environ.get("CODENOTES_DATA_DIR", "~/.codenotes")).expanduser()
    gemini_api_key = (
        os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY") or None
    )
    gemini_base_url = os.environ.get("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL)
    gemini_model = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
    gemini_timeout_s = _parse_float(
        os.environ.get("GEMINI_TIMEOUT_S", "60"), "GEMINI_TIMEOUT_S"
    )
    gemini_search_grounding = _parse_bool(
        os.environ.get("GEMINI_SEARCH_GROUNDING", "false"), "GEMINI_SEARCH_GROUNDING"
    )
    export_path = Path(
        os.environ.get("CODENOTES_EXPORT_PATH", DEFAULT_EXPORT_FILENAME)
    ).expanduser()
    log_level = _parse_log_level(os.environ.get("CODENOTES_LOG_LEVEL", "WARNING"))

    return Settings(
        data_dir=data_dir,
        gemini_api_key=gemini_api_key,
        gemini_base_url=gemini_base_url,
        gemini_model=gemini_model,
        gemini_timeout_s=gemini_timeout_s,
        gemini_search_grounding=gemini_search_grounding,
        export_path=export_path,
        log_level=log_level,
    )


def _parse_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid float for {name}: {value}") from exc


def _parse_bool(value: str, name: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value}")


def _parse_log_level(value: str) -> str:
    normalized = value.strip().upper()
    if normalized not in LOG_LEVELS:
        raise ValueError(f"Invalid log level for CODENOTES_LOG_LEVEL: {value}")
    return normalized

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


BASE_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DATA_URL = "https://n8n-n8n.hqzrjg.easypanel.host/webhook/6b5bc95c-2a06-46b5-9be8-94a60f93874c"
DEFAULT_ASSISTANT_URL = "https://n8n-n8n.hqzrjg.easypanel.host/webhook/a3a9081e-8839-4696-b18b-9087988a74be"
DEFAULT_TIMEOUT = 30.0
DEFAULT_SESSION_FILE = BASE_DIR / ".chat_session_id"

PAGE_SIZE = 10


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    data_url: str = DEFAULT_DATA_URL
    assistant_url: str = DEFAULT_ASSISTANT_URL
    timeout: float = DEFAULT_TIMEOUT
    strict_months: bool = False
    session_file: Path = DEFAULT_SESSION_FILE
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        data_url=os.getenv("BUDGET_DASHBOARD_DATA_URL", DEFAULT_DATA_URL),
        assistant_url=os.getenv("BUDGET_DASHBOARD_ASSISTANT_URL", DEFAULT_ASSISTANT_URL),
        timeout=_env_float("BUDGET_DASHBOARD_TIMEOUT", DEFAULT_TIMEOUT),
        strict_months=_env_bool("BUDGET_DASHBOARD_STRICT_MONTHS"),
        session_file=Path(os.getenv("BUDGET_DASHBOARD_SESSION_FILE", str(DEFAULT_SESSION_FILE))),
        log_level=os.getenv("BUDGET_DASHBOARD_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stream handler to the root logger; safe to call twice."""
    level_name = (level or load_settings().log_level).upper()
    numeric = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=numeric,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    root.setLevel(numeric)

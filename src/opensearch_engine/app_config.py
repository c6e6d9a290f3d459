from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from opensearch_engine.logging_config import DEFAULT_LOG_FILE
from opensearch_engine.template import DEFAULT_APPLICATION_NAME


@dataclass
class AppConfig:
    log_level: str
    log_consumers: list | None
    log_file: str
    application_name: str
    language: str | None
    user_agent: str
    request_timeout_seconds: float
    suggestions_timeout_seconds: float
    image_retry_attempts: int


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def parse_app_config(config: dict) -> AppConfig:
    application_name = str(config.get("ApplicationName", DEFAULT_APPLICATION_NAME)).strip()
    return AppConfig(
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
        log_file=str(config.get("LogFile", DEFAULT_LOG_FILE)),
        application_name=application_name or DEFAULT_APPLICATION_NAME,
        language=str(config.get("Language", "")).strip() or None,
        user_agent=str(config.get("UserAgent", application_name or DEFAULT_APPLICATION_NAME)),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 30)),
        suggestions_timeout_seconds=float(config.get("SuggestionsTimeoutSeconds", 10)),
        image_retry_attempts=int(config.get("ImageRetryAttempts", 3)),
    )


def apply_env_overrides(app: AppConfig) -> AppConfig:
    application_name = os.environ.get("OPENSEARCH_APPLICATION_NAME", "").strip()
    if application_name:
        app.application_name = application_name
    language = os.environ.get("OPENSEARCH_LANGUAGE", "").strip()
    if language:
        app.language = language
    return app

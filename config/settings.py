"""
Configuration loader for the Niles assistant.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


class ConfigurationError(Exception):
    """Raised at startup when a required collaborator cannot be configured."""


@dataclass
class BotConfig:
    name: str = "Niles"
    app_id: str = "1"
    trusted_senders: list[str] = field(default_factory=lambda: ["probot"])


@dataclass
class RecognizerConfig:
    type: str = "keyword"                   # "keyword" | "llm"
    provider: str = "anthropic"             # llm only: "anthropic" | "openai"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    temperature: float = 0.0
    max_tokens: int = 200
    min_score: float = 0.0


@dataclass
class DatabaseConfig:
    store_backend: str = "memory"           # "memory" | "file"
    store_file_dir: str = "./data"          # directory for file backend


@dataclass
class IssueServiceConfig:
    webhook_url: str = ""                   # empty → mock service
    auth_token: str = ""
    timeout_seconds: float = 10.0


@dataclass
class Settings:
    app_name: str = "Niles"
    debug: bool = False
    bot: BotConfig = field(default_factory=BotConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    issue_service: IssueServiceConfig = field(default_factory=IssueServiceConfig)


_settings: Optional[Settings] = None

_ENV_PATTERN = re.compile(r'\$\{(\w+)(?::-([^}]*))?\}')


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} and ${VAR_NAME:-default} patterns with environment values."""
    def replacer(match):
        var_name, default = match.group(1), match.group(2)
        if var_name in os.environ:
            return os.environ[var_name]
        return default if default is not None else match.group(0)
    return _ENV_PATTERN.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "NILES_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "bot" in raw:
            b = raw["bot"] or {}
            settings.bot = BotConfig(
                name=b.get("name", "Niles"),
                app_id=str(b.get("app_id") or "1"),
                trusted_senders=list(b.get("trusted_senders", ["probot"])),
            )

        if "recognizer" in raw:
            r = raw["recognizer"] or {}
            settings.recognizer = RecognizerConfig(
                type=r.get("type", "keyword"),
                provider=r.get("provider", "anthropic"),
                model=r.get("model", settings.recognizer.model),
                api_key=r.get("api_key", ""),
                temperature=float(r.get("temperature", 0.0)),
                max_tokens=int(r.get("max_tokens", 200)),
                min_score=float(r.get("min_score", 0.0)),
            )

        if "database" in raw:
            db = raw["database"] or {}
            settings.database = DatabaseConfig(
                store_backend=db.get("store_backend", settings.database.store_backend),
                store_file_dir=db.get("store_file_dir", settings.database.store_file_dir),
            )

        if "issue_service" in raw:
            svc = raw["issue_service"] or {}
            settings.issue_service = IssueServiceConfig(
                webhook_url=svc.get("webhook_url", ""),
                auth_token=svc.get("auth_token", ""),
                timeout_seconds=float(svc.get("timeout_seconds", 10.0)),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings

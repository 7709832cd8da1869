import logging
import os
import re
from functools import lru_cache
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from .errors import ConfigError

logger = logging.getLogger(__name__)

SOURCE_ID_PATTERN = re.compile(r"^[a-f0-9-]+$", re.IGNORECASE)

DEFAULT_API_BASE_URL = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_FALLBACK_CATEGORY = "其他"
DEFAULT_ACTIVE_STATUSES = ["active", "Active", "显示"]


class Settings(BaseModel):
    notion_token: Optional[str] = None
    links_database_id: Optional[str] = None
    legacy_page_id: Optional[str] = None
    config_database_id: Optional[str] = None
    active_user: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    notion_version: str = DEFAULT_NOTION_VERSION
    # per HTTP request; fetch_timeout bounds a whole multi-page fetch
    request_timeout: float = 10.0
    fetch_timeout: float = 30.0
    fetch_retries: int = 3
    fallback_category: str = DEFAULT_FALLBACK_CATEGORY
    active_statuses: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ACTIVE_STATUSES)
    )
    filter_inactive: bool = True
    host: str = "127.0.0.1"
    port: int = 8765
    environment: str = "development"

    @property
    def default_source_id(self) -> Optional[str]:
        """Link database id, falling back to the legacy page id variable."""
        return self.links_database_id or self.legacy_page_id


class EnvValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


def _split_list(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    values = [part.strip() for part in raw.split(",")]
    return [v for v in values if v]


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables. Unset variables keep the defaults."""
    env = os.environ if environ is None else environ

    values = {
        "notion_token": env.get("NOTION_TOKEN") or None,
        "links_database_id": env.get("NOTION_DATABASE_ID") or None,
        "legacy_page_id": env.get("NOTION_PAGE_ID") or None,
        "config_database_id": env.get("NOTION_CONFIG_DATABASE_ID") or None,
        "active_user": env.get("NOTION_ACTIVE_USER") or None,
        "api_base_url": env.get("NOTION_API_BASE_URL"),
        "notion_version": env.get("NOTION_VERSION"),
        "request_timeout": env.get("NAVBOARD_REQUEST_TIMEOUT"),
        "fetch_timeout": env.get("NAVBOARD_FETCH_TIMEOUT"),
        "fetch_retries": env.get("NAVBOARD_FETCH_RETRIES"),
        "fallback_category": env.get("NAVBOARD_FALLBACK_CATEGORY"),
        "active_statuses": _split_list(env.get("NAVBOARD_ACTIVE_STATUSES")),
        "host": env.get("NAVBOARD_HOST"),
        "port": env.get("NAVBOARD_PORT"),
        "environment": env.get("NAVBOARD_ENV"),
    }
    if env.get("NAVBOARD_FILTER_INACTIVE") is not None:
        values["filter_inactive"] = _as_bool(env["NAVBOARD_FILTER_INACTIVE"])

    return Settings.model_validate(
        {k: v for k, v in values.items() if v is not None}
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def validate_environment(settings: Settings) -> EnvValidation:
    errors: List[str] = []
    warnings: List[str] = []

    source_id = settings.default_source_id
    if not source_id:
        errors.append("NOTION_DATABASE_ID (or NOTION_PAGE_ID) is required")
    elif not SOURCE_ID_PATTERN.match(source_id):
        errors.append("NOTION_DATABASE_ID format is invalid")

    if not settings.notion_token:
        errors.append("NOTION_TOKEN is required for the official Notion API")

    if not settings.config_database_id:
        warnings.append(
            "NOTION_CONFIG_DATABASE_ID is not set; categories and site config are unavailable"
        )
    elif not SOURCE_ID_PATTERN.match(settings.config_database_id):
        errors.append("NOTION_CONFIG_DATABASE_ID format is invalid")

    return EnvValidation(is_valid=not errors, errors=errors, warnings=warnings)


def environment_info(settings: Settings) -> dict:
    """Presence snapshot of the configuration. Secrets are reported as set/not set only."""
    return {
        "environment": settings.environment,
        "notionDatabaseId": settings.links_database_id or "not set",
        "notionPageId": settings.legacy_page_id or "not set",
        "notionConfigDatabaseId": settings.config_database_id or "not set",
        "notionToken": "set" if settings.notion_token else "not set",
        "notionActiveUser": "set" if settings.active_user else "not set",
        "isProduction": settings.environment == "production",
        "isDevelopment": settings.environment == "development",
    }


def check_source_id(source_id: Optional[str], label: str = "Database ID") -> str:
    if not source_id:
        raise ConfigError(f"{label} is required")
    source_id = source_id.strip()
    if not SOURCE_ID_PATTERN.match(source_id):
        raise ConfigError(f"{label} format is invalid")
    return source_id


def require_token(settings: Settings) -> str:
    if not settings.notion_token:
        raise ConfigError("NOTION_TOKEN is required")
    return settings.notion_token

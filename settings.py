"""Application configuration helpers for sheetsync."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from sheetsync import app_paths
from sheetsync.catalog_client import DEFAULT_PER_PAGE
from sheetsync.errors import ConfigurationError
from sheetsync.sheets_client import DEFAULT_SHEET_TITLE
from sheetsync.sync_service import DEFAULT_SPREADSHEET_NAME

logger = logging.getLogger(__name__)

DEFAULT_ENV_PATH = Path(__file__).resolve().parent / ".env"
DEFAULT_API_URL = "https://example.com/wp-json/wc/v3"
CLIENT_SECRET_FILENAME = "credentials.json"
TOKEN_FILENAME = "token.json"


@dataclass
class SyncSettings:
    api_url: str = DEFAULT_API_URL
    consumer_key: str = ""
    consumer_secret: str = ""
    per_page: int = DEFAULT_PER_PAGE
    spreadsheet_name: str = DEFAULT_SPREADSHEET_NAME
    sheet_title: str = DEFAULT_SHEET_TITLE
    client_secret_path: str = field(default_factory=lambda: str(app_paths.credentials_path(CLIENT_SECRET_FILENAME)))
    token_path: str = field(default_factory=lambda: str(app_paths.credentials_path(TOKEN_FILENAME)))
    timeout_seconds: float = 30.0
    problems: List[str] = field(default_factory=list, repr=False)

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` when a required value is missing."""

        missing = list(self.problems)
        if not self.api_url:
            missing.append("WOOCOMMERCE_API_URL is not set")
        if not self.consumer_key:
            missing.append("WOOCOMMERCE_CONSUMER_KEY is not set")
        if not self.consumer_secret:
            missing.append("WOOCOMMERCE_CONSUMER_SECRET is not set")
        if self.per_page <= 0:
            missing.append("WOOCOMMERCE_PER_PAGE must be positive")
        if not self.spreadsheet_name.strip():
            missing.append("SHEETSYNC_SPREADSHEET_NAME must not be empty")
        if missing:
            raise ConfigurationError("; ".join(missing))


def _parse_number(environ: Mapping[str, str], key: str, default, problems: List[str], cast=int):
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        problems.append(f"{key} must be a number, got {raw!r}")
        return default


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    *,
    env_path: Optional[Path] = DEFAULT_ENV_PATH,
) -> SyncSettings:
    """Build :class:`SyncSettings` from ``environ`` (defaults to ``os.environ``).

    When reading the real environment the ``.env`` file next to this module is
    loaded first; values already present in the environment take precedence.
    """

    if environ is None:
        if env_path is not None and env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug("Loaded environment from %s", env_path)
        environ = os.environ

    problems: List[str] = []
    settings = SyncSettings(
        api_url=environ.get("WOOCOMMERCE_API_URL", DEFAULT_API_URL).strip(),
        consumer_key=environ.get("WOOCOMMERCE_CONSUMER_KEY", "").strip(),
        consumer_secret=environ.get("WOOCOMMERCE_CONSUMER_SECRET", "").strip(),
        per_page=_parse_number(environ, "WOOCOMMERCE_PER_PAGE", DEFAULT_PER_PAGE, problems),
        timeout_seconds=_parse_number(environ, "WOOCOMMERCE_TIMEOUT", 30.0, problems, cast=float),
        spreadsheet_name=environ.get("SHEETSYNC_SPREADSHEET_NAME", DEFAULT_SPREADSHEET_NAME),
        sheet_title=environ.get("SHEETSYNC_SHEET_TITLE", DEFAULT_SHEET_TITLE) or DEFAULT_SHEET_TITLE,
        client_secret_path=environ.get("SHEETSYNC_CLIENT_SECRET_PATH")
        or str(app_paths.credentials_path(CLIENT_SECRET_FILENAME, environ=environ)),
        token_path=environ.get("SHEETSYNC_TOKEN_PATH")
        or str(app_paths.credentials_path(TOKEN_FILENAME, environ=environ)),
    )
    settings.problems = problems
    return settings


__all__ = ["SyncSettings", "load_settings"]

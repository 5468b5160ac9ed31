"""Helpers for validating the OAuth client secret and managing user tokens."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from sheetsync.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "CredentialsFileInvalidError",
    "REQUIRED_FIELDS",
    "SCOPES",
    "load_client_secret",
    "load_credentials",
]

SCOPES: Sequence[str] = (
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
)

CLIENT_SECTIONS: Sequence[str] = ("installed", "web")

REQUIRED_FIELDS: Iterable[str] = (
    "client_id",
    "client_secret",
    "redirect_uris",
)


class CredentialsFileInvalidError(ConfigurationError):
    """Raised when the OAuth client secret file is missing required data."""


def _load_json(path: Path) -> Mapping[str, object]:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            raw = handle.read()
    except OSError as exc:
        raise CredentialsFileInvalidError(
            f"Download the OAuth client secret and save it as {path} ({exc.strerror})"
        ) from exc

    payload_text = raw.lstrip("\ufeff").strip()
    if not payload_text:
        raise CredentialsFileInvalidError(f"OAuth client secret file {path} is empty.")

    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        raise CredentialsFileInvalidError(f"Invalid JSON in {path}: {exc.msg}") from exc
    if not isinstance(payload, Mapping):
        raise CredentialsFileInvalidError(f"Invalid JSON in {path}: expected an object")
    return payload


def _validate_payload(payload: Mapping[str, object]) -> Dict[str, object]:
    section_name = next((name for name in CLIENT_SECTIONS if name in payload), None)
    if section_name is None:
        raise CredentialsFileInvalidError(
            "OAuth client secret must contain an 'installed' or 'web' section"
        )
    section = payload[section_name]
    if not isinstance(section, Mapping):
        raise CredentialsFileInvalidError(f"OAuth client section {section_name!r} is not an object")

    missing: list[str] = []
    for field in REQUIRED_FIELDS:
        value = section.get(field)
        if field == "redirect_uris":
            if not isinstance(value, list) or not value:
                missing.append(field)
        elif not isinstance(value, str) or not value.strip():
            missing.append(field)

    if missing:
        ordered = ", ".join(sorted(dict.fromkeys(missing)))
        raise CredentialsFileInvalidError(f"OAuth client secret is missing fields: {ordered}")
    return {section_name: dict(section)}


def load_client_secret(path: Path) -> Dict[str, object]:
    """Return the validated client secret configuration stored at ``path``."""

    return _validate_payload(_load_json(path))


def _save_token(token_path: Path, credentials: Credentials) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    with token_path.open("w", encoding="utf-8") as handle:
        handle.write(credentials.to_json())
    logger.debug("Stored OAuth token in %s", token_path)


def load_credentials(
    client_secret_path: Path,
    token_path: Path,
    scopes: Optional[Sequence[str]] = None,
    *,
    allow_browser: bool = True,
) -> Credentials:
    """Return user credentials, refreshing or authorising them when needed.

    A stored token is reused while valid and refreshed when it has expired.
    When no usable token exists the installed-app flow is run in the browser,
    unless ``allow_browser`` is false, in which case a
    :class:`~sheetsync.errors.ConfigurationError` is raised.
    """

    scopes = list(scopes or SCOPES)
    credentials: Optional[Credentials] = None
    if token_path.exists():
        try:
            credentials = Credentials.from_authorized_user_file(str(token_path), scopes)
        except ValueError as exc:
            raise ConfigurationError(f"Stored OAuth token {token_path} is invalid: {exc}") from exc

    if credentials and credentials.valid:
        return credentials

    if credentials and credentials.expired and credentials.refresh_token:
        try:
            credentials.refresh(Request())
        except RefreshError as exc:
            if not allow_browser:
                raise ConfigurationError(f"Unable to refresh the OAuth token: {exc}") from exc
            logger.warning("Stored OAuth token could not be refreshed, re-authorising")
            credentials = None
        else:
            _save_token(token_path, credentials)
            return credentials

    if not allow_browser:
        raise ConfigurationError(
            f"No valid OAuth token found at {token_path}. Run the command interactively once."
        )

    client_config = load_client_secret(client_secret_path)
    flow = InstalledAppFlow.from_client_config(client_config, scopes)
    credentials = flow.run_local_server(port=0)
    _save_token(token_path, credentials)
    return credentials

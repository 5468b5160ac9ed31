import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sheetsync import google_credentials
from sheetsync.errors import ConfigurationError
from sheetsync.google_credentials import (
    CredentialsFileInvalidError,
    load_client_secret,
    load_credentials,
)


def _sample_payload() -> dict:
    return {
        "installed": {
            "client_id": "123456789.apps.googleusercontent.com",
            "client_secret": "shh",
            "redirect_uris": ["http://localhost"],
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    }


def test_load_client_secret_accepts_installed_section(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(_sample_payload()), encoding="utf-8")

    config = load_client_secret(path)

    assert config["installed"]["client_id"].startswith("123456789")


def test_load_client_secret_tolerates_byte_order_mark(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    path.write_text("﻿" + json.dumps(_sample_payload()), encoding="utf-8")

    assert "installed" in load_client_secret(path)


def test_load_client_secret_requires_fields(tmp_path: Path) -> None:
    payload = _sample_payload()
    payload["installed"]["client_secret"] = " "
    payload["installed"]["redirect_uris"] = []
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(CredentialsFileInvalidError) as excinfo:
        load_client_secret(path)

    assert "client_secret, redirect_uris" in str(excinfo.value)


def test_load_client_secret_requires_client_section(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({"type": "service_account"}), encoding="utf-8")

    with pytest.raises(CredentialsFileInvalidError):
        load_client_secret(path)


def test_load_client_secret_reports_missing_and_invalid_files(tmp_path: Path) -> None:
    with pytest.raises(CredentialsFileInvalidError):
        load_client_secret(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(CredentialsFileInvalidError) as excinfo:
        load_client_secret(broken)
    assert "Invalid JSON" in str(excinfo.value)


def test_invalid_client_secret_is_a_configuration_error() -> None:
    assert issubclass(CredentialsFileInvalidError, ConfigurationError)


def test_load_credentials_without_token_or_browser_fails(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_credentials(
            tmp_path / "credentials.json",
            tmp_path / "token.json",
            allow_browser=False,
        )

    assert "token.json" in str(excinfo.value)


class _FakeToken:
    def __init__(self, *, valid: bool, expired: bool = False, refresh_error: bool = False) -> None:
        self.valid = valid
        self.expired = expired
        self.refresh_token = "refresh-me"
        self._refresh_error = refresh_error
        self.refreshed = False

    def refresh(self, request) -> None:
        if self._refresh_error:
            raise google_credentials.RefreshError("token revoked")
        self.refreshed = True
        self.valid = True
        self.expired = False

    def to_json(self) -> str:
        return json.dumps({"token": "fresh", "refresh_token": self.refresh_token})


def _install_token(monkeypatch: pytest.MonkeyPatch, token: _FakeToken) -> list:
    loaded: list = []

    def fake_from_file(path, scopes):
        loaded.append((path, list(scopes)))
        return token

    monkeypatch.setattr(google_credentials.Credentials, "from_authorized_user_file", staticmethod(fake_from_file))
    monkeypatch.setattr(google_credentials, "Request", lambda: object())
    return loaded


def test_valid_token_is_returned_unchanged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    token_path = tmp_path / "token.json"
    token_path.write_text('{"token": "stored"}', encoding="utf-8")
    token = _FakeToken(valid=True)
    loaded = _install_token(monkeypatch, token)

    credentials = load_credentials(tmp_path / "credentials.json", token_path, allow_browser=False)

    assert credentials is token
    assert loaded == [(str(token_path), list(google_credentials.SCOPES))]
    assert token.refreshed is False
    assert token_path.read_text(encoding="utf-8") == '{"token": "stored"}'


def test_expired_token_is_refreshed_and_saved(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    token_path = tmp_path / "token.json"
    token_path.write_text('{"token": "stale"}', encoding="utf-8")
    token = _FakeToken(valid=False, expired=True)
    _install_token(monkeypatch, token)

    credentials = load_credentials(tmp_path / "credentials.json", token_path, allow_browser=False)

    assert credentials is token
    assert token.refreshed is True
    assert json.loads(token_path.read_text(encoding="utf-8"))["token"] == "fresh"


def test_refresh_failure_without_browser_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    token_path = tmp_path / "token.json"
    token_path.write_text('{"token": "revoked"}', encoding="utf-8")
    _install_token(monkeypatch, _FakeToken(valid=False, expired=True, refresh_error=True))

    with pytest.raises(ConfigurationError) as excinfo:
        load_credentials(tmp_path / "credentials.json", token_path, allow_browser=False)

    assert "refresh" in str(excinfo.value)


def test_refresh_failure_falls_back_to_browser_flow(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    secret_path = tmp_path / "credentials.json"
    secret_path.write_text(json.dumps(_sample_payload()), encoding="utf-8")
    token_path = tmp_path / "token.json"
    token_path.write_text('{"token": "revoked"}', encoding="utf-8")
    _install_token(monkeypatch, _FakeToken(valid=False, expired=True, refresh_error=True))
    authorised = _FakeToken(valid=True)
    flows: list = []

    class _FakeFlow:
        @classmethod
        def from_client_config(cls, config, scopes):
            flows.append(config)
            return cls()

        def run_local_server(self, port: int):
            return authorised

    monkeypatch.setattr(google_credentials, "InstalledAppFlow", _FakeFlow)

    credentials = load_credentials(secret_path, token_path)

    assert credentials is authorised
    assert "installed" in flows[0]
    assert json.loads(token_path.read_text(encoding="utf-8"))["token"] == "fresh"

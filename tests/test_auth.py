"""Tests for authentication context resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from edgectl.auth import describe_auth, resolve_auth
from edgectl.exceptions import ConfigError
from edgectl.models import AuthConfig, BearerAuth, LegacyKeyAuth


class TestResolveAuth:
    def test_token_from_env(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("CF_API_TOKEN", "tok-1234")
        auth = resolve_auth()
        assert isinstance(auth, BearerAuth)
        assert auth.headers() == {"Authorization": "Bearer tok-1234"}

    def test_legacy_key_from_env(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("CF_API_KEY", "k3y")
        monkeypatch.setenv("CF_API_EMAIL", "me@example.com")
        auth = resolve_auth()
        assert isinstance(auth, LegacyKeyAuth)
        assert auth.headers() == {"X-Auth-Email": "me@example.com", "X-Auth-Key": "k3y"}

    def test_token_wins_over_key(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("CF_API_TOKEN", "tok")
        monkeypatch.setenv("CF_API_KEY", "k3y")
        monkeypatch.setenv("CF_API_EMAIL", "me@example.com")
        assert isinstance(resolve_auth(), BearerAuth)

    def test_key_without_email(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("CF_API_KEY", "k3y")
        with pytest.raises(ConfigError, match="CF_API_EMAIL"):
            resolve_auth()

    def test_nothing_configured(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="No credentials configured"):
            resolve_auth()

    def test_token_from_file_source(self, isolated_config: Path) -> None:
        token_file = isolated_config / "token"
        token_file.write_text("from-file\n")
        auth = resolve_auth(AuthConfig(token_source=f"file:{token_file}"))
        assert auth == BearerAuth(token="from-file")

    def test_env_beats_source(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("CF_API_TOKEN", "from-env")
        auth = resolve_auth(AuthConfig(token_source="env:SOMETHING_UNSET"))
        assert auth.token == "from-env"

    def test_broken_source(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_auth(AuthConfig(token_source="file:/nonexistent/token"))


class TestDescribeAuth:
    def test_token_redacted(self) -> None:
        text = describe_auth(BearerAuth(token="abcdefgh1234"))
        assert text == "API token (...1234)"
        assert "abcdefgh" not in text

    def test_short_token(self) -> None:
        assert describe_auth(BearerAuth(token="abc")) == "API token"

    def test_legacy(self) -> None:
        assert describe_auth(LegacyKeyAuth(email="me@example.com", key="k")) == "API key for me@example.com"

    def test_repr_hides_secret(self) -> None:
        assert "s3cret" not in repr(BearerAuth(token="s3cret"))

"""Tests for identity module."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

from playground_storage.identity import (
    AuthProvider,
    ConfigFileIdentityProvider,
    StaticIdentityProvider,
    UserIdentity,
)


class TestUserIdentity:
    """Tests for UserIdentity dataclass."""

    def test_round_trip(self) -> None:
        identity = UserIdentity(
            user_id="user-123",
            display_name="Test User",
            email="test@example.com",
            auth_provider=AuthProvider.STATIC,
            token_expiry=datetime(2030, 1, 1, tzinfo=UTC),
        )

        assert UserIdentity.from_dict(identity.to_dict()) == identity

    def test_expired_token_is_not_authenticated(self) -> None:
        identity = UserIdentity(
            user_id="user-123",
            token_expiry=datetime.now(UTC) - timedelta(minutes=1),
        )
        assert not identity.is_authenticated()

    def test_no_expiry_is_authenticated(self) -> None:
        assert UserIdentity(user_id="user-123").is_authenticated()


class TestStaticIdentityProvider:
    """Tests for the in-process provider."""

    @pytest.mark.asyncio
    async def test_anonymous_by_default(self) -> None:
        provider = StaticIdentityProvider()
        assert await provider.get_current_user_id() is None

    @pytest.mark.asyncio
    async def test_sign_in_notifies_once(self) -> None:
        provider = StaticIdentityProvider()
        seen: list[str | None] = []
        provider.subscribe(seen.append)

        provider.sign_in("user-1")
        provider.sign_in("user-1")

        assert seen == ["user-1"]
        assert await provider.get_current_user_id() == "user-1"

    @pytest.mark.asyncio
    async def test_sign_out_notifies_none(self) -> None:
        provider = StaticIdentityProvider("user-1")
        seen: list[str | None] = []
        provider.subscribe(seen.append)

        await provider.sign_out()
        await provider.sign_out()

        assert seen == [None]
        assert await provider.get_current_user_id() is None

    @pytest.mark.asyncio
    async def test_expired_identity_has_no_user_id(self) -> None:
        provider = StaticIdentityProvider()
        provider.sign_in("user-1", token_expiry=datetime.now(UTC) - timedelta(seconds=1))

        assert await provider.get_current_user_id() is None

    def test_unsubscribe_stops_notifications(self) -> None:
        provider = StaticIdentityProvider()
        seen: list[str | None] = []
        unsubscribe = provider.subscribe(seen.append)

        unsubscribe()
        provider.sign_in("user-1")

        assert seen == []

    def test_failing_listener_does_not_block_others(self) -> None:
        provider = StaticIdentityProvider()
        seen: list[str | None] = []

        def broken(user_id: str | None) -> None:
            raise RuntimeError("listener bug")

        provider.subscribe(broken)
        provider.subscribe(seen.append)
        provider.sign_in("user-1")

        assert seen == ["user-1"]


class TestConfigFileIdentityProvider:
    """Tests for the YAML settings provider."""

    @pytest.fixture
    def config_path(self, temp_dir: Path) -> Path:
        return temp_dir / "settings.yaml"

    @pytest.mark.asyncio
    async def test_missing_file_is_anonymous(self, config_path: Path) -> None:
        provider = ConfigFileIdentityProvider(config_path)

        assert await provider.get_current_identity() is None
        assert provider.provider_type == AuthProvider.CONFIG

    @pytest.mark.asyncio
    async def test_reads_identity_section(self, config_path: Path) -> None:
        config_path.write_text(
            yaml.safe_dump(
                {"identity": {"user_id": "abc", "display_name": "Alice", "email": "a@x.com"}}
            )
        )
        provider = ConfigFileIdentityProvider(config_path)

        identity = await provider.get_current_identity()

        assert identity is not None
        assert identity.user_id == "abc"
        assert identity.display_name == "Alice"
        assert identity.email == "a@x.com"

    @pytest.mark.asyncio
    async def test_sign_in_persists_and_keeps_other_sections(self, config_path: Path) -> None:
        config_path.write_text(yaml.safe_dump({"storage": {"auto_sync_delay": 1}}))
        provider = ConfigFileIdentityProvider(config_path)
        seen: list[str | None] = []
        provider.subscribe(seen.append)

        await provider.sign_in("abc", display_name="Alice")

        saved = yaml.safe_load(config_path.read_text())
        assert saved["identity"]["user_id"] == "abc"
        assert saved["storage"] == {"auto_sync_delay": 1}
        assert seen == ["abc"]
        assert await ConfigFileIdentityProvider(config_path).get_current_user_id() == "abc"

    @pytest.mark.asyncio
    async def test_sign_out_clears_user(self, config_path: Path) -> None:
        provider = ConfigFileIdentityProvider(config_path)
        await provider.sign_in("abc")
        seen: list[str | None] = []
        provider.subscribe(seen.append)

        await provider.sign_out()

        assert seen == [None]
        assert await provider.get_current_user_id() is None
        assert "user_id" not in yaml.safe_load(config_path.read_text())["identity"]

    @pytest.mark.asyncio
    async def test_reload_notifies_only_on_change(self, config_path: Path) -> None:
        provider = ConfigFileIdentityProvider(config_path)
        await provider.get_current_identity()
        seen: list[str | None] = []
        provider.subscribe(seen.append)

        await provider.reload()
        config_path.write_text(yaml.safe_dump({"identity": {"user_id": "other"}}))
        await provider.reload()

        assert seen == ["other"]

"""
Tests for environment-based settings.
"""
import pydantic
import pytest

from app.config import IntakeSettings

BASE = {"CHAT_CHANNEL": "nooksisland", "TRADE_SERVICE_URL": "http://trade.test/"}


class TestFromEnv:

    def test_defaults(self):
        settings = IntakeSettings.from_env(BASE)

        assert settings.channel == "nooksisland"
        assert settings.trade_service_url == "http://trade.test"
        assert settings.command_prefix == "$"
        assert settings.allow_commands_via_channel is True
        assert settings.allow_commands_via_whisper is True
        assert settings.waiting_list_capacity == 100
        assert settings.sudo_usernames == frozenset()
        assert settings.chat_events_channel == "chat_events"

    def test_lists_and_toggles(self):
        settings = IntakeSettings.from_env({
            **BASE,
            "SUDO_USERNAMES": "Tommy, Timmy ,",
            "USER_BLACKLIST": "Griefer",
            "ALLOW_COMMANDS_VIA_WHISPER": "off",
            "WAITING_LIST_CAPACITY": "25",
            "COMMAND_PREFIX": "!",
        })

        assert settings.sudo_usernames == frozenset({"tommy", "timmy"})
        assert settings.user_blacklist == frozenset({"griefer"})
        assert settings.allow_commands_via_whisper is False
        assert settings.waiting_list_capacity == 25
        assert settings.command_prefix == "!"

    @pytest.mark.parametrize("missing", ["CHAT_CHANNEL", "TRADE_SERVICE_URL"])
    def test_required_values(self, missing):
        env = dict(BASE)
        del env[missing]
        with pytest.raises(ValueError, match=missing):
            IntakeSettings.from_env(env)

    def test_bad_boolean(self):
        with pytest.raises(ValueError, match="ALLOW_COMMANDS_VIA_CHANNEL"):
            IntakeSettings.from_env({**BASE, "ALLOW_COMMANDS_VIA_CHANNEL": "maybe"})

    def test_capacity_must_be_positive(self):
        with pytest.raises(pydantic.ValidationError):
            IntakeSettings.from_env({**BASE, "WAITING_LIST_CAPACITY": "0"})

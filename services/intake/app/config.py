"""
Intake Service — 設定

他のサービスと同様、設定はすべて環境変数から読む。
必須値の欠落や不正な数値は起動時にエラーになる。
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .waiting_list import DEFAULT_CAPACITY

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str | None, default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_list(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(p.strip().lower() for p in raw.split(",") if p.strip())


class IntakeSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: str
    command_prefix: str = "$"
    allow_commands_via_channel: bool = True
    allow_commands_via_whisper: bool = True
    sudo_usernames: frozenset[str] = frozenset()
    user_blacklist: frozenset[str] = frozenset()
    waiting_list_capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)
    redis_url: str = "redis://localhost:6379"
    trade_service_url: str
    trade_service_timeout: float = Field(default=10.0, gt=0)
    chat_events_channel: str = "chat_events"
    chat_outbound_channel: str = "chat_outbound"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IntakeSettings":
        env = os.environ if environ is None else environ
        for required in ("CHAT_CHANNEL", "TRADE_SERVICE_URL"):
            if not env.get(required):
                raise ValueError(f"{required} is required")

        return cls(
            channel=env["CHAT_CHANNEL"],
            command_prefix=env.get("COMMAND_PREFIX", "$"),
            allow_commands_via_channel=_parse_bool(
                "ALLOW_COMMANDS_VIA_CHANNEL", env.get("ALLOW_COMMANDS_VIA_CHANNEL"), True
            ),
            allow_commands_via_whisper=_parse_bool(
                "ALLOW_COMMANDS_VIA_WHISPER", env.get("ALLOW_COMMANDS_VIA_WHISPER"), True
            ),
            sudo_usernames=_parse_list(env.get("SUDO_USERNAMES")),
            user_blacklist=_parse_list(env.get("USER_BLACKLIST")),
            waiting_list_capacity=int(env.get("WAITING_LIST_CAPACITY", DEFAULT_CAPACITY)),
            redis_url=env.get("REDIS_URL", "redis://localhost:6379"),
            trade_service_url=env["TRADE_SERVICE_URL"].rstrip("/"),
            trade_service_timeout=float(env.get("TRADE_SERVICE_TIMEOUT", 10.0)),
            chat_events_channel=env.get("CHAT_EVENTS_CHANNEL", "chat_events"),
            chat_outbound_channel=env.get("CHAT_OUTBOUND_CHANNEL", "chat_outbound"),
        )

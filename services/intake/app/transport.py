"""
Intake Service — 送信用チャットトランスポート

返信はチャットプラットフォームへ直接は送らない。Redis の chat_outbound
チャネルに発行し、チャットゲートウェイが配信する
（スロットリングと再接続はゲートウェイ側の責務）。
"""

import logging

import redis.asyncio as aioredis

from .events import OutboundMessage

logger = logging.getLogger(__name__)


class RedisTransport:
    def __init__(self, redis: aioredis.Redis, outbound_channel: str = "chat_outbound") -> None:
        self.redis = redis
        self.outbound_channel = outbound_channel

    async def send(self, message: OutboundMessage) -> None:
        await self.redis.publish(self.outbound_channel, message.model_dump_json())
        logger.info("Sent %s to %s: %s", message.kind, message.target, message.text)

    async def send_channel_message(self, channel: str, text: str) -> None:
        await self.send(OutboundMessage(kind="channel", target=channel, text=text))

    async def send_private_message(self, username: str, text: str) -> None:
        await self.send(OutboundMessage(kind="whisper", target=username, text=text))

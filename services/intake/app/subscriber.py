"""
Intake Service — チャットイベント購読 (Subscriber)

チャットゲートウェイが発行する chat_events チャネルを購読し、
2 段階の注文受付を進める:

  ChatMessage  "$order 0A1B"  ──▶ CommandRouter ──▶ 待機リスト
                                                   チャンネルに返信
  WhisperMessage "Isabelle"   ──▶ take_by_username ──▶ OrderFinalizer
                                                   結果をチャンネルに告知
  WhisperMessage "$pos"       ──▶ CommandRouter ──▶ ウィスパーで返信

handle_event が最外周の境界: 不正なイベントはログに残して捨てるだけで、
購読ループは止めない。Redis との接続が切れた場合は retry_delay 秒待って
購読し直す。

注意: Redis Pub/Sub は fire-and-forget。このサービスが停止している間に
発行されたイベントは失われる。
"""

import asyncio
import json
import logging
from typing import Protocol

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

from .commands import CommandRouter
from .events import ChatMessage, PendingOrder, WhisperMessage
from .finalizer import OrderFinalizer
from .waiting_list import WaitingListPool

logger = logging.getLogger(__name__)

_EVENT_MODELS: dict[str, type[BaseModel]] = {
    "ChatMessage": ChatMessage,
    "WhisperMessage": WhisperMessage,
}


class Transport(Protocol):
    async def send_channel_message(self, channel: str, text: str) -> None: ...

    async def send_private_message(self, username: str, text: str) -> None: ...


def parse_command(text: str, prefix: str) -> tuple[str, str] | None:
    """「<prefix>name args...」を (name, args) に分割する。コマンドでなければ None"""
    stripped = text.strip()
    if not prefix or not stripped.startswith(prefix):
        return None
    body = stripped[len(prefix):]
    name, _, args = body.partition(" ")
    if not name:
        return None
    return name.lower(), args.strip()


class IntakeHandler:
    """受信イベントを待機リスト・トレードバックエンド・返信へ振り分ける"""

    def __init__(
        self,
        router: CommandRouter,
        pool: WaitingListPool,
        finalizer: OrderFinalizer,
        transport: Transport,
        channel: str,
        command_prefix: str = "$",
    ) -> None:
        self.router = router
        self.pool = pool
        self.finalizer = finalizer
        self.transport = transport
        self.channel = channel
        self.command_prefix = command_prefix

    async def handle_event(self, event_type: str | None, data: dict) -> None:
        try:
            model = _EVENT_MODELS.get(event_type or "")
            if model is None:
                logger.debug("Ignoring event type %s", event_type)
                return
            message = model.model_validate(data)
            if isinstance(message, WhisperMessage):
                await self.on_whisper(message)
            else:
                await self.on_chat_message(message)
        except Exception:
            logger.exception("Failed to process %s event", event_type)

    async def on_chat_message(self, message: ChatMessage) -> None:
        logger.info("Received message: @%s: %s", message.user.username, message.text)
        command = parse_command(message.text, self.command_prefix)
        if command is None:
            return
        name, args = command
        response = await self.router.handle(message.user, name, args, is_whisper=False)
        if response:
            await self.transport.send_channel_message(message.channel, response)

    async def on_whisper(self, message: WhisperMessage) -> None:
        username = message.user.username
        logger.info("Received whisper: @%s: %s", username, message.text)

        command = parse_command(message.text, self.command_prefix)
        if command is not None:
            name, args = command
            response = await self.router.handle(message.user, name, args, is_whisper=True)
            if response:
                await self.transport.send_private_message(username, response)
            return

        if self.router.policy.is_blacklisted(message.user):
            return

        pending = self.pool.take_by_username(username)
        if pending is None:
            logger.debug("No pending order for @%s", username)
            return

        _, outcome = await self.finalizer.finalize(pending, message.text)
        if outcome:
            await self.transport.send_channel_message(self.channel, outcome)

    async def notify_evicted(self, entry: PendingOrder) -> None:
        await self.transport.send_channel_message(
            self.channel,
            f"Removed @{entry.requester_display_name} from the waiting list: stale request.",
        )


async def run_subscriber(
    redis_url: str,
    intake: IntakeHandler,
    events_channel: str,
    shutdown_event: asyncio.Event,
    retry_delay: float = 1.0,
) -> None:
    """
    shutdown_event がセットされるまで chat_events を購読し、
    受信したイベントを 1 件ずつ intake に渡す。

    Redis エラーで購読が切れても終了せず、retry_delay 秒後に購読し直す。
    """
    redis_conn = aioredis.from_url(redis_url, decode_responses=True)
    try:
        while not shutdown_event.is_set():
            try:
                await _consume(redis_conn, intake, events_channel, shutdown_event)
            except (RedisError, OSError):
                logger.exception(
                    "Lost %s subscription, retrying in %.1fs", events_channel, retry_delay
                )
                await asyncio.sleep(retry_delay)
    finally:
        await redis_conn.aclose()


async def _consume(
    redis_conn: aioredis.Redis,
    intake: IntakeHandler,
    events_channel: str,
    shutdown_event: asyncio.Event,
) -> None:
    pubsub = redis_conn.pubsub()
    try:
        await pubsub.subscribe(events_channel)
        logger.info("Subscribed to %s channel", events_channel)

        while not shutdown_event.is_set():
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    event = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.exception("Malformed chat event")
                    continue
                if not isinstance(event, dict):
                    logger.warning("Ignoring non-object chat event")
                    continue
                await intake.handle_event(event.get("event_type"), event.get("data") or {})
            else:
                await asyncio.sleep(0.1)
    finally:
        # 接続が切れていると unsubscribe 自体も失敗する
        try:
            await pubsub.unsubscribe(events_channel)
        except (RedisError, OSError):
            logger.debug("Unsubscribe from %s failed", events_channel)
        await pubsub.aclose()

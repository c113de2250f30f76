"""
Intake Service — FastAPI エントリーポイント

トレード Bot 向けの、チャット経由の注文受付サービス。
チャットゲートウェイがチャットプラットフォームと Redis Pub/Sub を橋渡しし、
このサービスはバックグラウンドでチャットイベントを購読して返信を発行する。

┌──────────────┐  chat_events   ┌────────────────┐   HTTP   ┌───────────────┐
│ Chat Gateway │ ──── Redis ──▶ │ Intake Service │ ───────▶ │ Trade Backend │
│              │ ◀── Redis ──── │ (waiting list) │          │ (trade queue) │
└──────────────┘  chat_outbound └────────────────┘          └───────────────┘

待機リストはプロセスのメモリ上にある: サービスを再起動すると
待機中の注文はすべて消える。
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
import uvicorn
from fastapi import FastAPI, HTTPException

from . import queries
from .authorization import AuthorizationPolicy
from .commands import CommandRouter
from .config import IntakeSettings
from .events import ChatMessage, WhisperMessage
from .finalizer import OrderFinalizer
from .subscriber import IntakeHandler, run_subscriber
from .trade_queue import HttpTradeQueue
from .transport import RedisTransport
from .waiting_list import WaitingListPool

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

settings = IntakeSettings.from_env()
pool = WaitingListPool(settings.waiting_list_capacity)
policy = AuthorizationPolicy(settings.sudo_usernames, settings.user_blacklist)

redis_pool: aioredis.Redis | None = None
intake: IntakeHandler | None = None
subscriber_task: asyncio.Task | None = None


def build_intake(transport, trade_queue) -> IntakeHandler:
    """共有の待機リストを中心に、ルーター・確定処理・ハンドラを組み立てる"""
    router = CommandRouter(
        policy,
        pool,
        trade_queue,
        allow_commands_via_channel=settings.allow_commands_via_channel,
        allow_commands_via_whisper=settings.allow_commands_via_whisper,
        command_prefix=settings.command_prefix,
    )
    handler = IntakeHandler(
        router,
        pool,
        OrderFinalizer(trade_queue, settings.channel),
        transport,
        settings.channel,
        settings.command_prefix,
    )
    router.on_evict = handler.notify_evicted
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """チャットイベントの購読をバックグラウンドタスクとして起動"""
    global redis_pool, intake, subscriber_task
    redis_pool = aioredis.from_url(settings.redis_url, decode_responses=True)
    http_client = httpx.AsyncClient(
        base_url=settings.trade_service_url,
        timeout=settings.trade_service_timeout,
    )
    intake = build_intake(
        RedisTransport(redis_pool, settings.chat_outbound_channel),
        HttpTradeQueue(http_client),
    )

    shutdown_event = asyncio.Event()
    subscriber_task = asyncio.create_task(
        run_subscriber(settings.redis_url, intake, settings.chat_events_channel, shutdown_event)
    )
    logger.info("Intake service ready for #%s", settings.channel)
    yield
    shutdown_event.set()
    subscriber_task.cancel()
    try:
        await subscriber_task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Chat event subscriber stopped with an error")
    await http_client.aclose()
    await redis_pool.aclose()


app = FastAPI(title="Intake Service", lifespan=lifespan)


# ── コマンドエンドポイント ──────────────────────


@app.post("/commands/chat-events/chat-message")
async def cmd_chat_message(event: ChatMessage):
    """チャンネルメッセージを 1 件処理（Pub/Sub の代わりの Webhook）"""
    if intake is None:
        raise HTTPException(503, "Intake service is not ready")
    await intake.handle_event(event.event_type, event.model_dump())
    return {"status": "ok"}


@app.post("/commands/chat-events/whisper")
async def cmd_whisper(event: WhisperMessage):
    """ウィスパーを 1 件処理（Pub/Sub の代わりの Webhook）"""
    if intake is None:
        raise HTTPException(503, "Intake service is not ready")
    await intake.handle_event(event.event_type, event.model_dump())
    return {"status": "ok"}


# ── クエリエンドポイント ────────────────────────


@app.get("/queries/waiting-list")
async def query_waiting_list():
    """待機リスト（古い順）"""
    return queries.get_waiting_list(pool)


@app.get("/queries/waiting-list/{username}")
async def query_pending_for_user(username: str):
    """このユーザーのウィスパーが確定させるエントリ"""
    entry = queries.get_pending_for_user(pool, username)
    if not entry:
        raise HTTPException(404, "No pending order for this user")
    return entry


@app.get("/health")
async def health():
    # 購読タスクが終了していたらイベントはもう届かない
    if subscriber_task is not None and subscriber_task.done():
        raise HTTPException(503, "Chat event subscriber is not running")
    return {"status": "ok", "service": "intake-service"}


def run() -> None:
    """intake-service コマンド"""
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )

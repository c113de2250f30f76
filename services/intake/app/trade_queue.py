"""
Intake Service — トレード実行バックエンドのクライアント

実際の配達キューはトレードバックエンドが持つ。Intake Service は
完成した注文の送信、順番の問い合わせ、エントリの取り消しだけを行う。

  Intake Service ──▶ POST   /queue/orders               ──▶ Trade Backend
                 ──▶ GET    /queue/users/{id}/position
                 ──▶ DELETE /queue/users/{id}
                 ──▶ DELETE /queue/orders/{ref}

HTTP の失敗は httpx.HTTPError として送出する。どう報告するかは呼び出し側が決める。
"""

from typing import Protocol
from urllib.parse import quote

import httpx

from .events import OrderRequest


class TradeQueue(Protocol):
    async def submit(self, order: OrderRequest) -> tuple[bool, str]: ...

    async def get_position(self, user_id: int) -> str: ...

    async def cancel_user(self, user_id: int) -> str: ...

    async def cancel_order(self, order_ref: str) -> str: ...


class HttpTradeQueue:
    """トレードサービスの HTTP API を使う TradeQueue"""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def submit(self, order: OrderRequest) -> tuple[bool, str]:
        resp = await self.client.post(
            "/queue/orders",
            json=order.model_dump(mode="json"),
        )
        resp.raise_for_status()
        body = resp.json()
        return bool(body["accepted"]), str(body.get("message", ""))

    async def get_position(self, user_id: int) -> str:
        resp = await self.client.get(f"/queue/users/{user_id}/position")
        resp.raise_for_status()
        return str(resp.json()["status"])

    async def cancel_user(self, user_id: int) -> str:
        resp = await self.client.delete(f"/queue/users/{user_id}")
        resp.raise_for_status()
        return str(resp.json()["status"])

    async def cancel_order(self, order_ref: str) -> str:
        resp = await self.client.delete(f"/queue/orders/{quote(order_ref, safe='')}")
        resp.raise_for_status()
        return str(resp.json()["status"])

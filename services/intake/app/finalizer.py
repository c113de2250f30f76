"""
Intake Service — 注文確定 (Order Finalizer)

注文の第 2 フェーズ: 持ち主が Bot にウィスパーしたため、待機中のエントリは
既に待機リストから取り出されている。ここでエントリとウィスパー本文を
組み合わせてトレードバックエンドへ転送する。

  1. 待機エントリ + フォローアップ本文から OrderRequest を組み立てる
  2. トレードバックエンドに送信する
     ├─ 受理   → バックエンドのメッセージをチャンネルに告知
     ├─ 拒否   → バックエンドのメッセージをチャンネルに告知
     └─ エラー → ログに残し、何も告知しない

結果がどうであれ、エントリを待機リストに戻すことはない。
"""

import logging

from .events import OrderRequest, PendingOrder
from .trade_queue import TradeQueue

logger = logging.getLogger(__name__)


class OrderFinalizer:
    """完成した注文を組み立てて転送する。受理するかどうかはバックエンドが決める。"""

    def __init__(self, trade_queue: TradeQueue, channel: str) -> None:
        self.trade_queue = trade_queue
        self.channel = channel

    def build_request(self, pending: PendingOrder, followup_text: str) -> OrderRequest:
        followup = followup_text.strip()
        if not followup:
            raise ValueError(f"empty follow-up from {pending.requester_username}")
        return OrderRequest(
            order_id=pending.id,
            user_id=pending.requester_id,
            username=pending.requester_username,
            display_name=pending.requester_display_name,
            followup_text=followup,
            items=pending.item_request.items,
            villager=pending.villager_request,
            is_subscriber=pending.is_subscriber,
            channel=self.channel,
        )

    async def finalize(self, pending: PendingOrder, followup_text: str) -> tuple[bool, str]:
        try:
            request = self.build_request(pending, followup_text)
            accepted, message = await self.trade_queue.submit(request)
        except Exception:
            logger.exception(
                "Failed to finalize order %s for @%s",
                pending.id, pending.requester_username,
            )
            return False, ""

        logger.info(
            "Order %s for @%s %s by trade backend",
            pending.id, pending.requester_username,
            "accepted" if accepted else "rejected",
        )
        return accepted, message

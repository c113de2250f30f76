"""
Intake Service — 待機リスト (Waiting List)

公開チャンネルの order コマンドはアイテムしか持たない。
同じユーザーが Bot にウィスパーするまで、注文はここで待機し、
ウィスパーを受けたら取り出されて確定 (finalize) される。

  ┌─────────┐  supersede ┌──────────────────────────┐  take_by_username
  │ $order  │ ─────────▶ │ [oldest] ... [newest]    │ ────────────────▶ finalize
  └─────────┘            └──────────────────────────┘
                           │ 容量超過: 先頭 [0] を追い出す
                           ▼
                         stale request 通知

公開メソッドは「確認してから変更する」一連の処理の間ずっとロックを保持する。
そのため容量を一瞬でも超えることはない。
"""

import threading

from .events import PendingOrder

DEFAULT_CAPACITY = 100


class WaitingListPool:
    """PendingOrder の有界 FIFO"""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._entries: list[PendingOrder] = []
        self._lock = threading.RLock()

    def append(self, entry: PendingOrder) -> PendingOrder | None:
        """
        エントリを末尾に追加する。

        満杯なら先に最古のエントリ (位置 0) を取り除いて返す。
        追い出しを知るのは、それを引き起こした append の呼び出し元だけ。
        """
        with self._lock:
            evicted = None
            if len(self._entries) >= self._capacity:
                evicted = self._entries.pop(0)
            self._entries.append(entry)
            return evicted

    def supersede(self, entry: PendingOrder) -> PendingOrder | None:
        """
        同じユーザーの既存エントリをすべて取り除いてから append する。

        ユーザーごとに解決できる注文は常に 1 件だけになる。
        戻り値は append と同じ (容量超過で追い出されたエントリ)。
        """
        with self._lock:
            self._entries = [
                e for e in self._entries
                if e.requester_username != entry.requester_username
            ]
            return self.append(entry)

    def take_by_username(self, username: str) -> PendingOrder | None:
        """
        username の最新エントリを取り除いて返す。

        末尾から走査する: 複数ある場合は最後のものだけが有効。
        """
        with self._lock:
            for index in range(len(self._entries) - 1, -1, -1):
                if self._entries[index].requester_username == username:
                    return self._entries.pop(index)
            return None

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def capacity(self) -> int:
        return self._capacity

    def snapshot(self) -> list[PendingOrder]:
        """エントリの浅いコピー（古い順、読み取り専用）"""
        with self._lock:
            return list(self._entries)

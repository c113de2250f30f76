"""
Intake Service — クエリハンドラ (Read 側)

ダッシュボード・デバッグ用の待機リストの読み取り専用ビュー。
ここでは待機リストを変更しない。
"""

from .events import PendingOrder
from .waiting_list import WaitingListPool


def _to_dict(position: int, entry: PendingOrder) -> dict:
    return {
        "position": position,
        "id": str(entry.id),
        "requester_username": entry.requester_username,
        "requester_display_name": entry.requester_display_name,
        "requester_id": entry.requester_id,
        "item_count": len(entry.item_request.items),
        "villager": entry.villager_request.name if entry.villager_request else None,
        "is_subscriber": entry.is_subscriber,
    }


def get_waiting_list(pool: WaitingListPool) -> dict:
    """待機リストのサマリー（古い順）"""
    entries = pool.snapshot()
    return {
        "size": len(entries),
        "capacity": pool.capacity(),
        "entries": [_to_dict(i, e) for i, e in enumerate(entries)],
    }


def get_pending_for_user(pool: WaitingListPool, username: str) -> dict | None:
    """username からのウィスパーが解決するエントリ"""
    entries = pool.snapshot()
    for i in range(len(entries) - 1, -1, -1):
        if entries[i].requester_username == username:
            return _to_dict(i, entries[i])
    return None

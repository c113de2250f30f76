"""
Intake Service — イベント・モデル定義

チャットゲートウェイから Redis Pub/Sub 経由で届くチャットイベントを定義する。
イベントは既に起きた事実なので不変 (frozen) として扱う。
PendingOrder は公開コマンドから、注文を完了させるウィスパーまでの間
待機リストに置かれるエントリ。
"""

from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ChatUser(BaseModel):
    """チャットプラットフォームが各メッセージに付けるロール情報"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    display_name: str
    is_broadcaster: bool = False
    is_subscriber: bool = False


class ChatMessage(BaseModel):
    """公開チャンネルに投稿されたメッセージ"""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["ChatMessage"] = "ChatMessage"
    channel: str
    user: ChatUser
    text: str


class WhisperMessage(BaseModel):
    """Bot 宛てのプライベートメッセージ（ウィスパー）"""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["WhisperMessage"] = "WhisperMessage"
    user: ChatUser
    text: str


class OutboundMessage(BaseModel):
    """チャットゲートウェイが配信するメッセージ"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["channel", "whisper"]
    target: str
    text: str


# ── 解析済みの注文内容 ─────────────────────────


class Item(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: int = Field(ge=0, le=0xFFFF)
    count: int = Field(default=1, ge=1)


class ItemRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: tuple[Item, ...] = ()


class VillagerRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


# ── 待機リスト / トレードバックエンド ───────────


class PendingOrder(BaseModel):
    """
    フォローアップのウィスパーを待っている注文。

    照合には requester_username を使い、表示名は使わない。
    待機リスト内の位置が唯一の「古さ」の指標。
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    requester_display_name: str
    requester_username: str
    requester_id: int
    item_request: ItemRequest
    villager_request: VillagerRequest | None = None
    is_subscriber: bool = False


class OrderRequest(BaseModel):
    """トレード実行バックエンドに渡す完成した注文"""
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    user_id: int
    username: str
    display_name: str
    followup_text: str
    items: tuple[Item, ...]
    villager: VillagerRequest | None = None
    is_subscriber: bool = False
    channel: str

"""
Intake Service — コマンドルーター (Command Router)

チャットコマンド 1 件を返信文字列 1 件に変換する。ルーター自身は何も送信しない:
返信の送り先は呼び出し側が決め、空文字列は「何も言わない」を意味する。

各コマンドはコマンドテーブルでアクセスレベルを宣言する。
レベルはディスパッチ前に 1 回だけ検査する:

    order / ordercat   PUBLIC      注文を待機リストに入れる
    ts / pos           PUBLIC      トレードキューでの順番
    tc                 PUBLIC      トレードキューから抜ける
    tcu                PRIVILEGED  任意のトレードキューエントリを削除
    tca pr pc tt       PRIVILEGED  予約済み
"""

import logging
from collections.abc import Awaitable, Callable
from typing import NamedTuple

from .authorization import AccessLevel, AuthorizationPolicy
from .events import ChatUser, PendingOrder
from .item_parser import ItemParser
from .trade_queue import TradeQueue
from .waiting_list import WaitingListPool

logger = logging.getLogger(__name__)

LOCKED_MESSAGE = "This command is locked for sudo users only!"

Handler = Callable[[ChatUser, str, bool], Awaitable[str]]
EvictionNotifier = Callable[[PendingOrder], Awaitable[None]]


class Command(NamedTuple):
    handler: Handler
    level: AccessLevel = AccessLevel.PUBLIC
    whisper_only: bool = False


class CommandRouter:
    def __init__(
        self,
        policy: AuthorizationPolicy,
        pool: WaitingListPool,
        trade_queue: TradeQueue,
        parser: ItemParser | None = None,
        allow_commands_via_channel: bool = True,
        allow_commands_via_whisper: bool = True,
        command_prefix: str = "$",
        on_evict: EvictionNotifier | None = None,
    ) -> None:
        self.policy = policy
        self.pool = pool
        self.trade_queue = trade_queue
        self.parser = parser or ItemParser()
        self.allow_commands_via_channel = allow_commands_via_channel
        self.allow_commands_via_whisper = allow_commands_via_whisper
        self.command_prefix = command_prefix
        self.on_evict = on_evict

        order = Command(self._cmd_order)
        ordercat = Command(self._cmd_ordercat)
        position = Command(self._cmd_position)
        cancel = Command(self._cmd_cancel)
        cancel_by_id = Command(self._cmd_cancel_by_id, AccessLevel.PRIVILEGED)
        reserved = Command(self._cmd_reserved, AccessLevel.PRIVILEGED)

        self._commands: dict[str, Command] = {
            "help": Command(self._cmd_help),
            "order": order,
            "ordercat": ordercat,
            "order-category": ordercat,
            "ts": position,
            "position": position,
            "pos": Command(self._cmd_whisper_position, whisper_only=True),
            "tc": cancel,
            "cancel": cancel,
            "tcu": cancel_by_id,
            "cancel-by-id": cancel_by_id,
            "tca": reserved,
            "pr": reserved,
            "pc": reserved,
            "tt": reserved,
        }

    async def handle(
        self,
        user: ChatUser,
        command_name: str,
        args_text: str,
        is_whisper: bool,
    ) -> str:
        """
        必ず返信を 1 件返す（空の場合もある）。

        無効化されたチャネルとブラックリストのユーザーは黙って無視する。
        数値でないユーザー ID は ValueError としてここから送出される。
        """
        enabled = self.allow_commands_via_whisper if is_whisper else self.allow_commands_via_channel
        if not enabled or self.policy.is_blacklisted(user):
            return ""

        name = command_name.strip().lower()
        command = self._commands.get(name)
        if command is None or (command.whisper_only and not is_whisper):
            return ""

        if not self.policy.is_authorized(user, command.level, is_whisper):
            logger.info("Denied %s for @%s", name, user.username)
            return LOCKED_MESSAGE

        return await command.handler(user, args_text or "", is_whisper)

    # ── ハンドラ ─────────────────────────────

    async def _cmd_help(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        p = self.command_prefix
        text = (
            f"{p}order <items> to order items, "
            f"{p}ordercat <items> villager:<name> to include a villager, "
            f"{p}ts to check your position, "
            f"{p}tc to leave the queue."
        )
        return _reply(user, text, is_whisper)

    async def _cmd_order(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        return await self._add_to_waiting_list(user, args, is_whisper, allow_villager=False)

    async def _cmd_ordercat(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        return await self._add_to_waiting_list(user, args, is_whisper, allow_villager=True)

    async def _cmd_position(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        status = await self.trade_queue.get_position(int(user.user_id))
        return f"@{user.username}: {status}"

    async def _cmd_whisper_position(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        return await self.trade_queue.get_position(int(user.user_id))

    async def _cmd_cancel(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        status = await self.trade_queue.cancel_user(int(user.user_id))
        return f"@{user.username}: {status}"

    async def _cmd_cancel_by_id(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        order_ref = args.strip()
        if not order_ref:
            return f"Usage: {self.command_prefix}tcu <order id>"
        return await self.trade_queue.cancel_order(order_ref)

    async def _cmd_reserved(self, user: ChatUser, args: str, is_whisper: bool) -> str:
        return ""

    # ── 待機リスト ───────────────────────────

    async def _add_to_waiting_list(
        self,
        user: ChatUser,
        args: str,
        is_whisper: bool,
        allow_villager: bool,
    ) -> str:
        requester_id = int(user.user_id)

        result = self.parser.parse(args, allow_villager=allow_villager)
        if not result.ok:
            return _reply(user, result.error, is_whisper)

        pending = PendingOrder(
            requester_display_name=user.display_name,
            requester_username=user.username,
            requester_id=requester_id,
            item_request=result.items,
            villager_request=result.villager,
            # サブスクバッジはチャンネルメッセージにしか付かない
            is_subscriber=user.is_subscriber and not is_whisper,
        )
        evicted = self.pool.supersede(pending)
        logger.info(
            "Added @%s to the waiting list (%d/%d)",
            user.username, self.pool.size(), self.pool.capacity(),
        )
        if evicted is not None:
            logger.info("Evicted stale request from @%s", evicted.requester_username)
            if self.on_evict is not None:
                try:
                    await self.on_evict(evicted)
                except Exception:
                    logger.exception(
                        "Failed to notify @%s of eviction", evicted.requester_username
                    )

        return _reply(
            user,
            "Your order has been added to the waiting list. "
            "Whisper me your in-game character name to confirm it.",
            is_whisper,
        )


def _reply(user: ChatUser, text: str, is_whisper: bool) -> str:
    return text if is_whisper else f"@{user.username}: {text}"

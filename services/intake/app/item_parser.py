"""
Intake Service — アイテム注文パーサー

order コマンドの引数を ItemRequest と VillagerRequest (任意) に変換する。
カタログ自体はここでは知らない。アイテム ID は 16 ビットの 16 進 ID として
形式だけを検査する。

    $order 0A1B 3107*5 0x1234
    $ordercat 0A1B villager:flg01
"""

import re

from pydantic import BaseModel, ConfigDict

from .events import Item, ItemRequest, VillagerRequest

MAX_ITEMS = 40
MAX_COUNT = 99

_ITEM_RE = re.compile(r"^(?:0x)?([0-9a-f]{1,4})(?:\*(\d{1,2}))?$", re.IGNORECASE)
_VILLAGER_RE = re.compile(r"^villager:([a-z0-9]+)$", re.IGNORECASE)


class ParseResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: ItemRequest | None = None
    villager: VillagerRequest | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ItemParser:
    """デフォルトのパーサー: 16 進アイテム ID、任意の `*count`、任意の villager トークン"""

    def parse(self, args_text: str, allow_villager: bool = False) -> ParseResult:
        tokens = [t for t in re.split(r"[\s,]+", args_text.strip()) if t]
        if not tokens:
            return ParseResult(error="No items were requested.")

        items: list[Item] = []
        villager: VillagerRequest | None = None
        for token in tokens:
            vm = _VILLAGER_RE.match(token)
            if vm:
                if not allow_villager:
                    return ParseResult(error="Villager requests need the ordercat command.")
                if villager is not None:
                    return ParseResult(error="Only one villager can be requested per order.")
                villager = VillagerRequest(name=vm.group(1).lower())
                continue

            im = _ITEM_RE.match(token)
            if not im:
                return ParseResult(error=f"Unable to parse item: {token}")
            count = int(im.group(2)) if im.group(2) else 1
            if not 1 <= count <= MAX_COUNT:
                return ParseResult(error=f"Item count must be between 1 and {MAX_COUNT}: {token}")
            items.append(Item(item_id=int(im.group(1), 16), count=count))

        if len(items) > MAX_ITEMS:
            return ParseResult(error=f"Too many items requested, the limit is {MAX_ITEMS}.")
        if not items and villager is None:
            return ParseResult(error="No items were requested.")
        return ParseResult(items=ItemRequest(items=tuple(items)), villager=villager)

"""
Shared fixtures for the intake service tests.

The trade backend and the chat gateway are replaced by in-memory fakes.
"""
import os

import pytest

os.environ.setdefault("CHAT_CHANNEL", "nooksisland")
os.environ.setdefault("TRADE_SERVICE_URL", "http://trade.test")
os.environ.setdefault("SUDO_USERNAMES", "tommy")
os.environ.setdefault("USER_BLACKLIST", "griefer")
os.environ.setdefault("WAITING_LIST_CAPACITY", "3")

from app.authorization import AuthorizationPolicy
from app.commands import CommandRouter
from app.events import ChatUser, Item, ItemRequest, PendingOrder
from app.finalizer import OrderFinalizer
from app.subscriber import IntakeHandler
from app.waiting_list import WaitingListPool


class FakeTradeQueue:
    """Records calls and answers with canned results."""

    def __init__(self, accept=True, message="Order queued.", error=None):
        self.accept = accept
        self.message = message
        self.error = error
        self.submitted = []
        self.cancelled_users = []
        self.cancelled_orders = []

    async def submit(self, order):
        if self.error is not None:
            raise self.error
        self.submitted.append(order)
        return self.accept, self.message

    async def get_position(self, user_id):
        return f"You are position 2 in the queue (id {user_id})."

    async def cancel_user(self, user_id):
        self.cancelled_users.append(user_id)
        return "You have been removed from the queue."

    async def cancel_order(self, order_ref):
        self.cancelled_orders.append(order_ref)
        return f"Removed {order_ref} from the queue."


class FakeTransport:
    def __init__(self):
        self.channel_messages = []
        self.whispers = []

    async def send_channel_message(self, channel, text):
        self.channel_messages.append((channel, text))

    async def send_private_message(self, username, text):
        self.whispers.append((username, text))


def make_user(username="bob", user_id="1001", **roles):
    return ChatUser(
        user_id=user_id,
        username=username,
        display_name=roles.pop("display_name", username.capitalize()),
        **roles,
    )


def make_pending(username="bob", item_id=0x0A1B):
    return PendingOrder(
        requester_display_name=username.capitalize(),
        requester_username=username,
        requester_id=1001,
        item_request=ItemRequest(items=(Item(item_id=item_id),)),
    )


@pytest.fixture
def pool():
    return WaitingListPool(capacity=3)


@pytest.fixture
def policy():
    return AuthorizationPolicy(
        sudo_usernames=frozenset({"tommy"}),
        user_blacklist=frozenset({"griefer"}),
    )


@pytest.fixture
def trade_queue():
    return FakeTradeQueue()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def router(policy, pool, trade_queue):
    return CommandRouter(policy, pool, trade_queue)


@pytest.fixture
def intake(router, pool, trade_queue, transport):
    handler = IntakeHandler(
        router,
        pool,
        OrderFinalizer(trade_queue, "nooksisland"),
        transport,
        "nooksisland",
    )
    router.on_evict = handler.notify_evicted
    return handler

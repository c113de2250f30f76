"""
Intake Service — 認可ポリシー

アクセスレベルは 2 つ:
    PUBLIC      ブラックリストに載っていない全員
    PRIVILEGED  配信者、または sudo 許可リストのユーザー

特権はチャンネル上のロール。ウィスパーには特権は付かない。
サブスクライバーはアクセスレベルではなく、注文の優先度にだけ使う。
"""

from enum import Enum

from .events import ChatUser


class AccessLevel(str, Enum):
    PUBLIC = "public"
    PRIVILEGED = "privileged"


class AuthorizationPolicy:
    """メッセージごとのロール情報に対する純粋な述語"""

    def __init__(
        self,
        sudo_usernames: frozenset[str] = frozenset(),
        user_blacklist: frozenset[str] = frozenset(),
    ) -> None:
        self.sudo_usernames = frozenset(u.lower() for u in sudo_usernames)
        self.user_blacklist = frozenset(u.lower() for u in user_blacklist)

    def is_blacklisted(self, user: ChatUser) -> bool:
        return user.username.lower() in self.user_blacklist

    def is_privileged(self, user: ChatUser, is_whisper: bool = False) -> bool:
        if is_whisper:
            return False
        return user.is_broadcaster or user.username.lower() in self.sudo_usernames

    def is_authorized(
        self,
        user: ChatUser,
        required_level: AccessLevel,
        is_whisper: bool = False,
    ) -> bool:
        if self.is_blacklisted(user):
            return False
        if required_level is AccessLevel.PRIVILEGED:
            return self.is_privileged(user, is_whisper)
        return True

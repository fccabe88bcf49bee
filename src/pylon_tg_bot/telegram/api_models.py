from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "CallbackQuery",
    "Chat",
    "ChatMember",
    "Message",
    "Update",
    "User",
    "decode_update",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    first_name: str | None = None


class ChatMember(msgspec.Struct, forbid_unknown_fields=False):
    status: str
    user: User | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat
    from_: User | None = msgspec.field(default=None, name="from")
    text: str | None = None
    caption: str | None = None
    reply_to_message: Message | None = None
    new_chat_members: list[User] | None = None
    left_chat_member: User | None = None


class CallbackQuery(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    from_: User | None = msgspec.field(default=None, name="from")
    message: Message | None = None
    data: str | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    callback_query: CallbackQuery | None = None


def decode_update(payload: dict[str, Any] | bytes) -> Update:
    if isinstance(payload, bytes):
        return msgspec.json.decode(payload, type=Update)
    return msgspec.convert(payload, type=Update)

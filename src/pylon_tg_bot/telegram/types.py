from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PRIVATE_CHAT = "private"


@dataclass(frozen=True, slots=True)
class TelegramUser:
    id: int
    username: str | None = None
    is_bot: bool = False


@dataclass(frozen=True, slots=True)
class TelegramReply:
    message_id: int
    text: str | None
    sender: TelegramUser | None


@dataclass(frozen=True, slots=True)
class TelegramIncomingMessage:
    chat_id: int
    chat_type: str
    message_id: int
    text: str | None
    sender: TelegramUser | None
    chat_title: str | None = None
    reply_to: TelegramReply | None = None
    raw: dict[str, Any] | None = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == PRIVATE_CHAT

    @property
    def sender_username(self) -> str | None:
        return self.sender.username if self.sender is not None else None


@dataclass(frozen=True, slots=True)
class TelegramCallbackQuery:
    chat_id: int
    chat_type: str
    message_id: int
    callback_query_id: str
    data: str | None
    sender: TelegramUser | None
    raw: dict[str, Any] | None = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == PRIVATE_CHAT

    @property
    def sender_username(self) -> str | None:
        return self.sender.username if self.sender is not None else None


@dataclass(frozen=True, slots=True)
class TelegramMembershipChange:
    chat_id: int
    chat_title: str | None
    message_id: int
    added: tuple[TelegramUser, ...] = ()
    removed: TelegramUser | None = None
    raw: dict[str, Any] | None = None


TelegramIncomingUpdate = (
    TelegramIncomingMessage | TelegramCallbackQuery | TelegramMembershipChange
)

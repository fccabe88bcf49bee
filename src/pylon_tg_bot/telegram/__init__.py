"""Telegram Bot API client and update parsing."""

from .client import (
    MARKDOWN_V2,
    BotClient,
    TelegramApiError,
    TelegramClient,
    make_inline_keyboard,
)
from .parsing import parse_incoming_update, poll_incoming
from .types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipChange,
    TelegramReply,
    TelegramUser,
)

__all__ = [
    "MARKDOWN_V2",
    "BotClient",
    "TelegramApiError",
    "TelegramCallbackQuery",
    "TelegramClient",
    "TelegramIncomingMessage",
    "TelegramIncomingUpdate",
    "TelegramMembershipChange",
    "TelegramReply",
    "TelegramUser",
    "make_inline_keyboard",
    "parse_incoming_update",
    "poll_incoming",
]

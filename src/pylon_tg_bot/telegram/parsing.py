from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import anyio
import msgspec

from ..logging import get_logger
from .api_models import CallbackQuery, Message, Update, User
from .client import BotClient, TelegramApiError
from .types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipChange,
    TelegramReply,
    TelegramUser,
)

logger = get_logger(__name__)

ALLOWED_UPDATES = ["message", "callback_query"]
POLL_RETRY_DELAY_S = 2.0


def parse_incoming_update(
    update: Update | dict[str, Any],
) -> TelegramIncomingUpdate | None:
    raw_message: dict[str, Any] | None = None
    raw_callback: dict[str, Any] | None = None
    if isinstance(update, dict):
        if isinstance(update.get("message"), dict):
            raw_message = update["message"]
        if isinstance(update.get("callback_query"), dict):
            raw_callback = update["callback_query"]
        try:
            update = msgspec.convert(update, type=Update)
        except msgspec.ValidationError:
            logger.debug("telegram.update.invalid", update=update)
            return None

    if update.message is not None:
        return _parse_message(update.message, raw=raw_message)
    if update.callback_query is not None:
        return _parse_callback_query(update.callback_query, raw=raw_callback)
    return None


def _user(user: User | None) -> TelegramUser | None:
    if user is None:
        return None
    return TelegramUser(id=user.id, username=user.username, is_bot=user.is_bot)


def _parse_message(
    msg: Message, *, raw: dict[str, Any] | None = None
) -> TelegramIncomingUpdate | None:
    chat = msg.chat
    raw_payload = raw if raw is not None else msgspec.to_builtins(msg)
    if msg.new_chat_members or msg.left_chat_member is not None:
        added = tuple(
            user
            for user in (_user(member) for member in msg.new_chat_members or ())
            if user is not None
        )
        return TelegramMembershipChange(
            chat_id=chat.id,
            chat_title=chat.title,
            message_id=msg.message_id,
            added=added,
            removed=_user(msg.left_chat_member),
            raw=raw_payload,
        )
    reply_to: TelegramReply | None = None
    reply = msg.reply_to_message
    if reply is not None:
        reply_to = TelegramReply(
            message_id=reply.message_id,
            text=reply.text if reply.text is not None else reply.caption,
            sender=_user(reply.from_),
        )
    return TelegramIncomingMessage(
        chat_id=chat.id,
        chat_type=chat.type,
        chat_title=chat.title,
        message_id=msg.message_id,
        text=msg.text,
        sender=_user(msg.from_),
        reply_to=reply_to,
        raw=raw_payload,
    )


def _parse_callback_query(
    query: CallbackQuery, *, raw: dict[str, Any] | None = None
) -> TelegramCallbackQuery | None:
    msg = query.message
    if msg is None:
        return None
    return TelegramCallbackQuery(
        chat_id=msg.chat.id,
        chat_type=msg.chat.type,
        message_id=msg.message_id,
        callback_query_id=query.id,
        data=query.data,
        sender=_user(query.from_),
        raw=raw if raw is not None else msgspec.to_builtins(query),
    )


async def poll_incoming(
    bot: BotClient,
    *,
    offset: int | None = None,
    timeout_s: int = 50,
) -> AsyncIterator[TelegramIncomingUpdate]:
    while True:
        try:
            updates = await bot.get_updates(
                offset=offset,
                timeout_s=timeout_s,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramApiError as e:
            logger.info("loop.get_updates.failed", error=str(e))
            await anyio.sleep(e.retry_after or POLL_RETRY_DELAY_S)
            continue
        logger.debug("loop.updates", count=len(updates))
        for upd in updates:
            update_id = upd.get("update_id")
            if isinstance(update_id, int):
                offset = update_id + 1
            parsed = parse_incoming_update(upd)
            if parsed is not None:
                yield parsed

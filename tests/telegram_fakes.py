from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pylon_tg_bot.context import BotContext
from pylon_tg_bot.dialogue import DialogueStorage
from pylon_tg_bot.pylon.models import Account, CreatedIssue
from pylon_tg_bot.settings import Settings, SettingsStore, encode_settings
from pylon_tg_bot.telegram.api_models import Chat, ChatMember, User
from pylon_tg_bot.telegram.client import TelegramApiError
from pylon_tg_bot.telegram.types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramReply,
    TelegramUser,
)

BOT_ID = 777
BOT_USERNAME = "SuccinctPylonBot"
GROUP_ID = -100123
ADMIN_CHAT_ID = 555


@dataclass
class FakeBot:
    chats: dict[int | str, Chat] = field(default_factory=dict)
    member_status: dict[int | str, str] = field(default_factory=dict)
    send_calls: list[dict[str, Any]] = field(default_factory=list)
    callback_calls: list[dict[str, Any]] = field(default_factory=list)
    command_calls: list[dict[str, Any]] = field(default_factory=list)
    get_chat_calls: list[int | str] = field(default_factory=list)
    closed: bool = False

    async def close(self) -> None:
        self.closed = True

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict]:
        return []

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict:
        self.send_calls.append(
            {
                "chat_id": chat_id,
                "text": text,
                "reply_to_message_id": reply_to_message_id,
                "parse_mode": parse_mode,
                "reply_markup": reply_markup,
            }
        )
        return {"message_id": len(self.send_calls)}

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool:
        self.callback_calls.append({"callback_query_id": callback_query_id, "text": text})
        return True

    async def get_chat(self, chat_id: int | str) -> Chat:
        self.get_chat_calls.append(chat_id)
        chat = self.chats.get(chat_id)
        if chat is None:
            raise TelegramApiError(
                "getChat",
                "Bad Request: chat not found",
                status=400,
                description="Bad Request: chat not found",
            )
        return chat

    async def get_chat_member(self, chat_id: int | str, user_id: int) -> ChatMember:
        return ChatMember(status=self.member_status.get(chat_id, "member"))

    async def get_me(self) -> User:
        return User(id=BOT_ID, is_bot=True, username=BOT_USERNAME)

    async def set_my_commands(
        self,
        commands: list[dict[str, Any]],
        *,
        scope: dict[str, Any] | None = None,
    ) -> bool:
        self.command_calls.append({"commands": commands, "scope": scope})
        return True


@dataclass
class FakePylon:
    accounts: dict[str, Account] = field(default_factory=dict)
    next_issue: CreatedIssue = field(
        default_factory=lambda: CreatedIssue(id="iss_1", number=7, link="https://x/7")
    )
    issue_calls: list[dict[str, str]] = field(default_factory=list)
    account_calls: list[str] = field(default_factory=list)
    error: Exception | None = None

    async def create_issue(
        self, title: str, body_html: str, account_id: str
    ) -> CreatedIssue:
        self.issue_calls.append(
            {"title": title, "body_html": body_html, "account_id": account_id}
        )
        if self.error is not None:
            raise self.error
        return self.next_issue

    async def get_account(self, account_id: str) -> Account | None:
        self.account_calls.append(account_id)
        if self.error is not None:
            raise self.error
        return self.accounts.get(account_id)


def make_store(tmp_path: Path, settings: Settings | None = None) -> SettingsStore:
    settings = settings if settings is not None else Settings()
    path = tmp_path / "settings.toml"
    path.write_bytes(encode_settings(settings))
    return SettingsStore(path, settings)


def make_ctx(
    tmp_path: Path,
    settings: Settings | None = None,
    *,
    bot: FakeBot | None = None,
    pylon: FakePylon | None = None,
) -> BotContext:
    return BotContext(
        bot=bot if bot is not None else FakeBot(),
        pylon=pylon if pylon is not None else FakePylon(),
        settings=make_store(tmp_path, settings),
        dialogues=DialogueStorage(),
        bot_username=BOT_USERNAME,
        bot_id=BOT_ID,
    )


def group_msg(
    text: str | None,
    *,
    chat_id: int = GROUP_ID,
    chat_title: str | None = "Acme Support",
    username: str | None = "bob",
    message_id: int = 10,
    reply_text: str | None = None,
    reply_username: str | None = "carol",
) -> TelegramIncomingMessage:
    reply_to = None
    if reply_text is not None:
        reply_to = TelegramReply(
            message_id=message_id - 1,
            text=reply_text,
            sender=TelegramUser(id=43, username=reply_username),
        )
    return TelegramIncomingMessage(
        chat_id=chat_id,
        chat_type="supergroup",
        chat_title=chat_title,
        message_id=message_id,
        text=text,
        sender=TelegramUser(id=42, username=username),
        reply_to=reply_to,
    )


def private_msg(
    text: str | None,
    *,
    chat_id: int = ADMIN_CHAT_ID,
    username: str | None = "alice",
    message_id: int = 20,
) -> TelegramIncomingMessage:
    return TelegramIncomingMessage(
        chat_id=chat_id,
        chat_type="private",
        message_id=message_id,
        text=text,
        sender=TelegramUser(id=chat_id, username=username),
    )


def callback(
    data: str | None,
    *,
    chat_id: int = ADMIN_CHAT_ID,
    chat_type: str = "private",
    username: str | None = "alice",
) -> TelegramCallbackQuery:
    return TelegramCallbackQuery(
        chat_id=chat_id,
        chat_type=chat_type,
        message_id=30,
        callback_query_id="cbq-1",
        data=data,
        sender=TelegramUser(id=chat_id, username=username),
    )

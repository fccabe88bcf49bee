from __future__ import annotations

from .commands import CommandSpec, IssueCommand, describe_commands
from .context import BotContext
from .dialogue import WaitingForAccountId
from .logging import get_logger
from .markdown import bold, bullet_list, escape_markdown_v2, link
from .pylon.models import CreatedIssue
from .telegram.api_models import Chat
from .telegram.client import MARKDOWN_V2, TelegramApiError, make_inline_keyboard
from .telegram.types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramMembershipChange,
)

logger = get_logger(__name__)

NOT_MEMBER_STATUSES = frozenset({"left", "kicked"})
# chat not found, bot kicked or blocked
CHAT_UNAVAILABLE_STATUSES = frozenset({400, 403})

LINKED_HEADER = "Linked chats"
NOT_LINKED_HEADER = "Not linked chats"
NOT_MEMBER_HEADER = "Bot is not a member"


def _chat_ref(chat_id: str) -> int | str:
    try:
        return int(chat_id)
    except ValueError:
        return chat_id


def _chat_display(chat: Chat) -> str:
    return chat.title or chat.username or chat.first_name or str(chat.id)


def default_issue_title(username: str | None, chat_title: str | None) -> str:
    return f"New issue from {username or ''} on {chat_title or ''}"


def render_issue_created(issue: CreatedIssue) -> str:
    if issue.number is not None:
        label = f"#{issue.number}"
    else:
        label = issue.id or "issue"
    target = link(label, issue.link) if issue.link else escape_markdown_v2(label)
    return f"✅ New issue {target} created in Pylon"


def render_accounts(
    linked: list[str], not_linked: list[str], not_member: list[str]
) -> str:
    sections = (
        (LINKED_HEADER, linked),
        (NOT_LINKED_HEADER, not_linked),
        (NOT_MEMBER_HEADER, not_member),
    )
    return "\n\n".join(
        f"{bold(header)}\n{bullet_list(items)}" for header, items in sections
    )


async def handle_help(
    ctx: BotContext, msg: TelegramIncomingMessage, specs: tuple[CommandSpec, ...]
) -> None:
    await ctx.bot.send_message(chat_id=msg.chat_id, text=describe_commands(specs))


async def handle_issue(
    ctx: BotContext, msg: TelegramIncomingMessage, command: IssueCommand
) -> CreatedIssue | None:
    """File the replied-to message as a Pylon issue.

    Every soft miss (no anchor, ignored author, unmapped chat) is logged and
    returns ``None`` without replying in the chat.
    """
    anchor = msg.reply_to
    if anchor is None:
        logger.warning("issue.no_anchor", chat_id=msg.chat_id)
        return None
    if not anchor.text:
        logger.warning(
            "issue.anchor_without_text",
            chat_id=msg.chat_id,
            anchor_id=anchor.message_id,
        )
        return None

    settings = await ctx.settings.get()
    author = anchor.sender.username if anchor.sender is not None else None
    if settings.is_ignored(author):
        logger.warning("issue.anchor_ignored", chat_id=msg.chat_id, username=author)
        return None

    chat_key = str(msg.chat_id)
    if chat_key not in settings.chat_to_account:
        logger.warning(
            "issue.unknown_chat", chat_id=msg.chat_id, chat_title=msg.chat_title
        )
        return None
    account_id = settings.linked_account(chat_key)
    if account_id is None:
        logger.warning(
            "issue.chat_not_linked", chat_id=msg.chat_id, chat_title=msg.chat_title
        )
        return None

    title = command.title.strip() or default_issue_title(author, msg.chat_title)
    logger.info(
        "issue.creating",
        chat_id=msg.chat_id,
        account_id=account_id,
        anchor_id=anchor.message_id,
    )
    created = await ctx.pylon.create_issue(title, anchor.text, account_id)
    await ctx.bot.send_message(
        chat_id=msg.chat_id,
        text=render_issue_created(created),
        reply_to_message_id=msg.message_id,
        parse_mode=MARKDOWN_V2,
    )
    return created


async def _fetch_chat(ctx: BotContext, chat_id: str) -> Chat | None:
    """Chat metadata, or ``None`` when the bot cannot see the chat."""
    try:
        chat = await ctx.bot.get_chat(_chat_ref(chat_id))
        if ctx.bot_id is not None:
            member = await ctx.bot.get_chat_member(_chat_ref(chat_id), ctx.bot_id)
            if member.status in NOT_MEMBER_STATUSES:
                return None
    except TelegramApiError as e:
        if e.status not in CHAT_UNAVAILABLE_STATUSES or e.retry_after is not None:
            raise
        logger.info("chat.unavailable", chat_id=chat_id, error=str(e))
        return None
    return chat


async def handle_list(ctx: BotContext, msg: TelegramIncomingMessage) -> None:
    settings = await ctx.settings.get()
    linked: list[str] = []
    not_linked: list[str] = []
    not_member: list[str] = []
    for chat_id in sorted(settings.chat_to_account):
        chat = await _fetch_chat(ctx, chat_id)
        if chat is None:
            not_member.append(chat_id)
            continue
        title = _chat_display(chat)
        account_id = settings.linked_account(chat_id)
        if account_id is None:
            not_linked.append(title)
            continue
        account = await ctx.pylon.get_account(account_id)
        name = account.name if account is not None and account.name else account_id
        linked.append(f"{title} → {name}")

    await ctx.bot.send_message(
        chat_id=msg.chat_id,
        text=render_accounts(linked, not_linked, not_member),
        parse_mode=MARKDOWN_V2,
    )


async def handle_link(ctx: BotContext, msg: TelegramIncomingMessage) -> None:
    settings = await ctx.settings.get()
    candidates = settings.unlinked_chat_ids()
    if not candidates:
        await ctx.bot.send_message(
            chat_id=msg.chat_id, text="All chats are already linked."
        )
        return
    buttons: list[tuple[str, str]] = []
    for chat_id in sorted(candidates):
        chat = await _fetch_chat(ctx, chat_id)
        label = _chat_display(chat) if chat is not None else chat_id
        buttons.append((label, chat_id))
    await ctx.bot.send_message(
        chat_id=msg.chat_id,
        text="Select a chat to link:",
        reply_markup=make_inline_keyboard(buttons),
    )


async def handle_link_callback(ctx: BotContext, query: TelegramCallbackQuery) -> None:
    await ctx.bot.answer_callback_query(query.callback_query_id)
    target = (query.data or "").strip()
    if not target:
        logger.warning("link.callback.empty", chat_id=query.chat_id)
        return
    await ctx.dialogues.set(query.chat_id, WaitingForAccountId(chat_id=target))
    await ctx.bot.send_message(
        chat_id=query.chat_id,
        text=f"Send the Pylon account ID for chat {target}",
    )


async def handle_account_id(
    ctx: BotContext, msg: TelegramIncomingMessage, state: WaitingForAccountId
) -> bool:
    """Finish the link flow; returns whether the chat was linked."""
    account_id = (msg.text or "").strip()
    account = await ctx.pylon.get_account(account_id) if account_id else None
    if account is None:
        logger.info("link.account_not_found", account_id=account_id)
        await ctx.bot.send_message(
            chat_id=msg.chat_id,
            text=f"❌ Account {escape_markdown_v2(account_id)} not found in Pylon",
            parse_mode=MARKDOWN_V2,
        )
        return False

    # no lock is held across the lookup above; concurrent links may race
    settings = await ctx.settings.get()
    await ctx.settings.save(settings.with_link(state.chat_id, account_id))
    await ctx.dialogues.reset(msg.chat_id)
    logger.info(
        "link.saved",
        chat_id=state.chat_id,
        account_id=account_id,
        admin=msg.sender_username,
    )
    name = account.name or account_id
    await ctx.bot.send_message(
        chat_id=msg.chat_id,
        text=(
            f"✅ Chat {escape_markdown_v2(state.chat_id)} linked to "
            f"Pylon account {bold(name)}"
        ),
        parse_mode=MARKDOWN_V2,
    )
    return True


async def handle_membership(ctx: BotContext, change: TelegramMembershipChange) -> None:
    username = ctx.bot_username
    if any(user.username == username for user in change.added):
        logger.info(
            "bot.added", chat_id=change.chat_id, chat_title=change.chat_title
        )
    if change.removed is not None and change.removed.username == username:
        logger.warning(
            "bot.removed", chat_id=change.chat_id, chat_title=change.chat_title
        )

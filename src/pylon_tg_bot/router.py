"""Classifies incoming updates and dispatches them to handlers.

Classification is a priority list, first match wins:

1. public commands in group chats
2. admin commands in private chats while no dialogue is pending
3. the pending link dialogue (the next text message is an account id)
4. inline keyboard callback queries
5. bot membership changes
"""

from __future__ import annotations

from dataclasses import dataclass

from .commands import (
    ADMIN_COMMANDS,
    PUBLIC_COMMANDS,
    AdminCommand,
    AdminHelpCommand,
    Command,
    HelpCommand,
    IssueCommand,
    LinkCommand,
    ListCommand,
    parse_admin_command,
    parse_command,
)
from .context import BotContext
from .dialogue import DialogueState, Start, WaitingForAccountId
from .handlers import (
    handle_account_id,
    handle_help,
    handle_issue,
    handle_link,
    handle_link_callback,
    handle_list,
    handle_membership,
)
from .logging import get_logger
from .telegram.types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipChange,
)

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PublicCommandRoute:
    msg: TelegramIncomingMessage
    command: Command


@dataclass(frozen=True, slots=True)
class AdminCommandRoute:
    msg: TelegramIncomingMessage
    command: AdminCommand


@dataclass(frozen=True, slots=True)
class DialogueRoute:
    msg: TelegramIncomingMessage
    state: WaitingForAccountId


@dataclass(frozen=True, slots=True)
class CallbackRoute:
    query: TelegramCallbackQuery


@dataclass(frozen=True, slots=True)
class MembershipRoute:
    change: TelegramMembershipChange


@dataclass(frozen=True, slots=True)
class RejectedRoute:
    msg: TelegramIncomingMessage
    reason: str


Route = (
    PublicCommandRoute
    | AdminCommandRoute
    | DialogueRoute
    | CallbackRoute
    | MembershipRoute
    | RejectedRoute
)


def classify_update(
    update: TelegramIncomingUpdate,
    state: DialogueState,
    *,
    bot_username: str,
) -> Route | None:
    if isinstance(update, TelegramIncomingMessage):
        return _classify_message(update, state, bot_username=bot_username)
    if isinstance(update, TelegramCallbackQuery):
        return CallbackRoute(query=update)
    if isinstance(update, TelegramMembershipChange):
        return MembershipRoute(change=update)
    return None


def _classify_message(
    msg: TelegramIncomingMessage,
    state: DialogueState,
    *,
    bot_username: str,
) -> Route | None:
    if not msg.is_private:
        command = parse_command(msg.text, bot_username=bot_username)
        if command is not None:
            return PublicCommandRoute(msg=msg, command=command)
    if msg.is_private and isinstance(state, Start):
        admin_command = parse_admin_command(msg.text, bot_username=bot_username)
        if admin_command is not None:
            return AdminCommandRoute(msg=msg, command=admin_command)
    if isinstance(state, WaitingForAccountId) and msg.text is not None:
        return DialogueRoute(msg=msg, state=state)
    if not msg.is_private:
        if parse_admin_command(msg.text, bot_username=bot_username) is not None:
            return RejectedRoute(msg=msg, reason="not_private")
    return None


def _sender_username(route: Route) -> str | None:
    if isinstance(route, CallbackRoute):
        return route.query.sender_username
    if isinstance(route, (AdminCommandRoute, DialogueRoute, RejectedRoute)):
        return route.msg.sender_username
    return None


class Router:
    def __init__(self, ctx: BotContext) -> None:
        self._ctx = ctx

    @property
    def ctx(self) -> BotContext:
        return self._ctx

    async def route(self, update: TelegramIncomingUpdate) -> Route | None:
        state: DialogueState = Start()
        if isinstance(update, TelegramIncomingMessage):
            state = await self._ctx.dialogues.get(update.chat_id)
        return classify_update(update, state, bot_username=self._ctx.bot_username)

    async def _authorize(self, route: Route) -> bool:
        if isinstance(route, CallbackRoute) and not route.query.is_private:
            logger.warning(
                "router.rejected",
                reason="not_private",
                chat_id=route.query.chat_id,
                username=route.query.sender_username,
            )
            return False
        settings = await self._ctx.settings.get()
        username = _sender_username(route)
        if settings.is_admin(username):
            return True
        logger.warning(
            "router.unauthorized",
            route=type(route).__name__,
            username=username,
        )
        return False

    async def handle(self, update: TelegramIncomingUpdate) -> None:
        route = await self.route(update)
        if route is None:
            logger.debug("router.ignored", update=type(update).__name__)
            return
        if isinstance(route, RejectedRoute):
            logger.warning(
                "router.rejected",
                reason=route.reason,
                chat_id=route.msg.chat_id,
                username=route.msg.sender_username,
            )
            return
        if isinstance(route, (AdminCommandRoute, DialogueRoute, CallbackRoute)):
            if not await self._authorize(route):
                if isinstance(route, CallbackRoute):
                    await self._ctx.bot.answer_callback_query(
                        route.query.callback_query_id
                    )
                return
        await self.dispatch(route)

    async def dispatch(self, route: Route) -> None:
        ctx = self._ctx
        if isinstance(route, PublicCommandRoute):
            logger.info(
                "router.command",
                command=type(route.command).__name__,
                chat_id=route.msg.chat_id,
            )
            if isinstance(route.command, HelpCommand):
                await handle_help(ctx, route.msg, PUBLIC_COMMANDS)
            elif isinstance(route.command, IssueCommand):
                await handle_issue(ctx, route.msg, route.command)
            return
        if isinstance(route, AdminCommandRoute):
            logger.info(
                "router.admin_command",
                command=type(route.command).__name__,
                username=route.msg.sender_username,
            )
            if isinstance(route.command, AdminHelpCommand):
                await handle_help(ctx, route.msg, ADMIN_COMMANDS)
            elif isinstance(route.command, ListCommand):
                await handle_list(ctx, route.msg)
            elif isinstance(route.command, LinkCommand):
                await handle_link(ctx, route.msg)
            return
        if isinstance(route, DialogueRoute):
            await handle_account_id(ctx, route.msg, route.state)
            return
        if isinstance(route, CallbackRoute):
            await handle_link_callback(ctx, route.query)
            return
        if isinstance(route, MembershipRoute):
            await handle_membership(ctx, route.change)
            return

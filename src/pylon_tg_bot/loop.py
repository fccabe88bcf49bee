from __future__ import annotations

import signal
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing

import anyio

from .commands import ADMIN_COMMANDS, PUBLIC_COMMANDS, build_bot_commands
from .context import BotContext
from .logging import get_logger
from .router import Router
from .settings import SettingsStore
from .telegram.client import BotClient, TelegramApiError
from .telegram.parsing import poll_incoming
from .telegram.types import TelegramIncomingUpdate
from .watcher import watch_settings

logger = get_logger(__name__)

Poller = Callable[[BotContext], AsyncIterator[TelegramIncomingUpdate]]
SettingsWatcher = Callable[[SettingsStore, anyio.Event], Awaitable[None]]


def poll_updates(ctx: BotContext) -> AsyncIterator[TelegramIncomingUpdate]:
    return poll_incoming(ctx.bot)


async def set_command_menus(bot: BotClient) -> None:
    menus = (
        (PUBLIC_COMMANDS, {"type": "all_group_chats"}),
        (ADMIN_COMMANDS, {"type": "all_private_chats"}),
    )
    for specs, scope in menus:
        try:
            await bot.set_my_commands(build_bot_commands(specs), scope=scope)
        except TelegramApiError as e:
            logger.warning(
                "telegram.commands.failed", scope=scope["type"], error=str(e)
            )


async def handle_update_safely(router: Router, update: TelegramIncomingUpdate) -> None:
    """Process-wide error sink: failures are logged and the update dropped."""
    try:
        await router.handle(update)
    except Exception:
        logger.exception(
            "update.failed",
            update=type(update).__name__,
            chat_id=update.chat_id,
        )


async def _run_settings_watcher(
    watcher: SettingsWatcher, store: SettingsStore, stop_event: anyio.Event
) -> None:
    try:
        await watcher(store, stop_event)
    except Exception:
        logger.exception("settings.watch.failed", path=str(store.path))


async def _cancel_when_set(stop_event: anyio.Event, scope: anyio.CancelScope) -> None:
    await stop_event.wait()
    scope.cancel()


async def _stop_on_signal(stop_event: anyio.Event, scope: anyio.CancelScope) -> None:
    with scope:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                logger.info("shutdown.signal", signal=signal.Signals(signum).name)
                stop_event.set()
                return


async def run_main_loop(
    ctx: BotContext,
    *,
    poller: Poller = poll_updates,
    watcher: SettingsWatcher = watch_settings,
    stop_event: anyio.Event | None = None,
    handle_signals: bool = True,
    command_menu: bool = True,
) -> None:
    """Dispatch updates until the poller ends or ``stop_event`` is set.

    Each update runs in its own task. On shutdown polling stops, in-flight
    updates finish, and the settings watcher exits at its next wake-up.
    """
    stop = stop_event if stop_event is not None else anyio.Event()
    router = Router(ctx)
    if command_menu:
        await set_command_menus(ctx.bot)

    logger.info("loop.started", bot_username=ctx.bot_username)
    signal_scope = anyio.CancelScope()
    async with anyio.create_task_group() as tg:
        tg.start_soon(_run_settings_watcher, watcher, ctx.settings, stop)
        if handle_signals:
            tg.start_soon(_stop_on_signal, stop, signal_scope)
        async with anyio.create_task_group() as handlers:
            with anyio.CancelScope() as poll_scope:
                tg.start_soon(_cancel_when_set, stop, poll_scope)
                async with aclosing(poller(ctx)) as updates:
                    async for update in updates:
                        handlers.start_soon(handle_update_safely, router, update)
            stop.set()
        signal_scope.cancel()
    logger.info("loop.stopped")

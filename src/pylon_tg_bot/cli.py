from __future__ import annotations

from pathlib import Path

import anyio
import typer

from . import __version__
from .config import (
    DEFAULT_SETTINGS_PATH,
    ENV_LOG_DIR,
    ENV_PYLON_API_TOKEN,
    ENV_SETTINGS_PATH,
    ConfigError,
    get_bot_token,
    get_bot_username,
    load_env_file,
    resolve_settings_path,
)
from .context import BotContext
from .dialogue import DialogueStorage
from .logging import get_logger, setup_logging
from .loop import run_main_loop
from .pylon import PylonClient
from .settings import SettingsStore
from .telegram.client import TelegramApiError, TelegramClient

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, help="Telegram bot that files Pylon issues.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


async def _serve(pylon_api_token: str, settings_path: Path) -> None:
    if not pylon_api_token.strip():
        raise ConfigError(
            f"Missing Pylon API token. Pass --pylon-api-token or set {ENV_PYLON_API_TOKEN}."
        )
    bot_token = get_bot_token()
    store = await SettingsStore.open(settings_path)

    bot = TelegramClient(bot_token)
    pylon = PylonClient(pylon_api_token.strip())
    try:
        try:
            me = await bot.get_me()
        except TelegramApiError as e:
            raise ConfigError(f"Failed to authenticate the Telegram bot: {e}") from e
        ctx = BotContext(
            bot=bot,
            pylon=pylon,
            settings=store,
            dialogues=DialogueStorage(),
            bot_username=get_bot_username(),
            bot_id=me.id,
        )
        if me.username and me.username != ctx.bot_username:
            logger.warning(
                "startup.username_mismatch",
                expected=ctx.bot_username,
                actual=me.username,
            )
        logger.info(
            "startup",
            version=__version__,
            settings_path=str(store.path),
            bot_id=me.id,
        )
        await run_main_loop(ctx)
    finally:
        await pylon.close()
        await bot.close()


@app.command()
def run(
    pylon_api_token: str = typer.Option(
        ...,
        "--pylon-api-token",
        envvar=ENV_PYLON_API_TOKEN,
        help="Pylon API bearer token.",
        show_default=False,
    ),
    settings_path: Path = typer.Option(
        DEFAULT_SETTINGS_PATH,
        "--settings-path",
        envvar=ENV_SETTINGS_PATH,
        help="Settings file with chat to account links and bot admins.",
    ),
    log_dir: Path | None = typer.Option(
        None,
        "--log-dir",
        envvar=ENV_LOG_DIR,
        help="Also write logs to pylon-tg-bot.log in this directory.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Verbose console logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Run the bot until interrupted."""
    _ = version
    try:
        setup_logging(debug=debug, log_dir=log_dir)
    except OSError as e:
        typer.echo(f"error: cannot open log directory {log_dir}: {e}", err=True)
        raise typer.Exit(code=1) from e
    try:
        anyio.run(_serve, pylon_api_token, resolve_settings_path(settings_path))
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")


def main() -> None:
    load_env_file()
    app()

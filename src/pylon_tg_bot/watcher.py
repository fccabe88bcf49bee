from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable
from pathlib import Path

import anyio
from watchfiles import Change, awatch

from .logging import get_logger
from .settings import SettingsStore

logger = get_logger(__name__)

_RELOAD_CHANGES = frozenset({Change.added, Change.modified})

ChangeSet = set[tuple[Change, str]]
Watcher = Callable[..., AsyncIterator[ChangeSet]]


def touches_path(changes: Iterable[tuple[Change, str]], path: Path) -> bool:
    target = path.resolve()
    for change, changed_path in changes:
        if change not in _RELOAD_CHANGES:
            continue
        if Path(changed_path).resolve() == target:
            return True
    return False


async def watch_settings(
    store: SettingsStore,
    stop_event: anyio.Event,
    *,
    watcher: Watcher = awatch,
) -> None:
    """Reload ``store`` whenever its file is written, until ``stop_event`` is set.

    The parent directory is watched so editors that replace the file on save
    are still noticed.
    """
    path = store.path.resolve()
    logger.info("settings.watch.started", path=str(path))
    async for changes in watcher(
        path.parent, stop_event=stop_event, recursive=False
    ):
        if stop_event.is_set():
            break
        if not touches_path(changes, path):
            continue
        logger.debug("settings.watch.changed", path=str(path))
        await store.reload()
    logger.info("settings.watch.stopped", path=str(path))

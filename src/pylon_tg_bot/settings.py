from __future__ import annotations

from pathlib import Path

import anyio
import msgspec

from .config import ConfigError
from .logging import get_logger
from .utils.locks import ReadWriteLock

logger = get_logger(__name__)


class Settings(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    chat_to_account: dict[str, str] = msgspec.field(
        default_factory=dict, name="tg_chats_to_pylon_accounts"
    )
    admin_usernames: frozenset[str] = msgspec.field(
        default=frozenset(), name="bot_admins"
    )
    ignored_usernames: frozenset[str] = msgspec.field(
        default=frozenset(), name="ignored_tg_usernames"
    )

    def is_admin(self, username: str | None) -> bool:
        return username is not None and username in self.admin_usernames

    def is_ignored(self, username: str | None) -> bool:
        return username is not None and username in self.ignored_usernames

    def linked_account(self, chat_id: str) -> str | None:
        account_id = self.chat_to_account.get(chat_id)
        if account_id is None:
            return None
        account_id = account_id.strip()
        return account_id or None

    def unlinked_chat_ids(self) -> list[str]:
        return [
            chat_id
            for chat_id, account_id in self.chat_to_account.items()
            if not account_id.strip()
        ]

    def with_link(self, chat_id: str, account_id: str) -> Settings:
        mapping = dict(self.chat_to_account)
        mapping[chat_id] = account_id
        return msgspec.structs.replace(self, chat_to_account=mapping)


def encode_settings(settings: Settings) -> bytes:
    return msgspec.toml.encode(settings, order="deterministic")


def decode_settings(raw: bytes | str, *, path: Path | None = None) -> Settings:
    try:
        return msgspec.toml.decode(raw, type=Settings)
    except msgspec.ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from None
    except msgspec.DecodeError as e:
        raise ConfigError(f"Malformed TOML in {path}: {e}") from None


async def load_settings(path: Path, *, create: bool = False) -> Settings:
    """Read settings from ``path``.

    A missing file is written with defaults when ``create`` is set. Read and
    parse failures raise ``ConfigError``.
    """
    file = anyio.Path(path)
    try:
        raw = await file.read_bytes()
    except FileNotFoundError:
        if not create:
            raise ConfigError(f"Missing settings file {path}.") from None
        settings = Settings()
        try:
            await file.parent.mkdir(parents=True, exist_ok=True)
            await file.write_bytes(encode_settings(settings))
        except OSError as e:
            raise ConfigError(f"Failed to create settings file {path}: {e}") from e
        logger.warning("settings.created", path=str(path))
        return settings
    except OSError as e:
        raise ConfigError(f"Failed to read settings file {path}: {e}") from e
    return decode_settings(raw, path=path)


class SettingsStore:
    """Live settings shared by every handler.

    ``get`` hands out copies, ``reload`` and ``save`` replace the whole object.
    Read-modify-write sequences are not atomic: two concurrent ``save`` calls
    built from the same snapshot keep only the last one.
    """

    def __init__(self, path: Path, settings: Settings | None = None) -> None:
        self._path = path
        self._settings = settings if settings is not None else Settings()
        self._lock = ReadWriteLock()

    @classmethod
    async def open(cls, path: Path) -> SettingsStore:
        settings = await load_settings(path, create=True)
        logger.info(
            "settings.loaded",
            path=str(path),
            chats=len(settings.chat_to_account),
            admins=len(settings.admin_usernames),
        )
        return cls(path, settings)

    @property
    def path(self) -> Path:
        return self._path

    async def get(self) -> Settings:
        async with self._lock.read():
            current = self._settings
            return msgspec.structs.replace(
                current, chat_to_account=dict(current.chat_to_account)
            )

    async def reload(self) -> bool:
        async with self._lock.write():
            try:
                settings = await load_settings(self._path)
            except ConfigError as e:
                logger.error(
                    "settings.reload.failed", path=str(self._path), error=str(e)
                )
                return False
            self._settings = settings
        logger.info(
            "settings.reload",
            path=str(self._path),
            chats=len(settings.chat_to_account),
            admins=len(settings.admin_usernames),
        )
        return True

    async def save(self, settings: Settings) -> None:
        payload = encode_settings(settings)
        async with self._lock.write():
            await anyio.Path(self._path).write_bytes(payload)
            self._settings = settings
        logger.info(
            "settings.saved",
            path=str(self._path),
            chats=len(settings.chat_to_account),
        )

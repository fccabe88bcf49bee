from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .config import BOT_USERNAME
from .dialogue import DialogueStorage
from .pylon.models import Account, CreatedIssue
from .settings import SettingsStore
from .telegram.client import BotClient


class PylonApi(Protocol):
    async def create_issue(
        self, title: str, body_html: str, account_id: str
    ) -> CreatedIssue: ...

    async def get_account(self, account_id: str) -> Account | None: ...


@dataclass(frozen=True, slots=True)
class BotContext:
    """Collaborators shared by every update handler."""

    bot: BotClient
    pylon: PylonApi
    settings: SettingsStore
    dialogues: DialogueStorage
    bot_username: str = BOT_USERNAME
    bot_id: int | None = None

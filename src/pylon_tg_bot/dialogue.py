from __future__ import annotations

from dataclasses import dataclass

import anyio

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Start:
    pass


@dataclass(frozen=True, slots=True)
class WaitingForAccountId:
    chat_id: str


DialogueState = Start | WaitingForAccountId


class DialogueStorage:
    """In-memory dialogue state keyed by the admin's private chat id.

    States never expire and are lost on restart.
    """

    def __init__(self) -> None:
        self._states: dict[int, DialogueState] = {}
        self._lock = anyio.Lock()

    async def get(self, chat_id: int) -> DialogueState:
        async with self._lock:
            return self._states.get(chat_id, Start())

    async def set(self, chat_id: int, state: DialogueState) -> None:
        async with self._lock:
            if isinstance(state, Start):
                self._states.pop(chat_id, None)
            else:
                self._states[chat_id] = state
        logger.debug("dialogue.state", chat_id=chat_id, state=repr(state))

    async def reset(self, chat_id: int) -> None:
        await self.set(chat_id, Start())

from __future__ import annotations

from typing import Any, Protocol

import httpx
import msgspec

from ..logging import get_logger
from .api_models import Chat, ChatMember, User

logger = get_logger(__name__)

MARKDOWN_V2 = "MarkdownV2"


class TelegramApiError(RuntimeError):
    def __init__(
        self,
        method: str,
        message: str,
        *,
        status: int | None = None,
        description: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method
        self.status = status
        self.description = description
        self.retry_after = retry_after


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict]: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict: ...

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool: ...

    async def get_chat(self, chat_id: int | str) -> Chat: ...

    async def get_chat_member(self, chat_id: int | str, user_id: int) -> ChatMember: ...

    async def get_me(self) -> User: ...

    async def set_my_commands(
        self,
        commands: list[dict[str, Any]],
        *,
        scope: dict[str, Any] | None = None,
    ) -> bool: ...


def make_inline_keyboard(buttons: list[tuple[str, str]]) -> dict[str, Any]:
    """One button per row; each item is ``(label, callback_data)``."""
    return {
        "inline_keyboard": [
            [{"text": label, "callback_data": data}] for label, data in buttons
        ]
    }


def _retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    return None


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"https://api.telegram.org/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, method: str, json_data: dict[str, Any]) -> Any:
        logger.debug("telegram.request", method=method, payload=json_data)
        try:
            resp = await self._client.post(f"{self._base}/{method}", json=json_data)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise TelegramApiError(method, f"network error: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            raise TelegramApiError(
                method, "malformed response", status=resp.status_code
            ) from e

        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            raise TelegramApiError(
                method, "unexpected payload", status=resp.status_code
            )

        if resp.status_code != 200 or not payload.get("ok"):
            description = payload.get("description")
            retry_after = _retry_after_from_payload(payload)
            logger.error(
                "telegram.api_error",
                method=method,
                status=resp.status_code,
                description=description,
                retry_after=retry_after,
            )
            raise TelegramApiError(
                method,
                str(description or f"HTTP {resp.status_code}"),
                status=resp.status_code,
                description=description if isinstance(description, str) else None,
                retry_after=retry_after,
            )

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict]:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        result = await self._post("getUpdates", params)
        return result if isinstance(result, list) else []

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        if reply_to_message_id is not None:
            params["reply_to_message_id"] = reply_to_message_id
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = reply_markup
        result = await self._post("sendMessage", params)
        return result if isinstance(result, dict) else {}

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool:
        params: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text is not None:
            params["text"] = text
        return bool(await self._post("answerCallbackQuery", params))

    async def get_chat(self, chat_id: int | str) -> Chat:
        result = await self._post("getChat", {"chat_id": chat_id})
        return msgspec.convert(result, type=Chat)

    async def get_chat_member(self, chat_id: int | str, user_id: int) -> ChatMember:
        result = await self._post(
            "getChatMember", {"chat_id": chat_id, "user_id": user_id}
        )
        return msgspec.convert(result, type=ChatMember)

    async def get_me(self) -> User:
        result = await self._post("getMe", {})
        return msgspec.convert(result, type=User)

    async def set_my_commands(
        self,
        commands: list[dict[str, Any]],
        *,
        scope: dict[str, Any] | None = None,
    ) -> bool:
        params: dict[str, Any] = {"commands": commands}
        if scope is not None:
            params["scope"] = scope
        return bool(await self._post("setMyCommands", params))

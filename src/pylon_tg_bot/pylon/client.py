from __future__ import annotations

from typing import Any, TypeVar
from urllib.parse import quote

import httpx
import msgspec

from ..logging import get_logger
from .models import Account, CreatedIssue, ErrorResponse, Issue, SuccessResponse

logger = get_logger(__name__)

PYLON_API_URL = "https://api.usepylon.com"

T = TypeVar("T")


class PylonError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = errors or []


def _error_from_response(resp: httpx.Response) -> PylonError:
    try:
        envelope = msgspec.json.decode(resp.content, type=ErrorResponse)
    except msgspec.DecodeError:
        return PylonError(
            f"Pylon returned HTTP {resp.status_code}: {resp.text}",
            status=resp.status_code,
        )
    if not envelope.errors:
        return PylonError(
            f"Pylon returned HTTP {resp.status_code}", status=resp.status_code
        )
    return PylonError(
        "; ".join(envelope.errors),
        status=resp.status_code,
        errors=envelope.errors,
    )


class PylonClient:
    """Single-shot client for the Pylon issue and account endpoints."""

    def __init__(
        self,
        api_token: str,
        *,
        base_url: str = PYLON_API_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_token:
            raise ValueError("Pylon API token is empty")
        self._base = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, json_data: Any | None = None
    ) -> httpx.Response:
        url = f"{self._base}{path}"
        logger.debug("pylon.request", method=method, url=url)
        headers = dict(self._headers)
        content: bytes | None = None
        if json_data is not None:
            headers["Content-Type"] = "application/json"
            content = msgspec.json.encode(json_data)
        try:
            return await self._client.request(
                method, url, headers=headers, content=content
            )
        except httpx.HTTPError as e:
            logger.error(
                "pylon.network_error",
                method=method,
                url=url,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise PylonError(f"Pylon request failed: {e}") from e

    def _decode_success(self, resp: httpx.Response, kind: type[T]) -> T:
        try:
            envelope = msgspec.json.decode(resp.content, type=SuccessResponse[kind])
        except msgspec.DecodeError as e:
            logger.error(
                "pylon.bad_response",
                status=resp.status_code,
                url=str(resp.request.url),
                error=str(e),
                body=resp.text,
            )
            raise PylonError(
                f"Unexpected Pylon response: {e}", status=resp.status_code
            ) from e
        logger.debug(
            "pylon.response",
            status=resp.status_code,
            request_id=envelope.request_id,
        )
        return envelope.data

    async def create_issue(
        self, title: str, body_html: str, account_id: str
    ) -> CreatedIssue:
        issue = Issue(account_id=account_id, title=title, body_html=body_html)
        resp = await self._request("POST", "/issues", json_data=issue)
        if resp.status_code != 200:
            error = _error_from_response(resp)
            logger.error(
                "pylon.create_issue.failed",
                status=resp.status_code,
                account_id=account_id,
                error=str(error),
            )
            raise error
        created = self._decode_success(resp, CreatedIssue)
        logger.info(
            "pylon.issue.created",
            account_id=account_id,
            number=created.number,
            link=created.link,
        )
        return created

    async def get_account(self, account_id: str) -> Account | None:
        resp = await self._request(
            "GET", f"/accounts/{quote(account_id, safe='')}"
        )
        if resp.status_code == 404:
            logger.info("pylon.account.not_found", account_id=account_id)
            return None
        if resp.status_code != 200:
            error = _error_from_response(resp)
            logger.error(
                "pylon.get_account.failed",
                status=resp.status_code,
                account_id=account_id,
                error=str(error),
            )
            raise error
        return self._decode_success(resp, Account)

from __future__ import annotations

from typing import Generic, TypeVar

import msgspec

__all__ = [
    "Account",
    "CreatedIssue",
    "ErrorResponse",
    "Issue",
    "SuccessResponse",
]

T = TypeVar("T")


class Issue(msgspec.Struct):
    account_id: str
    title: str
    body_html: str


class CreatedIssue(msgspec.Struct, forbid_unknown_fields=False):
    id: str | None = None
    number: int | None = None
    link: str | None = None


class Account(msgspec.Struct, forbid_unknown_fields=False):
    id: str | None = None
    name: str | None = None


class SuccessResponse(msgspec.Struct, Generic[T], forbid_unknown_fields=False):
    data: T
    request_id: str | None = None


class ErrorResponse(msgspec.Struct, forbid_unknown_fields=False):
    errors: list[str] = msgspec.field(default_factory=list)
    exists_id: str | None = None
    request_id: str | None = None

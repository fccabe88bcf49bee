"""Telegram Markdown-V2 helpers.

Every piece of dynamic text (chat titles, account names, issue numbers)
goes through :func:`escape_markdown_v2` before it is embedded in a reply
sent with ``parse_mode="MarkdownV2"``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"

_ESCAPE_RE = re.compile(r"([\\" + re.escape(SPECIAL_CHARS) + r"])")
_URL_ESCAPE_RE = re.compile(r"([\\)])")

NO_DATA = "No data"


def escape_markdown_v2(text: str) -> str:
    return _ESCAPE_RE.sub(r"\\\1", text)


def escape_link_url(url: str) -> str:
    # inside (...) only ")" and "\" are special
    return _URL_ESCAPE_RE.sub(r"\\\1", url)


def link(label: str, url: str) -> str:
    return f"[{escape_markdown_v2(label)}]({escape_link_url(url)})"


def bold(text: str) -> str:
    return f"*{escape_markdown_v2(text)}*"


def bullet_list(items: Iterable[str]) -> str:
    """Bulleted lines of escaped ``items``, or the escaped ``No data`` marker."""
    lines = [f"• {escape_markdown_v2(item)}" for item in items]
    if not lines:
        return escape_markdown_v2(NO_DATA)
    return "\n".join(lines)

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

COMMAND_PREFIX = "/"


@dataclass(frozen=True, slots=True)
class CommandSpec:
    name: str
    description: str
    aliases: tuple[str, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True, slots=True)
class HelpCommand:
    pass


@dataclass(frozen=True, slots=True)
class IssueCommand:
    title: str = ""


Command = HelpCommand | IssueCommand


@dataclass(frozen=True, slots=True)
class AdminHelpCommand:
    pass


@dataclass(frozen=True, slots=True)
class ListCommand:
    pass


@dataclass(frozen=True, slots=True)
class LinkCommand:
    pass


AdminCommand = AdminHelpCommand | ListCommand | LinkCommand


PUBLIC_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("help", "Display this text.", aliases=("h", "?")),
    CommandSpec(
        "issue",
        "Create a Pylon issue from the replied message. Optional text sets the title.",
    ),
)

ADMIN_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("help", "Display this text.", aliases=("h", "?")),
    CommandSpec("list", "List chats and their Pylon accounts."),
    CommandSpec("link", "Link a chat to a Pylon account."),
)


def split_command(text: str | None, *, bot_username: str) -> tuple[str, str] | None:
    """Split ``/name@bot args`` into ``(name, args)``.

    Returns ``None`` for plain text and for commands addressed to another bot.
    """
    if not text:
        return None
    stripped = text.lstrip()
    if not stripped.startswith(COMMAND_PREFIX):
        return None
    parts = stripped.split(maxsplit=1)
    head = parts[0]
    args = parts[1] if len(parts) > 1 else ""
    name, _, mention = head[len(COMMAND_PREFIX) :].partition("@")
    if not name:
        return None
    if mention and mention.lower() != bot_username.lower():
        return None
    return name.lower(), args


def _lookup(specs: tuple[CommandSpec, ...], name: str) -> CommandSpec | None:
    for spec in specs:
        if name in spec.names:
            return spec
    return None


def parse_command(text: str | None, *, bot_username: str) -> Command | None:
    parts = split_command(text, bot_username=bot_username)
    if parts is None:
        return None
    name, args = parts
    spec = _lookup(PUBLIC_COMMANDS, name)
    if spec is None:
        return None
    if spec.name == "help":
        return HelpCommand()
    return IssueCommand(title=args.strip())


def parse_admin_command(text: str | None, *, bot_username: str) -> AdminCommand | None:
    parts = split_command(text, bot_username=bot_username)
    if parts is None:
        return None
    name, _ = parts
    spec = _lookup(ADMIN_COMMANDS, name)
    if spec is None:
        return None
    if spec.name == "help":
        return AdminHelpCommand()
    if spec.name == "list":
        return ListCommand()
    return LinkCommand()


def describe_commands(specs: tuple[CommandSpec, ...]) -> str:
    lines = []
    for spec in specs:
        names = ", ".join(f"{COMMAND_PREFIX}{name}" for name in spec.names)
        lines.append(f"{names} - {spec.description}")
    return "\n".join(lines)


def build_bot_commands(specs: tuple[CommandSpec, ...]) -> list[dict[str, Any]]:
    return [
        {"command": spec.name, "description": spec.description} for spec in specs
    ]

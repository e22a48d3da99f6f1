from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from config.defaults import CAPTURE_CONTEXT_MENU_NAME
from config.defaults import COMMAND_NAME_MAX_LEN
from config.defaults import COMMAND_NAME_MIN_LEN

# Discord application command types / option types (API values).
CHAT_INPUT = 1
MESSAGE = 3
OPTION_STRING = 3


@dataclass(frozen=True, slots=True)
class OptionDescriptor:
    name: str
    description: str
    required: bool = True
    type: int = OPTION_STRING
    min_length: int | None = None
    max_length: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }
        if self.min_length is not None:
            payload["min_length"] = self.min_length
        if self.max_length is not None:
            payload["max_length"] = self.max_length
        return payload


@dataclass(frozen=True, slots=True)
class CommandDescriptor:
    name: str
    description: str = ""
    options: tuple[OptionDescriptor, ...] = field(default_factory=tuple)
    type: int = CHAT_INPUT

    @property
    def is_message_action(self) -> bool:
        return self.type == MESSAGE

    def to_payload(self) -> dict[str, Any]:
        if self.is_message_action:
            # Context menu entries carry no description or options.
            return {"type": self.type, "name": self.name, "dm_permission": False}
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "options": [o.to_payload() for o in self.options],
            "dm_permission": False,
        }


def _name_option(description: str) -> OptionDescriptor:
    return OptionDescriptor(
        name="name",
        description=description,
        min_length=COMMAND_NAME_MIN_LEN,
        max_length=COMMAND_NAME_MAX_LEN,
    )


CANONICAL_COMMAND_SCHEMA: tuple[CommandDescriptor, ...] = (
    CommandDescriptor(
        name="add",
        description="Add a command",
        options=(
            _name_option("Command name"),
            OptionDescriptor(name="response", description="Response text"),
        ),
    ),
    CommandDescriptor(
        name="remove",
        description="Remove a command",
        options=(_name_option("Command name"),),
    ),
    CommandDescriptor(
        name="update",
        description="Update a command",
        options=(
            _name_option("Command name"),
            OptionDescriptor(name="response", description="New response text"),
        ),
    ),
    CommandDescriptor(
        name="list",
        description="Show all commands",
    ),
    CommandDescriptor(
        name="search",
        description="Search commands by name or response",
        options=(OptionDescriptor(name="query", description="Keyword"),),
    ),
    CommandDescriptor(
        name=CAPTURE_CONTEXT_MENU_NAME,
        type=MESSAGE,
    ),
)


def schema_payload(schema: tuple[CommandDescriptor, ...] = CANONICAL_COMMAND_SCHEMA) -> list[dict[str, Any]]:
    return [d.to_payload() for d in schema]


def schema_keys(schema: tuple[CommandDescriptor, ...] = CANONICAL_COMMAND_SCHEMA) -> set[tuple[str, int]]:
    return {(d.name, d.type) for d in schema}


def schema_drift(tree, schema: tuple[CommandDescriptor, ...] = CANONICAL_COMMAND_SCHEMA) -> tuple[set[str], set[str]]:
    """
    Compare the handlers on a discord.py CommandTree with the schema.
    Returns (missing_handlers, unknown_handlers) as names.
    """
    expected = schema_keys(schema)
    present: set[tuple[str, int]] = set()
    for cmd in tree.get_commands():
        cmd_type = getattr(cmd, "type", None)
        type_value = int(getattr(cmd_type, "value", CHAT_INPUT))
        present.add((str(cmd.name), type_value))
    missing = {name for name, _t in expected - present}
    unknown = {name for name, _t in present - expected}
    return (missing, unknown)

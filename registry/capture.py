from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from registry.models import ALREADY_EXISTS
from registry.models import CREATED
from registry.models import FAILED
from registry.models import normalize_command_name
from web.session import open_value
from web.session import seal_value

CAPTURE_TOKEN_PREFIX = "capture:"
SEALED_MARKER = "s:"

# States
IDLE = "idle"
AWAITING_NAME = "awaiting_name"
COMMITTED = "committed"
ABANDONED = "abandoned"

# Outcomes beyond the store's created / already_exists / failed
NO_GUILD = "no_guild"
INVALID_TOKEN = "invalid_token"
INVALID_NAME = "invalid_name"
MESSAGE_NOT_FOUND = "message_not_found"
EMPTY_MESSAGE = "empty_message"

FetchMessage = Callable[[int], Awaitable[Any]]


def issue_capture_token(message_id: int, *, key: bytes | None = None) -> str:
    ref = str(int(message_id))
    if key:
        # The sealed payload carries the prefix too.
        return f"{CAPTURE_TOKEN_PREFIX}{SEALED_MARKER}{seal_value(key, CAPTURE_TOKEN_PREFIX + ref)}"
    return f"{CAPTURE_TOKEN_PREFIX}{ref}"


def resolve_capture_token(token: str | None, *, key: bytes | None = None) -> int | None:
    raw = str(token or "")
    if not raw.startswith(CAPTURE_TOKEN_PREFIX):
        return None
    body = raw[len(CAPTURE_TOKEN_PREFIX):]

    if key:
        # With a key configured, unsealed tokens are forgeries.
        if not body.startswith(SEALED_MARKER):
            return None
        opened = open_value(key, body[len(SEALED_MARKER):]) or ""
        if not opened.startswith(CAPTURE_TOKEN_PREFIX):
            return None
        ref = opened[len(CAPTURE_TOKEN_PREFIX):]
    else:
        if body.startswith(SEALED_MARKER):
            return None
        ref = body

    # ASCII digits only.
    if not ref or not (ref.isascii() and ref.isdigit()):
        return None
    return int(ref)


def synthesize_capture_response(body: str | None, attachment_urls: Iterable[str]) -> str:
    lines: list[str] = []
    if body:
        lines.append(body)
    lines.extend(url for url in attachment_urls if url)
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class CaptureTicket:
    state: str
    token: str | None = None
    message_id: int | None = None
    outcome: str | None = None


@dataclass(frozen=True, slots=True)
class CaptureResult:
    state: str
    outcome: str
    name: str | None = None
    response: str | None = None
    message_id: int | None = None

    @property
    def committed(self) -> bool:
        return self.state == COMMITTED


class CaptureFlow:
    """Two-stage "save this message as a command" flow.

    Stage 1 (:meth:`begin`) turns a message reference into a token; stage 2
    (:meth:`complete`) receives the token back from the submitted form,
    re-fetches the message and commits it. The token is the only state that
    crosses between the two stages.
    """

    def __init__(self, *, registry, token_key: bytes | None = None) -> None:
        self.registry = registry
        self.token_key = token_key or None

    def begin(self, *, guild_id: int | None, message_id: int) -> CaptureTicket:
        if guild_id is None:
            return CaptureTicket(state=ABANDONED, outcome=NO_GUILD)
        token = issue_capture_token(message_id, key=self.token_key)
        return CaptureTicket(state=AWAITING_NAME, token=token, message_id=int(message_id))

    async def complete(
        self,
        *,
        guild_id: int | None,
        token: str,
        name: str,
        fetch_message: FetchMessage,
    ) -> CaptureResult:
        if guild_id is None:
            return CaptureResult(state=ABANDONED, outcome=NO_GUILD)

        message_id = resolve_capture_token(token, key=self.token_key)
        if message_id is None:
            print(f"[Capture] guild={guild_id} rejected token={token[:24]!r}")
            return CaptureResult(state=ABANDONED, outcome=INVALID_TOKEN)

        clean_name = normalize_command_name(name)
        if clean_name is None:
            return CaptureResult(state=ABANDONED, outcome=INVALID_NAME, message_id=message_id)

        try:
            message = await fetch_message(message_id)
        except Exception as exc:
            print(f"[Capture] guild={guild_id} message={message_id} fetch failed: {exc}")
            return CaptureResult(state=ABANDONED, outcome=FAILED, name=clean_name, message_id=message_id)
        if message is None:
            return CaptureResult(state=ABANDONED, outcome=MESSAGE_NOT_FOUND, name=clean_name, message_id=message_id)

        response = synthesize_capture_response(
            getattr(message, "content", None),
            (getattr(a, "url", None) for a in (getattr(message, "attachments", None) or [])),
        )
        if not response:
            return CaptureResult(state=ABANDONED, outcome=EMPTY_MESSAGE, name=clean_name, message_id=message_id)

        outcome = await self.registry.add(int(guild_id), clean_name, response)
        if outcome == CREATED:
            print(f"[Capture] guild={guild_id} message={message_id} saved as {clean_name!r}")
            return CaptureResult(
                state=COMMITTED,
                outcome=CREATED,
                name=clean_name,
                response=response,
                message_id=message_id,
            )
        return CaptureResult(
            state=ABANDONED,
            outcome=outcome if outcome in {ALREADY_EXISTS, FAILED} else FAILED,
            name=clean_name,
            response=response,
            message_id=message_id,
        )

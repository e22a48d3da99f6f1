from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_registry import register as register_registry
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from registry.schema import schema_drift


def wire_bot_runtime(
    bot,
    *,
    registry,
    capture_flow,
    sync_manager,
    reply_messages,
    send_chunked,
    trigger_prefix: str,
    list_chunk_chars: int,
) -> None:
    command_deps = CommandDeps(
        registry=registry,
        capture_flow=capture_flow,
        reply_messages=reply_messages,
        trigger_prefix=trigger_prefix,
        list_chunk_chars=list_chunk_chars,
    )
    command_gates = CommandGates()

    register_registry(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    missing, unknown = schema_drift(bot.tree)
    if missing or unknown:
        print(f"[Sync] WARNING handlers out of step with schema missing={missing} unknown={unknown}")

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            registry=registry,
            send_chunked=send_chunked,
            trigger_prefix=trigger_prefix,
        ),
        boot=RuntimeBootDeps(
            sync_manager=sync_manager,
        ),
    )

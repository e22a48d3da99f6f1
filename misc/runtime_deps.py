from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    registry: Any
    send_chunked: Callable

    # triggers
    trigger_prefix: str


@dataclass(frozen=True)
class RuntimeBootDeps:
    sync_manager: Any

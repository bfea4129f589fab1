"""Structured event emission for gateway components.

Components never log directly; they emit `GatewayEvent`s into whatever sink
the application wires in. The default application sink forwards events to the
standard logging module.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayEvent:
    """A single component event with its severity and context fields."""

    name: str
    level: int = logging.INFO
    fields: Mapping[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    """Receiver for component events."""

    def emit(self, event: GatewayEvent) -> None: ...


class NullEventSink:
    """Sink that discards every event."""

    def emit(self, event: GatewayEvent) -> None:
        return None


class LoggingEventSink:
    """Sink that writes events to a standard library logger."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def emit(self, event: GatewayEvent) -> None:
        context = " ".join(f"{key}={value}" for key, value in event.fields.items())
        self._logger.log(event.level, "%s %s", event.name, context, extra={"event": event.name})

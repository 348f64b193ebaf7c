"""Diagnostics raised while transforming documents.

Macros and transformations never print. They report through a
:class:`DiagnosticEmitter`: ``warning`` for macro failures the engine expected
(missing documents, recursion, rights), ``error`` for unexpected exceptions,
and ``event`` for structured notifications such as a completed inclusion.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)

_EVENT_TEMPLATES: dict[str, tuple[str, dict[str, str]]] = {
    "document_included": (
        "Included {document} ({context} context)",
        {"document": "<unknown>", "context": "current"},
    ),
    "macro_failed": (
        "Macro '{macro}' failed: {reason}",
        {"macro": "<unknown>", "reason": "unknown error"},
    ),
    "macro_limit": (
        "Stopped macro transformation after {limit} executions",
        {"limit": "?"},
    ),
}


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Sink for the diagnostics produced by macros and transformations."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Discard every diagnostic; used by tests and embedded callers."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        del message, exc

    def error(self, message: str, exc: BaseException | None = None) -> None:
        del message, exc

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        del name, payload


class LoggingEmitter:
    """Route diagnostics to a :mod:`logging` logger.

    Known events are logged at ``INFO`` with a readable summary, others at
    ``DEBUG`` with their raw payload. Tracebacks accompany warnings only when
    ``debug_enabled`` is set; errors always carry them.
    """

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self._logger.warning(message, exc_info=exc if self.debug_enabled else None)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self._logger.error(message, exc_info=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        summary = format_event_message(name, payload)
        if summary is None:
            self._logger.debug("diagnostic event %s: %s", name, dict(payload))
        else:
            self._logger.info(summary)


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a one-line summary of a known event, ``None`` otherwise."""
    template = _EVENT_TEMPLATES.get(name)
    if template is None:
        return None
    text, defaults = template
    values = {key: payload.get(key) or default for key, default in defaults.items()}
    return text.format(**values)


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "format_event_message",
]

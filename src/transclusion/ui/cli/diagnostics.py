"""Bridge between engine diagnostics and the Rich console of the CLI."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from transclusion.core.diagnostics import format_event_message

from .state import CLIState, get_cli_state, render_message


class CliEmitter:
    """Print warnings and errors on stderr and record every event.

    Recorded events stay available to commands through
    :meth:`CLIState.consume_events`; known ones are also echoed when the
    command runs verbosely.
    """

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self.state = state or get_cli_state()
        self.debug_enabled = bool(
            self.state.show_tracebacks if debug_enabled is None else debug_enabled
        )

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        render_message("warning", message, exception=exc, state=self.state)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        render_message("error", message, exception=exc, state=self.state)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        record = dict(payload)
        self.state.record_event(name, record)
        summary = format_event_message(name, record)
        if summary is not None:
            render_message("info", summary, state=self.state)


__all__ = ["CliEmitter"]

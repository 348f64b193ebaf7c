"""Typer application wiring for the transclusion CLI."""

from __future__ import annotations

from typing import Annotated

import typer

from .commands import macros, resolve, show, title
from .state import debug_enabled, emit_error, get_cli_state, set_cli_state


app = typer.Typer(
    help="Display wiki documents with their inclusions expanded.",
    context_settings={"help_option_names": ["--help", "-h"]},
    no_args_is_help=True,
)


@app.callback()
def configure(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        ),
    ] = 0,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug/--no-debug",
            help="Show full tracebacks when an unexpected error occurs.",
        ),
    ] = False,
) -> None:
    """Display wiki documents with their inclusions expanded."""
    set_cli_state(ctx=ctx, verbosity=verbose, debug=debug)


app.command()(show)
app.command()(title)
app.command()(resolve)
app.command()(macros)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - last-resort reporting
        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            state.err_console.print(
                Traceback.from_exception(
                    type(exc),
                    exc,
                    exc.__traceback__,
                    show_locals=state.verbosity >= 2,
                )
            )
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]

"""Commands operating on a directory of documents."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from transclusion.api import Engine
from transclusion.core.config import load_config
from transclusion.core.exceptions import TransclusionError

from ..diagnostics import CliEmitter
from ..presenter import present_errors, present_macros, present_tree
from ..state import emit_error, get_cli_state


RootArgument = Annotated[
    Path,
    typer.Argument(
        help="Directory holding one folder per space and one file per page.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]

DocumentArgument = Annotated[
    str,
    typer.Argument(help="Document reference such as 'Page', 'Space.Page' or 'wiki:Space.Page'."),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Configuration file (defaults to transclusion.yml inside ROOT when present).",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]

UserOption = Annotated[
    str | None,
    typer.Option("--user", "-u", help="User the document is displayed for."),
]


def _engine(root: Path, config: Path | None) -> Engine:
    state = get_cli_state()
    try:
        settings = load_config(config) if config is not None else None
        return Engine.from_directory(root, settings, emitter=CliEmitter(state))
    except TransclusionError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


def show(
    root: RootArgument,
    document: DocumentArgument,
    user: UserOption = None,
    tree: Annotated[
        bool,
        typer.Option("--tree", help="Print the executed syntax tree instead of plain text."),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Display a document with its inclusions expanded."""
    state = get_cli_state()
    engine = _engine(root, config)
    try:
        with engine.as_user(user):
            if tree:
                xdom = engine.display(document)
                present_tree(state, xdom)
                present_errors(state, xdom)
            else:
                typer.echo(engine.content(document))
    except TransclusionError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


def title(
    root: RootArgument,
    document: DocumentArgument,
    user: UserOption = None,
    config: ConfigOption = None,
) -> None:
    """Print the title of a document."""
    engine = _engine(root, config)
    try:
        with engine.as_user(user):
            typer.echo(engine.title(document))
    except TransclusionError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


def resolve(
    root: RootArgument,
    reference: Annotated[str, typer.Argument(help="Reference to resolve.")],
    config: ConfigOption = None,
) -> None:
    """Print the canonical form of a document reference."""
    engine = _engine(root, config)
    resolved = engine.reference(reference)
    typer.echo(str(resolved))
    if not engine.store.exists(resolved):
        state = get_cli_state()
        if state.verbosity >= 1:
            state.err_console.print(f"[yellow]{resolved} does not exist[/yellow]")


def macros(
    root: RootArgument,
    config: ConfigOption = None,
) -> None:
    """List the macros available to documents."""
    engine = _engine(root, config)
    present_macros(get_cli_state(), engine.macros.describe())


__all__ = ["macros", "resolve", "show", "title"]

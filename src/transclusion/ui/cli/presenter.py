"""Rich presenters for CLI output."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from rich import box
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from transclusion.core.blocks import Block, Error, MacroMarker, MetaData

from .state import CLIState


_NODE_STYLES: dict[type[Block], str] = {
    MacroMarker: "bold cyan",
    MetaData: "magenta",
    Error: "bold red",
}


def _build_table(*, title: str | None, columns: Sequence[str]) -> Table:
    """Create a Rich table with the house style."""
    table = Table(title=title or None, box=box.SQUARE, show_edge=True, header_style="bold cyan")
    for column in columns:
        table.add_column(column)
    return table


def _label(block: Block) -> Text:
    style = next(
        (value for kind, value in _NODE_STYLES.items() if isinstance(block, kind)),
        None,
    )
    return Text(block.describe(), style=style or "")


def build_tree(block: Block, tree: Tree | None = None) -> Tree:
    """Return a Rich tree mirroring the syntax tree below ``block``."""
    node = tree.add(_label(block)) if tree is not None else Tree(_label(block))
    for child in block.children:
        build_tree(child, node)
    return node


def present_tree(state: CLIState, block: Block) -> None:
    """Print the syntax tree of a displayed document."""
    state.console.print(build_tree(block))


def present_errors(state: CLIState, block: Block) -> int:
    """Print the error nodes found in ``block`` and return how many there were."""
    errors = block.find_all(Error)
    if not errors:
        return 0
    table = _build_table(title="Macro errors", columns=("Message", "Details"))
    for error in errors:
        details = error.description.splitlines()[1:]
        table.add_row(Text(error.message, style="red"), "\n".join(details))
    state.err_console.print(table)
    return len(errors)


def present_macros(state: CLIState, macros: Sequence[Mapping[str, Any]]) -> None:
    """Print the registered macros in execution order."""
    table = _build_table(
        title="Macros",
        columns=("Id", "Priority", "Inline", "Parameters", "Description"),
    )
    for macro in macros:
        table.add_row(
            Text(str(macro["id"]), style="bold"),
            str(macro["priority"]),
            "yes" if macro["inline"] else "no",
            ", ".join(macro["parameters"]),
            str(macro["description"]),
        )
    state.console.print(table)


__all__ = ["build_tree", "present_errors", "present_macros", "present_tree"]

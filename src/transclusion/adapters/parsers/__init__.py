"""Markup parsers keyed by syntax identifier."""

from __future__ import annotations

from collections.abc import Iterable

from transclusion.core.syntax import Syntax

from .base import Parser
from .markdown import MarkdownParser
from .plain import PlainTextParser
from .wiki import WikiParser


class ParserRegistry:
    """Lookup table from syntax identifiers to parsers."""

    def __init__(self, parsers: Iterable[Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for parser in parsers if parsers is not None else default_parsers():
            self.register(parser)

    def register(self, parser: Parser) -> None:
        """Register ``parser`` for the syntax it declares."""
        self._parsers[parser.syntax.id] = parser

    def get(self, syntax: Syntax | str) -> Parser | None:
        """Return the parser registered for ``syntax``."""
        return self._parsers.get(Syntax.parse(syntax).id)

    def syntaxes(self) -> list[str]:
        """Return the registered syntax identifiers."""
        return sorted(self._parsers)


def default_parsers() -> list[Parser]:
    """Return fresh instances of the bundled parsers."""
    return [WikiParser(), MarkdownParser(), PlainTextParser()]


__all__ = [
    "MarkdownParser",
    "Parser",
    "ParserRegistry",
    "PlainTextParser",
    "WikiParser",
    "default_parsers",
]

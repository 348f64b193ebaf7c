"""Markup syntax identifiers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Syntax:
    """Markup syntax identified by a type and a version (``xwiki/2.1``)."""

    type: str
    version: str

    @property
    def id(self) -> str:
        """Return the ``type/version`` identifier."""
        return f"{self.type}/{self.version}"

    @classmethod
    def parse(cls, value: str | Syntax) -> Syntax:
        """Build a syntax from its ``type/version`` identifier."""
        if isinstance(value, Syntax):
            return value
        candidate = str(value or "").strip().lower()
        kind, separator, version = candidate.partition("/")
        if not kind or not separator or not version:
            msg = f"Invalid syntax identifier '{value}', expected 'type/version'."
            raise ValueError(msg)
        return cls(kind, version)

    def __str__(self) -> str:
        return self.id


XWIKI_2_1 = Syntax("xwiki", "2.1")
MARKDOWN_1_2 = Syntax("markdown", "1.2")
PLAIN_1_0 = Syntax("plain", "1.0")

DEFAULT_SYNTAX = XWIKI_2_1


__all__ = ["DEFAULT_SYNTAX", "MARKDOWN_1_2", "PLAIN_1_0", "XWIKI_2_1", "Syntax"]

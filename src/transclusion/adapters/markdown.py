"""Python-Markdown conversion and YAML front matter shared by documents.

Documents of every syntax may start with a YAML block delimited by ``---``
lines. The filesystem store reads the ``title``, ``syntax`` and ``viewers``
entries from it; Markdown documents additionally keep it on the root of their
tree.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import re
from threading import Lock
from typing import Any

import markdown
import yaml


__all__ = [
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "FrontMatterError",
    "MarkdownConversionError",
    "MarkdownDocument",
    "render_markdown",
    "split_front_matter",
]


DEFAULT_MARKDOWN_EXTENSIONS = ("attr_list", "sane_lists", "tables")

_FRONT_MATTER = re.compile(
    r"\A(?:\ufeff)?---[ \t]*\n(?P<yaml>(?:.*?\n)?)(?:---|\.\.\.)[ \t]*(?:\n|\Z)",
    re.DOTALL,
)


class MarkdownConversionError(Exception):
    """Raised when Python-Markdown rejects a document or an extension."""


class FrontMatterError(ValueError):
    """Raised in strict mode when a front matter block is not a YAML mapping."""


@dataclass(slots=True)
class MarkdownDocument:
    """HTML produced from a Markdown document, with its front matter."""

    html: str
    front_matter: dict[str, Any] = field(default_factory=dict)


def split_front_matter(source: str, *, strict: bool = False) -> tuple[dict[str, Any], str]:
    """Return the YAML front matter of ``source`` and the remaining body.

    Sources without a well-formed mapping block are returned untouched, unless
    ``strict`` is set: a delimited block that is not a YAML mapping then
    raises :class:`FrontMatterError`.
    """
    match = _FRONT_MATTER.match(source)
    if match is None:
        return {}, source
    try:
        metadata = yaml.safe_load(match.group("yaml")) or {}
    except yaml.YAMLError as exc:
        if strict:
            raise FrontMatterError(f"Invalid YAML front matter: {exc}") from exc
        return {}, source
    if not isinstance(metadata, dict):
        if strict:
            raise FrontMatterError(
                f"Front matter must be a mapping, got {type(metadata).__name__}"
            )
        return {}, source
    return metadata, source[match.end() :]


class _Converter:
    """A ``markdown.Markdown`` instance shared between threads."""

    def __init__(self, extensions: tuple[str, ...]) -> None:
        try:
            self.processor = markdown.Markdown(extensions=list(extensions))
        except Exception as exc:
            raise MarkdownConversionError(
                f"Unable to load Markdown extensions {', '.join(extensions)}: {exc}"
            ) from exc
        self.lock = Lock()

    def convert(self, text: str) -> str:
        with self.lock:
            self.processor.reset()
            return self.processor.convert(text)


_CONVERTERS: dict[tuple[str, ...], _Converter] = {}
_CONVERTERS_LOCK = Lock()


def _converter(extensions: tuple[str, ...]) -> _Converter:
    with _CONVERTERS_LOCK:
        converter = _CONVERTERS.get(extensions)
        if converter is None:
            converter = _CONVERTERS[extensions] = _Converter(extensions)
        return converter


def render_markdown(
    source: str,
    extensions: Sequence[str] | None = None,
) -> MarkdownDocument:
    """Convert ``source`` to HTML, stripping and returning its front matter."""
    front_matter, body = split_front_matter(source)
    converter = _converter(tuple(extensions or DEFAULT_MARKDOWN_EXTENSIONS))
    try:
        html = converter.convert(body)
    except Exception as exc:  # pragma: no cover - library-controlled
        raise MarkdownConversionError(f"Failed to convert Markdown source: {exc}") from exc
    return MarkdownDocument(html=html, front_matter=front_matter)

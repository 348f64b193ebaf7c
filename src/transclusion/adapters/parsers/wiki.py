"""Parser for the wiki markup syntax (``xwiki/2.1``).

Supported constructs:

* headings ``= Title =`` down to ``====== Title ======``,
* paragraphs separated by blank lines, single line breaks kept as
  :class:`~transclusion.core.blocks.NewLine`,
* ``**bold**`` and ``//italic//`` formatting,
* links ``[[label>>Space.Page]]`` / ``[[Space.Page]]`` and images
  ``[[image:photo.png]]``,
* macros ``{{id a="b"/}}`` and ``{{id a="b"}}content{{/id}}``. A macro alone on
  its lines becomes a block macro, any other macro is inline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import ClassVar

from transclusion.core.blocks import (
    XDOM,
    Block,
    Format,
    Heading,
    Image,
    Link,
    MacroBlock,
    NewLine,
    Paragraph,
)
from transclusion.core.syntax import XWIKI_2_1, Syntax

from .base import merge_words, strip_spaces, text_blocks
from .macros import MacroCall, is_standalone, iter_macro_calls


_HEADING = re.compile(r"^\s*(?P<marks>={1,6})(?!=)\s*(?P<title>.+?)\s*=*\s*$")
_INLINE = re.compile(
    r"\*\*(?P<bold>.+?)\*\*"
    r"|(?<!:)//(?P<italic>.+?)(?<!:)//"
    r"|\[\[image:(?P<image>[^\]]+?)\]\]"
    r"|\[\[(?:(?P<label>[^\]]*?)>>)?(?P<reference>[^\]]+?)\]\]"
)


def parse_inline(text: str) -> list[Block]:
    """Parse a run of inline wiki markup."""
    blocks: list[Block] = []
    position = 0
    for match in _INLINE.finditer(text):
        blocks.extend(text_blocks(text[position : match.start()]))
        if match.group("bold") is not None:
            blocks.append(Format(Format.BOLD, parse_inline(match.group("bold"))))
        elif match.group("italic") is not None:
            blocks.append(Format(Format.ITALIC, parse_inline(match.group("italic"))))
        elif match.group("image") is not None:
            blocks.append(Image(match.group("image").strip()))
        else:
            reference = match.group("reference").strip()
            label = match.group("label")
            blocks.append(
                Link(
                    reference,
                    parse_inline(label) if label else (),
                    freestanding=label is None,
                )
            )
        position = match.end()
    blocks.extend(text_blocks(text[position:]))
    return merge_words(blocks)


@dataclass(slots=True)
class _State:
    blocks: list[Block] = field(default_factory=list)
    inlines: list[Block] = field(default_factory=list)
    pending_break: bool = False
    at_line_start: bool = True

    def flush(self) -> None:
        content = strip_spaces(merge_words(self.inlines))
        if content:
            self.blocks.append(Paragraph(content))
        self.inlines = []
        self.pending_break = False


class WikiParser:
    """Parse wiki markup into a syntax tree."""

    syntax: ClassVar[Syntax] = XWIKI_2_1

    def parse(self, content: str) -> XDOM:
        """Return the tree for ``content``."""
        text = content.replace("\r\n", "\n").replace("\r", "\n")
        state = _State()
        position = 0
        for call in iter_macro_calls(text):
            self._consume_text(text[position : call.start], state)
            self._consume_macro(call, is_standalone(text, call), state)
            position = call.end
        self._consume_text(text[position:], state)
        state.flush()
        return XDOM(state.blocks)

    def _consume_macro(self, call: MacroCall, standalone: bool, state: _State) -> None:
        if standalone:
            state.flush()
            state.blocks.append(MacroBlock(call.id, call.parameters, call.content, inline=False))
            state.at_line_start = True
            return
        self._open_line(state)
        state.inlines.append(MacroBlock(call.id, call.parameters, call.content, inline=True))
        state.at_line_start = False

    def _consume_text(self, text: str, state: _State) -> None:
        for index, line in enumerate(text.split("\n")):
            if index > 0:
                if state.inlines:
                    state.pending_break = True
                state.at_line_start = True
                if not line.strip():
                    state.flush()
                    continue
            if not line.strip():
                if line:
                    state.inlines.extend(text_blocks(line) if state.inlines else ())
                continue
            heading = _HEADING.match(line) if state.at_line_start else None
            if heading is not None:
                state.flush()
                level = len(heading.group("marks"))
                state.blocks.append(Heading(level, parse_inline(heading.group("title"))))
                state.at_line_start = True
                continue
            self._open_line(state)
            state.inlines.extend(parse_inline(line))
            state.at_line_start = False

    def _open_line(self, state: _State) -> None:
        if state.pending_break and state.inlines:
            state.inlines.append(NewLine())
        state.pending_break = False


__all__ = ["WikiParser", "parse_inline"]

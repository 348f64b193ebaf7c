"""Parser for Markdown content (``markdown/1.2``).

Markdown is rendered with Python-Markdown and the resulting HTML is walked with
BeautifulSoup to build the syntax tree. Macro calls use the same ``{{…}}``
syntax as wiki markup; they are swapped for placeholder elements before the
Markdown pass so that Markdown never rewrites their parameters or content.
"""

from __future__ import annotations

from typing import ClassVar

from bs4 import BeautifulSoup, NavigableString, Tag

from transclusion.adapters.markdown import render_markdown
from transclusion.core.blocks import (
    XDOM,
    Block,
    Format,
    Group,
    Heading,
    Image,
    Link,
    MacroBlock,
    NewLine,
    Paragraph,
)
from transclusion.core.syntax import MARKDOWN_1_2, Syntax

from .base import merge_words, strip_spaces, text_blocks
from .macros import MacroCall, is_standalone, iter_macro_calls


MACRO_ATTRIBUTE = "data-transclusion-macro"

_HEADINGS = {f"h{level}": level for level in range(1, 7)}
_FORMATS = {
    "strong": Format.BOLD,
    "b": Format.BOLD,
    "em": Format.ITALIC,
    "i": Format.ITALIC,
    "code": Format.MONOSPACE,
}


class MarkdownParser:
    """Parse Markdown into a syntax tree."""

    syntax: ClassVar[Syntax] = MARKDOWN_1_2

    def parse(self, content: str) -> XDOM:
        """Return the tree for ``content``."""
        text = content.replace("\r\n", "\n").replace("\r", "\n")
        source, calls = self._protect_macros(text)
        document = render_markdown(source)
        soup = BeautifulSoup(document.html, "html.parser")
        blocks = self._convert_children(soup, calls, block_level=True)
        metadata = {"front_matter": document.front_matter} if document.front_matter else None
        return XDOM(blocks, metadata)

    # ---------------------------------------------------------------- macros

    def _protect_macros(self, text: str) -> tuple[str, list[tuple[MacroCall, bool]]]:
        parts: list[str] = []
        calls: list[tuple[MacroCall, bool]] = []
        position = 0
        for call in iter_macro_calls(text):
            standalone = is_standalone(text, call)
            parts.append(text[position : call.start])
            index = len(calls)
            if standalone:
                parts.append(f'\n\n<div {MACRO_ATTRIBUTE}="{index}"></div>\n\n')
            else:
                parts.append(f'<span {MACRO_ATTRIBUTE}="{index}"></span>')
            calls.append((call, standalone))
            position = call.end
        parts.append(text[position:])
        return "".join(parts), calls

    def _macro_from(self, node: Tag, calls: list[tuple[MacroCall, bool]]) -> MacroBlock | None:
        raw = node.get(MACRO_ATTRIBUTE)
        if raw is None:
            return None
        try:
            call, standalone = calls[int(str(raw))]
        except (ValueError, IndexError):
            return None
        return MacroBlock(call.id, call.parameters, call.content, inline=not standalone)

    # ------------------------------------------------------------ conversion

    def _convert_children(
        self, node: Tag, calls: list[tuple[MacroCall, bool]], *, block_level: bool
    ) -> list[Block]:
        blocks: list[Block] = []
        for child in node.children:
            if isinstance(child, NavigableString):
                if block_level and not child.strip():
                    continue
                blocks.extend(text_blocks(str(child).replace("\n", " ")))
            elif isinstance(child, Tag):
                blocks.extend(self._convert_tag(child, calls))
        blocks = merge_words(blocks)
        return strip_spaces(blocks) if block_level else blocks

    def _convert_tag(self, node: Tag, calls: list[tuple[MacroCall, bool]]) -> list[Block]:
        macro = self._macro_from(node, calls)
        if macro is not None:
            return [macro]

        name = node.name
        if name in _HEADINGS:
            children = self._convert_children(node, calls, block_level=False)
            return [Heading(_HEADINGS[name], strip_spaces(children), id=node.get("id"))]
        if name == "p":
            children = strip_spaces(self._convert_children(node, calls, block_level=False))
            if len(children) == 1 and isinstance(children[0], MacroBlock):
                children[0].inline = False
                return children
            return [Paragraph(children)] if children else []
        if name in _FORMATS:
            return [Format(_FORMATS[name], self._convert_children(node, calls, block_level=False))]
        if name == "a":
            label = self._convert_children(node, calls, block_level=False)
            return [Link(str(node.get("href", "")), label)]
        if name == "img":
            return [Image(str(node.get("src", "")), alt=str(node.get("alt", "")))]
        if name == "br":
            return [NewLine()]
        if name == "hr":
            return [Group(parameters={"tag": "hr"})]
        return [
            Group(
                self._convert_children(node, calls, block_level=True),
                parameters={"tag": name},
            )
        ]


__all__ = ["MACRO_ATTRIBUTE", "MarkdownParser"]

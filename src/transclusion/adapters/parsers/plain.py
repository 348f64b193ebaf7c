"""Parser for plain text (``plain/1.0``)."""

from __future__ import annotations

import re
from typing import ClassVar

from transclusion.core.blocks import XDOM, Block, Paragraph
from transclusion.core.syntax import PLAIN_1_0, Syntax

from .base import strip_spaces, text_blocks


_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n+")


class PlainTextParser:
    """Split text into paragraphs; no markup and no macros are recognised."""

    syntax: ClassVar[Syntax] = PLAIN_1_0

    def parse(self, content: str) -> XDOM:
        """Return the tree for ``content``."""
        text = content.replace("\r\n", "\n").replace("\r", "\n")
        blocks: list[Block] = []
        for chunk in _PARAGRAPH_BREAK.split(text):
            words = strip_spaces(text_blocks(chunk))
            if words:
                blocks.append(Paragraph(words))
        return XDOM(blocks)


__all__ = ["PlainTextParser"]

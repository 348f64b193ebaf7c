"""Parser contract and shared inline helpers."""

from __future__ import annotations

from collections.abc import Iterable
import re
from typing import ClassVar, Protocol, runtime_checkable

from transclusion.core.blocks import XDOM, Block, NewLine, Space, Word
from transclusion.core.syntax import Syntax


_TOKEN = re.compile(r"(?P<space>[ \t]+)|(?P<newline>\n)|(?P<word>[^\s]+)")


@runtime_checkable
class Parser(Protocol):
    """Turn markup into a syntax tree."""

    syntax: ClassVar[Syntax]

    def parse(self, content: str) -> XDOM: ...


def text_blocks(text: str) -> list[Block]:
    """Split raw text into word, space and line-break nodes."""
    blocks: list[Block] = []
    for match in _TOKEN.finditer(text):
        if match.group("space"):
            blocks.append(Space())
        elif match.group("newline"):
            blocks.append(NewLine())
        else:
            blocks.append(Word(match.group("word")))
    return blocks


def merge_words(blocks: Iterable[Block]) -> list[Block]:
    """Join adjacent words and collapse repeated spaces."""
    merged: list[Block] = []
    for block in blocks:
        previous = merged[-1] if merged else None
        if type(block) is Word and type(previous) is Word:
            previous.text += block.text
            continue
        if type(block) is Space and type(previous) is Space:
            continue
        merged.append(block)
    return merged


def strip_spaces(blocks: list[Block]) -> list[Block]:
    """Drop leading and trailing whitespace nodes."""
    start = 0
    end = len(blocks)
    while start < end and isinstance(blocks[start], (Space, NewLine)):
        start += 1
    while end > start and isinstance(blocks[end - 1], (Space, NewLine)):
        end -= 1
    return blocks[start:end]


__all__ = ["Parser", "merge_words", "strip_spaces", "text_blocks"]

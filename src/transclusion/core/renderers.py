"""Plain text rendering of syntax trees."""

from __future__ import annotations

from collections.abc import Iterable

from .blocks import XDOM, AbstractMacroBlock, Block, Error, Heading, Paragraph


class PlainTextRenderer:
    """Render a tree as plain text, one paragraph per block separated by blank lines."""

    def render(self, block: Block) -> str:
        chunks = [chunk for chunk in self._blocks(block) if chunk]
        return "\n\n".join(chunks)

    def _is_block(self, node: Block) -> bool:
        if isinstance(node, (XDOM, Paragraph, Heading)):
            return True
        if isinstance(node, (AbstractMacroBlock, Error)):
            return not node.inline
        return any(self._is_block(child) for child in node.children)

    def _blocks(self, block: Block) -> list[str]:
        if isinstance(block, (Paragraph, Heading)):
            return [self._inline(block.children)]
        if isinstance(block, Error):
            return [block.message]

        chunks: list[str] = []
        run: list[Block] = []
        for child in block.children:
            if self._is_block(child):
                chunks.append(self._inline(run))
                run = []
                chunks.extend(self._blocks(child))
            else:
                run.append(child)
        chunks.append(self._inline(run))
        return chunks

    def _inline(self, nodes: Iterable[Block]) -> str:
        return "".join(node.text_content() for node in nodes).strip()


__all__ = ["PlainTextRenderer"]

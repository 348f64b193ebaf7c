"""Parse macro content and optionally run the macro transformation over it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .blocks import Block, MetaData, Paragraph
from .exceptions import ContentParseError
from .transformation import MacroTransformation, TransformationContext


if TYPE_CHECKING:  # pragma: no cover - typing only
    from transclusion.adapters.parsers import ParserRegistry

    from .references import DocumentReference


logger = logging.getLogger(__name__)


class MacroContentParser:
    """Turn markup owned by a macro into nodes ready to be spliced in a tree."""

    def __init__(self, parsers: ParserRegistry, transformation: MacroTransformation) -> None:
        self.parsers = parsers
        self.transformation = transformation

    def parse(
        self,
        content: str,
        context: TransformationContext,
        transform: bool,
        restricted: bool = False,
        *,
        source: str | None = None,
        reference: DocumentReference | None = None,
    ) -> list[Block]:
        """Parse ``content`` in the syntax of ``context``.

        The temporary root produced by the parser points upward to the macro
        being executed so that nested macros can walk past it into the
        enclosing tree. When ``transform`` is set the macros found in the
        content are executed before returning, under the identity of
        ``context``. ``source`` is recorded on the temporary root so relative
        references inside the content resolve against it.
        """
        parser = self.parsers.get(context.syntax)
        if parser is None:
            raise ContentParseError(reference, f"no parser available for syntax [{context.syntax}]")

        try:
            xdom = parser.parse(content)
        except Exception as exc:
            raise ContentParseError(reference, str(exc)) from exc

        if source:
            xdom.metadata[MetaData.SOURCE] = source
        xdom.attach_to(context.current_macro_block)
        try:
            if transform:
                transformation_context = context.clone()
                transformation_context.xdom = xdom
                transformation_context.current_macro_block = None
                transformation_context.inline = False
                transformation_context.restricted = restricted
                logger.debug("Transforming content of %s as %s", reference, context.id)
                self.transformation.transform(xdom, transformation_context)
            blocks = list(xdom.children)
            xdom.set_children(())
        finally:
            xdom.attach_to(None)

        if context.inline:
            blocks = _unwrap_paragraph(blocks)
        return blocks


def _unwrap_paragraph(blocks: list[Block]) -> list[Block]:
    if len(blocks) == 1 and isinstance(blocks[0], Paragraph):
        paragraph = blocks[0]
        children = list(paragraph.children)
        paragraph.set_children(())
        return children
    return blocks


__all__ = ["MacroContentParser"]

"""Scanner for the ``{{macro param="value"}}content{{/macro}}`` call syntax."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
import re


_MACRO_ID = re.compile(r"[A-Za-z][\w.-]*")
_PARAMETER = re.compile(
    r"""\s*(?P<name>[A-Za-z_][\w.-]*)\s*=\s*
        (?:"(?P<double>(?:[^"\\]|\\.)*)"
          |'(?P<single>(?:[^'\\]|\\.)*)'
          |(?P<bare>[^\s"']+))""",
    re.VERBOSE | re.DOTALL,
)
_UNESCAPE = re.compile(r"\\(.)", re.DOTALL)


@dataclass(slots=True)
class MacroCall:
    """Macro call found in markup."""

    id: str
    parameters: dict[str, str] = field(default_factory=dict)
    content: str | None = None
    start: int = 0
    end: int = 0


def parse_parameters(source: str) -> dict[str, str]:
    """Parse ``name="value"`` pairs; unparseable trailing text is ignored."""
    parameters: dict[str, str] = {}
    position = 0
    while position < len(source):
        match = _PARAMETER.match(source, position)
        if match is None:
            break
        raw = match.group("double")
        if raw is None:
            raw = match.group("single")
        if raw is None:
            value = match.group("bare")
        else:
            value = _UNESCAPE.sub(r"\1", raw)
        parameters[match.group("name")] = value
        position = match.end()
    return parameters


def _scan_opening(text: str, start: int) -> tuple[str, str, bool, int] | None:
    """Read an opening tag at ``start``; return id, raw parameters, closed flag, end."""
    if not text.startswith("{{", start):
        return None
    match = _MACRO_ID.match(text, start + 2)
    if match is None:
        return None
    macro_id = match.group(0)
    position = match.end()
    quote: str | None = None
    escaped = False
    while position < len(text):
        character = text[position]
        if escaped:
            escaped = False
        elif character == "\\":
            escaped = True
        elif quote is not None:
            if character == quote:
                quote = None
        elif character in {'"', "'"}:
            quote = character
        elif text.startswith("/}}", position):
            return macro_id, text[match.end() : position], True, position + 3
        elif text.startswith("}}", position):
            return macro_id, text[match.end() : position], False, position + 2
        position += 1
    return None


def _find_closing(text: str, macro_id: str, start: int) -> tuple[int, int] | None:
    """Return the span of the closing tag matching an opening tag ending at ``start``."""
    tag = re.compile(r"\{\{(/?)" + re.escape(macro_id) + r"(?=[\s/}])")
    depth = 1
    position = start
    while True:
        match = tag.search(text, position)
        if match is None:
            return None
        if match.group(1):
            end = text.find("}}", match.end())
            if end == -1:
                return None
            depth -= 1
            if depth == 0:
                return match.start(), end + 2
            position = end + 2
            continue
        opening = _scan_opening(text, match.start())
        if opening is None:
            position = match.end()
            continue
        if not opening[2]:
            depth += 1
        position = opening[3]


def iter_macro_calls(text: str) -> Iterator[MacroCall]:
    """Yield top-level macro calls in order of appearance.

    An opening tag without a matching closing tag is a call without content.
    """
    position = 0
    while True:
        start = text.find("{{", position)
        if start == -1:
            return
        opening = _scan_opening(text, start)
        if opening is None:
            position = start + 2
            continue
        macro_id, raw_parameters, closed, end = opening
        content: str | None = None
        if not closed:
            closing = _find_closing(text, macro_id, end)
            if closing is not None:
                content = text[end : closing[0]]
                end = closing[1]
        yield MacroCall(
            id=macro_id,
            parameters=parse_parameters(raw_parameters),
            content=content,
            start=start,
            end=end,
        )
        position = end


def is_standalone(text: str, call: MacroCall) -> bool:
    """Return whether ``call`` sits alone on its lines."""
    line_start = text.rfind("\n", 0, call.start) + 1
    line_end = text.find("\n", call.end)
    if line_end == -1:
        line_end = len(text)
    return not text[line_start : call.start].strip() and not text[call.end : line_end].strip()


__all__ = ["MacroCall", "is_standalone", "iter_macro_calls", "parse_parameters"]

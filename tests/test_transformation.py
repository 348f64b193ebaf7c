from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from transclusion.adapters.parsers import ParserRegistry
from transclusion.core.blocks import XDOM, Block, Error, MacroBlock, MacroMarker, Paragraph, Word
from transclusion.core.config import EngineConfig
from transclusion.core.execution import Execution
from transclusion.core.parser import MacroContentParser
from transclusion.core.transformation import MacroTransformation, TransformationContext
from transclusion.macros import Macro, MacroParameters, MacroRegistry, SetMacro


class RecordingEmitter:
    def __init__(self) -> None:
        self.debug_enabled = False
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))


class EchoParameters(MacroParameters):
    text: str = ""


class EchoMacro(Macro[EchoParameters]):
    id = "echo"
    supports_inline_mode = True
    parameters_model = EchoParameters

    def __init__(self, calls: list[str]) -> None:
        self.calls = calls

    def execute(
        self, parameters: EchoParameters, content: str | None, context: TransformationContext
    ) -> list[Block]:
        self.calls.append(f"{self.id}:{parameters.text}")
        return [Word(parameters.text or (content or ""))]


class UrgentMacro(EchoMacro):
    id = "urgent"
    priority = 500


class BlockOnlyMacro(EchoMacro):
    id = "block"
    supports_inline_mode = False


class ExplodingMacro(EchoMacro):
    id = "explode"

    def execute(
        self, parameters: EchoParameters, content: str | None, context: TransformationContext
    ) -> list[Block]:
        raise ValueError("kaboom")


class LoopMacro(EchoMacro):
    id = "loop"

    def execute(
        self, parameters: EchoParameters, content: str | None, context: TransformationContext
    ) -> list[Block]:
        self.calls.append("loop")
        return [MacroBlock("loop")]


class SpyMacro(EchoMacro):
    id = "spy"

    def __init__(self, calls: list[str], seen: list[TransformationContext]) -> None:
        super().__init__(calls)
        self.seen = seen
        self.roots: list[Block] = []

    def execute(
        self, parameters: EchoParameters, content: str | None, context: TransformationContext
    ) -> list[Block]:
        self.seen.append(context)
        if context.current_macro_block is not None:
            self.roots.append(context.current_macro_block.root)
        return []


def _transform(
    xdom: XDOM,
    *macros: Macro,
    restricted: bool = False,
    **settings: Any,
) -> RecordingEmitter:
    registry = MacroRegistry()
    for macro in macros:
        registry.register(macro)
    emitter = RecordingEmitter()
    transformation = MacroTransformation(
        registry, config=EngineConfig(**settings), emitter=emitter
    )
    transformation.transform(
        xdom, TransformationContext(id="test", xdom=xdom, restricted=restricted)
    )
    return emitter


def test_macros_are_replaced_by_markers() -> None:
    calls: list[str] = []
    xdom = XDOM([MacroBlock("echo", {"text": "hi"})])

    _transform(xdom, EchoMacro(calls))

    [marker] = xdom.children
    assert isinstance(marker, MacroMarker)
    assert marker.parameters == {"text": "hi"}
    assert marker.text_content() == "hi"
    assert xdom.find_all(MacroBlock) == []


def test_higher_priority_runs_first_then_document_order() -> None:
    calls: list[str] = []
    xdom = XDOM(
        [
            MacroBlock("echo", {"text": "1"}),
            MacroBlock("urgent", {"text": "2"}),
            MacroBlock("echo", {"text": "3"}),
            MacroBlock("urgent", {"text": "4"}),
        ]
    )

    _transform(xdom, EchoMacro(calls), UrgentMacro(calls))

    assert calls == ["urgent:2", "urgent:4", "echo:1", "echo:3"]


def test_macro_identifiers_ignore_case() -> None:
    calls: list[str] = []
    xdom = XDOM([MacroBlock("ECHO", {"TEXT": "loud"})])

    _transform(xdom, EchoMacro(calls))

    assert calls == ["echo:loud"]


def test_unknown_macro_becomes_error() -> None:
    xdom = XDOM([MacroBlock("nope")])

    emitter = _transform(xdom)

    [error] = xdom.find_all(Error)
    assert error.message == "Unknown macro: nope"
    assert isinstance(error.parent, MacroMarker)
    assert emitter.events == [("macro_failed", {"macro": "nope", "reason": "Unknown macro: nope"})]
    assert emitter.warnings


def test_block_only_macro_used_inline_fails() -> None:
    xdom = XDOM([Paragraph([MacroBlock("block", inline=True)])])

    _transform(xdom, BlockOnlyMacro([]))

    [error] = xdom.find_all(Error)
    assert "cannot be used inline" in error.message
    assert error.inline is True


def test_invalid_parameters_become_error() -> None:
    xdom = XDOM([MacroBlock("echo", {"colour": "red"})])

    _transform(xdom, EchoMacro([]))

    [error] = xdom.find_all(Error)
    assert error.message.startswith("Invalid parameters for the [echo] macro")


def test_unexpected_failure_is_reported_as_error() -> None:
    xdom = XDOM([MacroBlock("explode"), MacroBlock("echo", {"text": "after"})])

    emitter = _transform(xdom, ExplodingMacro([]), EchoMacro([]))

    [error] = xdom.find_all(Error)
    assert error.message == "kaboom"
    assert emitter.errors == ["Failed to execute the [explode] macro: kaboom"]
    assert xdom.text_content() == "kaboomafter"


def test_restricted_mode_refuses_unsafe_macros() -> None:
    xdom = XDOM([MacroBlock("set", {"name": "x", "value": "1"})])

    _transform(xdom, SetMacro(Execution()), restricted=True)

    [error] = xdom.find_all(Error)
    assert "restricted mode" in error.message


def test_execution_limit_stops_the_pass() -> None:
    calls: list[str] = []
    xdom = XDOM([MacroBlock("loop")])

    emitter = _transform(xdom, LoopMacro(calls), max_macro_executions=3)

    assert calls == ["loop", "loop", "loop"]
    assert len(xdom.find_all(MacroBlock)) == 1
    assert emitter.events == [("macro_limit", {"limit": 3, "pending": 1})]


def test_macro_context_points_at_the_running_block() -> None:
    seen: list[TransformationContext] = []
    xdom = XDOM([Paragraph([MacroBlock("spy", inline=True)])])
    block = xdom.find_all(MacroBlock)[0]

    _transform(xdom, SpyMacro([], seen))

    [context] = seen
    assert context.current_macro_block is block
    assert context.xdom is xdom
    assert context.inline is True
    assert context.id == "test"


# ----------------------------------------------------------- content parser


def _content_parser(*macros: Macro) -> MacroContentParser:
    registry = MacroRegistry()
    for macro in macros:
        registry.register(macro)
    transformation = MacroTransformation(registry, emitter=RecordingEmitter())
    return MacroContentParser(ParserRegistry(), transformation)


def test_content_parser_transforms_when_asked() -> None:
    parser = _content_parser(EchoMacro([]))
    context = TransformationContext(id="host")

    pending = parser.parse('{{echo text="a"/}}', context, False)
    executed = parser.parse('{{echo text="a"/}}', context, True)

    assert isinstance(pending[0], MacroBlock)
    assert isinstance(executed[0], MacroMarker)
    assert all(block.parent is None for block in pending + executed)


def test_content_parser_unwraps_single_paragraph_inline() -> None:
    parser = _content_parser()
    context = TransformationContext(inline=True)

    blocks = parser.parse("just **words**", context, False)

    assert [type(block).__name__ for block in blocks] == ["Word", "Space", "Format"]
    assert all(block.parent is None for block in blocks)


def test_nested_tree_is_attached_to_the_running_macro() -> None:
    seen: list[TransformationContext] = []
    spy = SpyMacro([], seen)
    parser = _content_parser(spy)
    host = XDOM([MacroBlock("include", {"document": "A"})])
    block = host.children[0]
    context = TransformationContext(id="nested", current_macro_block=block)

    parser.parse("{{spy/}}", context, True, source="xwiki:Main.A")

    [spy_context] = seen
    nested = spy_context.xdom
    assert nested is not None
    assert nested.source == "xwiki:Main.A"
    assert nested.parent is None
    assert spy_context.id == "nested"
    assert spy.roots == [host]

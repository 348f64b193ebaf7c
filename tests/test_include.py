from __future__ import annotations

from typing import Any

import pytest

from transclusion.api import Engine
from transclusion.core.blocks import (
    XDOM,
    Block,
    Error,
    Heading,
    MacroBlock,
    MacroMarker,
    MetaData,
    Paragraph,
    Word,
)
from transclusion.core.config import EngineConfig
from transclusion.core.diagnostics import NullEmitter
from transclusion.core.exceptions import (
    ContentParseError,
    ContextSwitchError,
    InclusionDepthError,
    RecursiveInclusionError,
)
from transclusion.core.execution import Execution
from transclusion.core.references import (
    DocumentReference,
    DocumentReferenceResolver,
    DocumentReferenceSerializer,
)
from transclusion.core.store import DocumentModel, InMemoryDocumentStore
from transclusion.core.transformation import TransformationContext
from transclusion.macros import (
    IncludeMacro,
    IsolatedContextStrategy,
    RecursionGuard,
    SharedContextStrategy,
)


MODES = pytest.mark.parametrize("mode", ["new", "current"])


def _engine(**settings: Any) -> Engine:
    return Engine(config=EngineConfig(**settings), emitter=NullEmitter())


def _add(engine: Engine, name: str, content: str, **kwargs: Any) -> DocumentModel:
    return engine.store.add(engine.reference(name), content, **kwargs)


def _include(document: str, mode: str) -> str:
    return f'{{{{include document="{document}" context="{mode}"/}}}}'


def _errors(xdom: XDOM) -> list[str]:
    return [error.message for error in xdom.find_all(Error)]


def _include_macro(engine: Engine) -> IncludeMacro:
    macro = engine.macros.get("include")
    assert isinstance(macro, IncludeMacro)
    return macro


# ------------------------------------------------------------------ examples


def test_chapter_is_wrapped_in_a_single_provenance_node() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Chapter1" context="new"}}')
    _add(engine, "Chapter1", "== Title ==")

    xdom = engine.display("Home")

    [marker] = xdom.children
    assert isinstance(marker, MacroMarker)
    [wrapper] = marker.children
    assert isinstance(wrapper, MetaData)
    assert wrapper.source == "Chapter1"
    [heading] = wrapper.children
    assert isinstance(heading, Heading)
    assert heading.level == 2
    assert heading.text_content() == "Title"


@MODES
def test_provenance_keeps_the_literal_document_parameter(mode: str) -> None:
    engine = _engine()
    _add(engine, "Home", _include("Main.Chapter1", mode))
    _add(engine, "Chapter1", "First paragraph\n\nSecond paragraph")

    xdom = engine.display("Home")

    wrappers = xdom.find_all(MetaData)
    assert len(wrappers) == 1
    assert wrappers[0].source == "Main.Chapter1"
    assert [child.text_content() for child in wrappers[0].children] == [
        "First paragraph",
        "Second paragraph",
    ]


@MODES
def test_inline_inclusion_unwraps_the_paragraph(mode: str) -> None:
    engine = _engine()
    _add(engine, "Home", f"Before {_include('Snippet', mode)} after")
    _add(engine, "Snippet", "**inner**")

    xdom = engine.display("Home")

    [paragraph] = xdom.children
    assert isinstance(paragraph, Paragraph)
    [wrapper] = paragraph.find_all(MetaData)
    assert not any(isinstance(child, Paragraph) for child in wrapper.children)
    assert engine.content("Home") == "Before inner after"


# ---------------------------------------------------------------- recursion


@MODES
def test_self_inclusion_is_rejected(mode: str) -> None:
    engine = _engine()
    _add(engine, "A", _include("A", mode))

    xdom = engine.display("A")

    assert _errors(xdom) == ["Found recursive inclusion of document [xwiki:Main.A]"]


@MODES
def test_indirect_cycle_is_detected_where_it_closes(mode: str) -> None:
    engine = _engine()
    _add(engine, "A", _include("B", mode))
    _add(engine, "B", _include("C", mode))
    _add(engine, "C", _include("A", mode))

    xdom = engine.display("A")

    assert _errors(xdom) == ["Found recursive inclusion of document [xwiki:Main.A]"]
    sources = [wrapper.source for wrapper in xdom.find_all(MetaData)]
    assert sources == ["B", "C"]


@MODES
def test_same_document_may_be_included_twice_side_by_side(mode: str) -> None:
    engine = _engine()
    _add(engine, "Home", f"{_include('Part', mode)}\n\n{_include('Part', mode)}")
    _add(engine, "Part", "piece")

    xdom = engine.display("Home")

    assert _errors(xdom) == []
    assert engine.content("Home") == "piece\n\npiece"


def test_guard_checks_enclosing_include_calls() -> None:
    resolver = DocumentReferenceResolver()
    outer = MacroBlock("include", {"document": "A"})
    root = XDOM([MetaData.with_source([Paragraph([outer])], "A")])
    inner = MacroBlock("include", {"document": "B"})
    nested = XDOM([inner], metadata={"source": "xwiki:Main.A"})
    nested.attach_to(outer)
    guard = RecursionGuard(resolver)

    with pytest.raises(RecursiveInclusionError) as excinfo:
        guard.check(inner, resolver.resolve("A"))

    assert excinfo.value.reference == DocumentReference("xwiki", "Main", "A")
    guard.check(inner, resolver.resolve("B"))
    assert root.children


def test_guard_ignores_other_macros() -> None:
    resolver = DocumentReferenceResolver()
    block = MacroBlock("include", {"document": "A"})
    root = XDOM([MacroMarker("box", {"document": "A"}, children=[block])])

    RecursionGuard(resolver).check(block, resolver.resolve("A"))

    assert root.find_all(MacroBlock) == [block]


def test_guard_accepts_detached_blocks() -> None:
    resolver = DocumentReferenceResolver()

    RecursionGuard(resolver, max_depth=1).check(
        MacroBlock("include", {"document": "A"}), resolver.resolve("A")
    )


@MODES
def test_depth_ceiling_stops_long_chains(mode: str) -> None:
    engine = _engine(max_inclusion_depth=3)
    for index in range(5):
        _add(engine, f"P{index}", _include(f"P{index + 1}", mode))
    _add(engine, "P5", "end")

    xdom = engine.display("P0")

    assert _errors(xdom) == [
        "Maximum inclusion depth (3) reached while including document [xwiki:Main.P4]"
    ]


@MODES
def test_depth_ceiling_can_be_disabled(mode: str) -> None:
    engine = _engine(max_inclusion_depth=None)
    for index in range(5):
        _add(engine, f"P{index}", _include(f"P{index + 1}", mode))
    _add(engine, "P5", "end")

    assert engine.content("P0") == "end"


def test_depth_error_carries_the_ceiling() -> None:
    resolver = DocumentReferenceResolver()
    outer = MacroMarker("include", {"document": "A"})
    root = XDOM([outer])
    inner = MacroBlock("include", {"document": "B"})
    outer.add_child(inner)

    with pytest.raises(InclusionDepthError) as excinfo:
        RecursionGuard(resolver, max_depth=1).check(inner, resolver.resolve("B"))

    assert excinfo.value.depth == 1
    assert root.children == (outer,)


# ------------------------------------------------------------ access gates


def test_missing_document_parameter() -> None:
    engine = _engine()
    _add(engine, "Home", "{{include/}}")

    assert _errors(engine.display("Home")) == [
        "You must specify a 'document' parameter pointing to the document to include."
    ]


def test_invalid_context_parameter() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="A" context="sideways"/}}')
    _add(engine, "A", "a")

    [message] = _errors(engine.display("Home"))
    assert message.startswith("Invalid parameters for the [include] macro")


def test_missing_document_fails_to_load() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Missing"/}}')

    xdom = engine.display("Home")

    [error] = xdom.find_all(Error)
    assert error.message == "Failed to load document [xwiki:Main.Missing]"
    assert "does not exist" in error.description


@MODES
def test_permission_denial_never_parses(mode: str, monkeypatch: pytest.MonkeyPatch) -> None:
    engine = _engine()
    _add(engine, "Home", _include("Secret", mode))
    _add(engine, "Secret", "classified", viewers=["alice"])
    calls: list[Any] = []
    monkeypatch.setattr(engine.content_parser, "parse", lambda *args, **kwargs: calls.append(args))

    xdom = engine.display("Home")

    assert _errors(xdom) == [
        "Current user doesn't have view rights on document [xwiki:Main.Secret]"
    ]
    assert calls == []


def test_authorised_user_sees_protected_document() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Secret"/}}')
    _add(engine, "Secret", "classified", viewers=["alice"])

    with engine.as_user("alice"):
        assert engine.content("Home") == "classified"
    with engine.as_user("bob"):
        assert "view rights" in engine.content("Home")


# ----------------------------------------------------------------- strategies


def _host(document: str) -> tuple[XDOM, TransformationContext]:
    block = MacroBlock("include", {"document": document})
    root = XDOM([block], metadata={"source": "xwiki:Main.Host"})
    context = TransformationContext(id="xwiki:Main.Host", xdom=root, current_macro_block=block)
    return root, context


def test_shared_context_leaves_macros_pending() -> None:
    engine = _engine()
    _add(engine, "Inner", '{{get name="x" default="v"/}}')
    include = _include_macro(engine)
    _root, context = _host("Inner")

    parameters = include.parse_parameters({"Document": "Inner", "context": "current"})
    [wrapper] = include.execute(parameters, None, context)

    assert isinstance(wrapper, MetaData)
    assert [type(block) for block in wrapper.children] == [MacroBlock]
    assert wrapper.children[0].id == "get"
    assert wrapper.parent is None


def test_isolated_context_executes_macros() -> None:
    engine = _engine()
    _add(engine, "Inner", '{{get name="x" default="v"/}}')
    include = _include_macro(engine)
    _root, context = _host("Inner")

    parameters = include.parse_parameters({"document": "Inner", "CONTEXT": "NEW"})
    [wrapper] = include.execute(parameters, None, context)

    assert wrapper.find_all(MacroBlock) == []
    assert [type(block) for block in wrapper.children] == [MacroMarker]
    assert wrapper.text_content() == "v"


def test_default_context_comes_from_configuration() -> None:
    engine = _engine(default_include_context="new")
    _add(engine, "Inner", '{{get name="x" default="v"/}}')
    include = _include_macro(engine)
    _root, context = _host("Inner")

    [wrapper] = include.execute(include.parse_parameters({"document": "Inner"}), None, context)

    assert wrapper.find_all(MacroBlock) == []


def test_nested_document_uses_its_own_syntax() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Notes" context="new"/}}')
    _add(engine, "Notes", "# Notes\n\nSome *markdown*", syntax="markdown/1.2")

    xdom = engine.display("Home")

    [heading] = xdom.find_all(Heading)
    assert heading.level == 1
    assert engine.content("Home") == "Notes\n\nSome markdown"


class _RecordingContentParser:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.seen: list[tuple[Any, ...]] = []

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
        self.seen.append(
            (
                self.engine.execution.depth,
                self.engine.store.current_document_reference(),
                transform,
                source,
            )
        )
        return [Word(content)]


class _FailingContentParser:
    def parse(self, *args: Any, **kwargs: Any) -> list[Block]:
        raise ContentParseError(None, "broken markup")


def test_isolated_strategy_binds_and_restores() -> None:
    engine = _engine()
    home = engine.reference("Home")
    other = engine.reference("Other")
    engine.store.push_document_in_context(home)
    recorder = _RecordingContentParser(engine)
    strategy = IsolatedContextStrategy(
        engine.execution, engine.store, recorder, DocumentReferenceSerializer()
    )
    depth = engine.execution.depth
    top = engine.execution.context

    blocks = strategy.run(other, "text", TransformationContext())

    assert [block.text_content() for block in blocks] == ["text"]
    assert recorder.seen == [(depth + 1, other, True, "xwiki:Main.Other")]
    assert engine.execution.depth == depth
    assert engine.execution.context is top
    assert engine.store.current_document_reference() == home


def test_isolated_strategy_restores_on_failure() -> None:
    execution = Execution()
    store = InMemoryDocumentStore(execution=execution)
    strategy = IsolatedContextStrategy(
        execution, store, _FailingContentParser(), DocumentReferenceSerializer()
    )
    reference = DocumentReference("xwiki", "Main", "Other")
    top = execution.ensure_context()

    with pytest.raises(ContextSwitchError) as excinfo:
        strategy.run(reference, "text", TransformationContext())

    assert str(excinfo.value) == "Failed to render page [xwiki:Main.Other] in new context"
    assert isinstance(excinfo.value.__cause__, ContentParseError)
    assert execution.depth == 1
    assert execution.context is top
    assert store.current_document_reference() is None


class _UnbindableStore(InMemoryDocumentStore):
    def push_document_in_context(self, reference: DocumentReference) -> dict[str, Any]:
        raise RuntimeError("binding refused")


def test_isolated_strategy_restores_when_binding_fails() -> None:
    execution = Execution()
    store = _UnbindableStore(execution=execution)
    strategy = IsolatedContextStrategy(
        execution, store, _FailingContentParser(), DocumentReferenceSerializer()
    )
    top = execution.ensure_context()

    with pytest.raises(ContextSwitchError) as excinfo:
        strategy.run(DocumentReference("xwiki", "Main", "Other"), "text", TransformationContext())

    assert str(excinfo.value.__cause__) == "binding refused"
    assert execution.depth == 1
    assert execution.context is top


def test_shared_strategy_propagates_parse_failures() -> None:
    strategy = SharedContextStrategy(_FailingContentParser(), DocumentReferenceSerializer())

    with pytest.raises(ContentParseError) as excinfo:
        strategy.run(
            DocumentReference("xwiki", "Main", "Other"), "text", TransformationContext()
        )

    assert str(excinfo.value) == "Failed to parse content: broken markup"
    assert excinfo.value.reference is None


@MODES
def test_display_keeps_execution_stack_balanced(mode: str) -> None:
    engine = _engine()
    _add(engine, "Home", f"{_include('Ok', mode)}\n\n{_include('Home', mode)}")
    _add(engine, "Ok", "fine")
    depth = engine.execution.depth

    engine.display("Home")

    assert engine.execution.depth == depth
    assert engine.store.current_document_reference() is None


def test_unknown_syntax_in_isolated_mode_is_a_context_switch_failure() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Odd" context="new"/}}')
    _add(engine, "Odd", "<p>x</p>", syntax="html/5.0")

    [error] = engine.display("Home").find_all(Error)

    assert error.message == "Failed to render page [xwiki:Main.Odd] in new context"
    assert "no parser available" in error.description


def test_unknown_syntax_in_current_mode_is_a_parse_failure() -> None:
    engine = _engine()
    _add(engine, "Home", '{{include document="Odd" context="current"/}}')
    _add(engine, "Odd", "<p>x</p>", syntax="html/5.0")

    [error] = engine.display("Home").find_all(Error)

    assert error.message.startswith("Failed to parse included page [xwiki:Main.Odd]")


# ------------------------------------------------------------- relative refs


@MODES
def test_relative_references_resolve_against_included_document(mode: str) -> None:
    engine = _engine()
    _add(engine, "Home", _include("Sub.Chapter", mode))
    _add(engine, "Sub.Chapter", _include("Section", mode))
    _add(engine, "Sub.Section", "deep text")
    _add(engine, "Section", "wrong text")

    assert engine.content("Home") == "deep text"


# ------------------------------------------------------------------ variables


def test_variables_set_in_new_context_do_not_leak() -> None:
    engine = _engine()
    _add(
        engine,
        "Home",
        '{{include document="Vars" context="new"/}}\n\n{{get name="x" default="unset"/}}',
    )
    _add(engine, "Vars", '{{set name="x" value="inner"/}}')

    assert engine.content("Home") == "unset"


def test_variables_set_in_current_context_are_shared() -> None:
    engine = _engine()
    _add(
        engine,
        "Home",
        '{{include document="Vars" context="current"/}}\n\n{{get name="x" default="unset"/}}',
    )
    _add(engine, "Vars", '{{set name="x" value="inner"/}}')

    assert engine.content("Home") == "inner"

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from transclusion.ui.cli import app


runner = CliRunner()


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def wiki(tmp_path: Path) -> Path:
    _write(tmp_path, "Main/Home.xwiki", '---\ntitle: Welcome home\n---\n{{include document="Chapter"/}}\n')
    _write(tmp_path, "Main/Chapter.md", "# Chapter\n\nBody text\n")
    _write(tmp_path, "Main/Broken.xwiki", '{{include document="Missing"/}}\n')
    _write(tmp_path, "Main/Secret.xwiki", "---\nviewers: [alice]\n---\nclassified\n")
    return tmp_path


def test_show_prints_rendered_document(wiki: Path) -> None:
    result = runner.invoke(app, ["show", str(wiki), "Home"])

    assert result.exit_code == 0, result.output
    assert result.output == "Chapter\n\nBody text\n"


def test_show_tree_prints_nodes(wiki: Path) -> None:
    result = runner.invoke(app, ["show", str(wiki), "Home", "--tree"])

    assert result.exit_code == 0, result.output
    assert "MacroMarker('include'" in result.output
    assert "MetaData(source='Chapter')" in result.output
    assert "Heading(level=1" in result.output


def test_show_tree_lists_macro_errors(wiki: Path) -> None:
    result = runner.invoke(app, ["show", str(wiki), "Broken", "--tree"])

    assert result.exit_code == 0, result.output
    assert "Macro errors" in result.output
    assert "Failed to load document" in result.output


def test_verbose_show_reports_inclusions(wiki: Path) -> None:
    result = runner.invoke(app, ["-v", "show", str(wiki), "Home"])

    assert result.exit_code == 0, result.output
    assert "Included xwiki:Main.Chapter" in result.output


def test_show_missing_document_fails(wiki: Path) -> None:
    result = runner.invoke(app, ["show", str(wiki), "Nowhere"])

    assert result.exit_code == 1
    assert "error:" in result.output
    assert "does not exist" in result.output


def test_show_honours_user_rights(wiki: Path) -> None:
    denied = runner.invoke(app, ["show", str(wiki), "Secret"])
    allowed = runner.invoke(app, ["show", str(wiki), "Secret", "--user", "alice"])

    assert denied.exit_code == 1
    assert "view rights" in denied.output
    assert allowed.exit_code == 0, allowed.output
    assert allowed.output == "classified\n"


def test_title_prefers_front_matter(wiki: Path) -> None:
    declared = runner.invoke(app, ["title", str(wiki), "Home"])
    heading = runner.invoke(app, ["title", str(wiki), "Chapter"])

    assert declared.output == "Welcome home\n"
    assert heading.output == "Chapter\n"


def test_resolve_prints_canonical_reference(wiki: Path) -> None:
    result = runner.invoke(app, ["resolve", str(wiki), "Home"])

    assert result.exit_code == 0, result.output
    assert result.output == "xwiki:Main.Home\n"


def test_verbose_resolve_flags_missing_documents(wiki: Path) -> None:
    result = runner.invoke(app, ["-v", "resolve", str(wiki), "Sandbox.Test"])

    assert result.exit_code == 0, result.output
    assert "xwiki:Sandbox.Test" in result.output
    assert "does not exist" in result.output


def test_macros_lists_registered_macros(wiki: Path) -> None:
    result = runner.invoke(app, ["macros", str(wiki)])

    assert result.exit_code == 0, result.output
    assert "include" in result.output
    assert "1000" in result.output
    assert "set" in result.output
    assert result.output.index("include") < result.output.index("get")


def test_configuration_file_inside_root(tmp_path: Path) -> None:
    _write(tmp_path, "transclusion.yml", "transclusion:\n  default_space: Docs\n")
    _write(tmp_path, "Docs/Home.xwiki", "docs home\n")

    result = runner.invoke(app, ["show", str(tmp_path), "Home"])

    assert result.exit_code == 0, result.output
    assert result.output == "docs home\n"


def test_explicit_configuration_file(wiki: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
    config = _write(tmp_path_factory.mktemp("config"), "engine.yml", "default_space: Other\n")
    _write(wiki, "Other/Home.xwiki", "other home\n")

    result = runner.invoke(app, ["show", str(wiki), "Home", "--config", str(config)])

    assert result.exit_code == 0, result.output
    assert result.output == "other home\n"


def test_invalid_configuration_fails(wiki: Path) -> None:
    _write(wiki, "transclusion.yml", "default_include_context: sideways\n")

    result = runner.invoke(app, ["show", str(wiki), "Home"])

    assert result.exit_code == 1
    assert "Invalid engine configuration" in result.output


def test_no_arguments_shows_help() -> None:
    result = runner.invoke(app, [])

    assert "show" in result.output
    assert "resolve" in result.output


def test_show_invalid_document_fails_with_its_name(wiki: Path) -> None:
    _write(wiki, "Main/Typo.xwiki", "---\nviewers: [alice\n---\nconfidential\n")

    result = runner.invoke(app, ["show", str(wiki), "Typo"])

    assert result.exit_code == 1
    assert "Document [xwiki:Main.Typo] is invalid" in result.output
    assert "confidential" not in result.output

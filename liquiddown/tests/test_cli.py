"""Tests for the liquiddown command line."""

import json

import pytest
from typer.testing import CliRunner

from liquiddown import __version__
from liquiddown.cli import app

runner = CliRunner()

GOOD = "# {{ title }}\n\n{% if user %}\nHi {{ user.name }}\n{% else %}\nHi\n{% endif %}\n"
BAD = "intro\n\n{% if a %}\nx\n{% endfor %}\n"


@pytest.fixture
def good_file(tmp_path):
    path = tmp_path / "good.md"
    path.write_text(GOOD)
    return path


@pytest.fixture
def bad_file(tmp_path):
    path = tmp_path / "bad.md"
    path.write_text(BAD)
    return path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_check_clean_file(good_file):
    result = runner.invoke(app, ["check", str(good_file)])
    assert result.exit_code == 0, result.output
    assert "2 expression(s), 3 tag(s), 1 block(s)" in result.output
    assert "No problems found" in result.output


def test_check_reports_problems(bad_file):
    result = runner.invoke(app, ["check", str(bad_file)])
    assert result.exit_code == 1
    assert "2 problem(s)" in result.output


def test_check_json(bad_file):
    result = runner.invoke(app, ["check", str(bad_file), "--json"])
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert [d["message"] for d in data["diagnostics"]] == [
        "Unclosed block tag 'if'",
        "End tag 'endfor' without a matching start tag",
    ]
    assert data["diagnostics"][0]["line"] == 3


def test_check_reads_stdin():
    result = runner.invoke(app, ["check", "-", "--json"], input="Hello {{ name }}")
    assert result.exit_code == 0
    assert json.loads(result.output)["expressions"] == ["name"]


def test_missing_file(tmp_path):
    result = runner.invoke(app, ["check", str(tmp_path / "nope.md")])
    assert result.exit_code == 1
    assert "not found" in result.output.replace("\n", " ")


def test_blocks(good_file, bad_file):
    result = runner.invoke(app, ["blocks", str(good_file)])
    assert result.exit_code == 0
    assert "if-1" in result.output
    assert "continuation: {% else %}" in result.output
    assert "end: {% endif %}" in result.output

    result = runner.invoke(app, ["blocks", str(bad_file)])
    assert "end: <missing>" in result.output


def test_blocks_none_found():
    result = runner.invoke(app, ["blocks", "-"], input="plain text")
    assert result.exit_code == 0
    assert "No blocks found" in result.output


def test_tree(good_file):
    result = runner.invoke(app, ["tree", str(good_file)])
    assert result.exit_code == 0
    assert "liquid_block" in result.output
    assert "heading" in result.output

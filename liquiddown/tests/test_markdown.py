"""Tests for the Markdown host tree."""

from liquiddown.markdown import parse_markdown
from liquiddown.nodes import LiquidNode, iter_nodes
from liquiddown.pipeline import process_liquid_nodes


def test_root_and_heading():
    tree = parse_markdown("# Hello {{ name }}\n")
    assert tree.type == "root"
    assert tree.position.start.offset == 0
    heading = tree.children[0]
    assert heading.type == "heading"
    assert heading.data["depth"] == 1
    text = heading.children[0]
    assert text.type == "text"
    assert text.value == "Hello {{ name }}"
    assert text.line == 1
    assert text.column == 3
    assert text.offset == 2


def test_inline_formatting_nodes():
    tree = parse_markdown("Some *emph* here")
    para = tree.children[0]
    assert [c.type for c in para.children] == ["text", "em", "text"]
    assert para.children[1].children[0].value == "emph"
    assert para.children[2].offset == len("Some *emph*")


def test_softbreaks_merge_into_one_text_run():
    source = "{% if a %}\nshown\n{% endif %}"
    tree = parse_markdown(source)
    para = tree.children[0]
    assert len(para.children) == 1
    assert para.children[0].value == source
    assert para.children[0].offset == 0


def test_later_paragraph_positions():
    tree = parse_markdown("first\n\nsecond {{ x }}\n")
    second = tree.children[1]
    assert second.line == 3
    assert second.children[0].line == 3
    assert second.children[0].offset == len("first\n\n")


def test_code_is_not_split():
    source = "```liquid\n{{ not_parsed }}\n```\n\nInline `{% raw_tag %}` too.\n"
    tree = process_liquid_nodes(parse_markdown(source), source)
    fence = tree.children[0]
    assert fence.type == "fence"
    assert fence.data["info"] == "liquid"
    assert fence.value == "{{ not_parsed }}\n"
    assert not any(isinstance(n, LiquidNode) for n in iter_nodes(tree))
    assert any(n.type == "code_inline" for n in iter_nodes(tree))


def test_link_attributes_are_kept():
    tree = parse_markdown("[{{ label }}](/home)")
    link = tree.children[0].children[0]
    assert link.type == "link"
    assert link.data["href"] == "/home"
    assert link.children[0].value == "{{ label }}"


def expression_lines(source):
    tree = process_liquid_nodes(parse_markdown(source), source)
    return [(n.raw_content, n.line) for n in iter_nodes(tree) if n.type == "liquid_expression"]


def test_changed_text_is_not_located_in_a_later_block():
    assert expression_lines("a &amp; {{ x }}\n\na & {{ y }}\n") == [
        ("{{ x }}", None),
        ("{{ y }}", 3),
    ]


def test_text_after_inline_code_is_located_after_it():
    tree = parse_markdown("`a b` b")
    para = tree.children[0]
    assert para.children[1].value == " b"
    assert para.children[1].offset == len("`a b`")


def test_indented_continuation_lines_keep_positions():
    source = "{% if a %}\n  {% if b %}\n  x\n  {% endif %}\n{% endif %}\n"
    tree = process_liquid_nodes(parse_markdown(source), source)
    tags = [n for n in iter_nodes(tree) if n.type == "liquid_tag"]
    assert [(t.raw_content, t.line, t.column) for t in tags] == [
        ("{% if a %}", 1, 1),
        ("{% if b %}", 2, 3),
        ("{% endif %}", 4, 3),
        ("{% endif %}", 5, 1),
    ]
    for tag in tags:
        assert source[tag.offset:tag.position.end.offset] == tag.raw_content


def test_blockquote_continuation_lines_keep_positions():
    source = "> {% if a %}\n> {{ b }}\n> {% endif %}\n"
    assert expression_lines(source) == [("{{ b }}", 2)]

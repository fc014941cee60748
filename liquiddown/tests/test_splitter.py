"""Tests for splitting text into text, expression, tag and block nodes."""

import pytest

from liquiddown.errors import DocumentTreeError
from liquiddown.nodes import (DocNode, LiquidBlockNode, LiquidExpressionNode,
                              LiquidTagNode, leaf_text, text_node)
from liquiddown.positions import OFFSETS, OffsetMap, SourceIndex
from liquiddown.splitter import VERBATIM, find_block_end, segment_tree, split_text


def joined(nodes):
    return "".join(n.value for n in nodes)


def types(nodes):
    return [n.type for n in nodes]


def test_plain_text_is_one_unchanged_node():
    text = "Just some *markdown* with {braces} and 100% effort"
    nodes = split_text(text)
    assert len(nodes) == 1
    assert nodes[0].type == "text"
    assert nodes[0].value == text


def test_empty_text():
    nodes = split_text("")
    assert types(nodes) == ["text"]
    assert nodes[0].value == ""


@pytest.mark.parametrize(
    "text",
    [
        "Hi {{ name }}!",
        "a {{ b",
        "a {% if",
        "x {{ a }} {% assign b = 1 %} y {{ c",
        "{% if a %}x{% else %}y{% endif %} tail",
        "{% if a %}never closed {{ b }}",
        "{% for x in xs %}{% for y in x %}{{ y }}{% endfor %}{% endfor %}",
    ],
)
def test_round_trip(text):
    assert joined(split_text(text)) == text


def test_expression_between_text():
    nodes = split_text("Hi {{ name }}!")
    assert types(nodes) == ["text", "liquid_expression", "text"]
    assert isinstance(nodes[1], LiquidExpressionNode)
    assert nodes[1].raw_content == "{{ name }}"


def test_unterminated_expression_becomes_text():
    nodes = split_text("a {{ b {% if %}")
    assert types(nodes) == ["text", "text"]
    assert nodes[1].value == "{{ b {% if %}"


def test_unterminated_tag_becomes_text():
    nodes = split_text("a {% if")
    assert types(nodes) == ["text", "text"]
    assert nodes[1].value == "{% if"


def test_standalone_tag():
    nodes = split_text('{% assign x = "y" %} after')
    assert types(nodes) == ["liquid_tag", "text"]
    assert nodes[0].raw_content == '{% assign x = "y" %}'


def test_matched_block_becomes_block_node():
    text = "{% if a %}x{% else %}y{% endif %}"
    nodes = split_text(text)
    assert len(nodes) == 1
    block = nodes[0]
    assert isinstance(block, LiquidBlockNode)
    assert block.raw_content == text
    assert types(block.children) == ["liquid_tag", "text", "liquid_tag"]
    assert block.opening_tag.raw_content == "{% if a %}"
    assert block.children[1].value == "x{% else %}y"
    assert block.closing_tag.raw_content == "{% endif %}"


def test_unmatched_block_only_takes_opening_tag():
    nodes = split_text("{% if a %}x{% endfor %}")
    assert types(nodes) == ["liquid_tag", "text", "liquid_tag"]
    assert nodes[0].raw_content == "{% if a %}"
    assert nodes[2].raw_content == "{% endfor %}"


def test_nested_same_name_blocks_match_outermost_end():
    text = "{% if a %}{% if b %}{% endif %}{% endif %}"
    nodes = split_text(text)
    assert len(nodes) == 1
    assert nodes[0].children[1].value == "{% if b %}{% endif %}"
    assert nodes[0].closing_tag.position is None


def test_find_block_end():
    text = "{% for a %}{% for b %}{% endfor %}{% endfor %}!"
    open_pos, close_pos = find_block_end(text, "for", len("{% for a %}"))
    assert text[open_pos:close_pos + 2] == "{% endfor %}"
    assert text[close_pos + 2:] == "!"
    assert find_block_end("{% if a %} {% endfor %}", "if", 10) is None
    # a tag left open swallows the end tag that follows it
    assert find_block_end("{% if a %} {% oops {% endif %}", "if", 10) is None


def test_positions_are_absolute_and_monotonic():
    source = "0123456789ab {{ c }} d {% tag %}"
    index = SourceIndex(source)
    nodes = split_text(source[10:], start_offset=10, index=index)
    assert types(nodes) == ["text", "liquid_expression", "text", "liquid_tag"]
    expr = nodes[1]
    assert expr.position.start.offset == 13
    assert expr.position.end.offset == 20
    assert expr.line == 1
    assert expr.column == 14
    offsets = [n.position.start.offset for n in nodes]
    assert offsets == sorted(offsets)
    for node in nodes:
        assert source[node.position.start.offset:node.position.end.offset] == node.value


def test_positions_across_lines():
    source = "line one\n{% if a %}\n{{ b }}\n{% endif %}"
    index = SourceIndex(source)
    nodes = split_text(source, start_offset=0, index=index)
    block = nodes[1]
    assert block.line == 2
    assert block.column == 1
    assert block.closing_tag.line == 4


def test_no_positions_without_index():
    nodes = split_text("a {{ b }}", start_offset=5)
    assert all(n.position is None for n in nodes)


def make_tree(*texts):
    return DocNode(
        type="root",
        children=[DocNode(type="paragraph", children=[text_node(t) for t in texts])],
    )


def test_segment_tree_splits_block_bodies():
    tree = make_tree("{% if a %}x{% else %}y{% endif %}")
    assert segment_tree(tree) == 2
    block = tree.children[0].children[0]
    assert isinstance(block, LiquidBlockNode)
    assert types(block.children) == ["liquid_tag", "text", "liquid_tag", "text", "liquid_tag"]
    assert block.children[2].raw_content == "{% else %}"
    assert leaf_text(tree) == "{% if a %}x{% else %}y{% endif %}"


def test_segment_tree_reaches_nested_blocks():
    tree = make_tree("{% if a %}{% for x in xs %}{{ x }}{% endfor %}{% endif %}")
    segment_tree(tree)
    outer = tree.children[0].children[0]
    inner = outer.children[1]
    assert isinstance(inner, LiquidBlockNode)
    assert types(inner.children) == ["liquid_tag", "liquid_expression", "liquid_tag"]


def test_segment_tree_leaves_plain_text_alone():
    tree = make_tree("nothing here")
    original = tree.children[0].children[0]
    assert segment_tree(tree) == 0
    assert tree.children[0].children[0] is original


def test_segment_tree_skips_non_text_nodes():
    tree = DocNode(
        type="root",
        children=[DocNode(type="code_inline", value="{{ not liquid }}")],
    )
    assert segment_tree(tree) == 0
    assert tree.children[0].type == "code_inline"


def test_raw_block_body_is_not_split():
    tree = make_tree("{% raw %}{{ x }}{% endraw %}")
    segment_tree(tree)
    block = tree.children[0].children[0]
    assert types(block.children) == ["liquid_tag", "text", "liquid_tag"]
    assert block.children[1].data[VERBATIM] is True


def test_segment_tree_rejects_missing_root():
    with pytest.raises(DocumentTreeError):
        segment_tree(None)
    with pytest.raises(DocumentTreeError):
        segment_tree(LiquidTagNode(raw_content="{% x %}", children=None))


def test_find_block_end_skips_verbatim_bodies():
    text = "{% if a %}{% raw %}{% endif %}{% endraw %}{% endif %}"
    open_pos, _ = find_block_end(text, "if", len("{% if a %}"))
    assert open_pos == text.rindex("{% endif %}")
    text = "{% for x in xs %}{% comment %}{% for y %}{% endcomment %}{% endfor %}"
    open_pos, _ = find_block_end(text, "for", len("{% for x in xs %}"))
    assert text[open_pos:] == "{% endfor %}"


def test_verbatim_block_ends_at_first_end_tag():
    text = "{% raw %}{% raw %}{% endraw %} tail"
    open_pos, _ = find_block_end(text, "raw", len("{% raw %}"))
    assert open_pos == text.index("{% endraw %}")


def test_tags_inside_raw_do_not_close_outer_block():
    tree = make_tree("{% if a %}{% raw %}{% endif %}{% endraw %}{% endif %}")
    segment_tree(tree)
    (outer,) = tree.children[0].children
    assert isinstance(outer, LiquidBlockNode)
    assert outer.closing_tag.raw_content == "{% endif %}"
    raw = outer.children[1]
    assert isinstance(raw, LiquidBlockNode)
    assert raw.children[1].value == "{% endif %}"
    assert raw.children[1].data[VERBATIM] is True


def test_positions_through_offset_map():
    # "{% if a %}\n  {{ b }}\n{% endif %}" with the indent stripped
    source = "{% if a %}\n  {{ b }}\n{% endif %}"
    text = "{% if a %}\n{{ b }}\n{% endif %}"
    offsets = OffsetMap([(0, 0), (11, 13), (19, 21)])
    index = SourceIndex(source)
    (block,) = split_text(text, index=index, offsets=offsets)
    assert block.position.end.offset == len(source)
    body = block.children[1]
    assert body.data[OFFSETS](1) == 13

    tree = DocNode(type="root", children=[block])
    segment_tree(tree, index)
    expr = block.children[2]
    assert isinstance(expr, LiquidExpressionNode)
    assert (expr.line, expr.column) == (2, 3)
    assert source[expr.offset:expr.position.end.offset] == "{{ b }}"
    assert block.closing_tag.line == 3

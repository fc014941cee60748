"""Splitting text nodes into text, expression, tag and block nodes.

The splitter scans each ``text`` leaf of the host tree for ``{{ ... }}`` and
``{% ... %}`` constructs and splices the resulting node sequence into the
parent in place of the original leaf. Joining the literal text of the emitted
nodes always reproduces the original text exactly.
"""

import logging
from typing import List, Optional, Tuple

from .errors import DocumentTreeError
from .nodes import (TEXT, DocNode, LiquidBlockNode, LiquidExpressionNode,
                    LiquidTagNode, text_node)
from .positions import OFFSETS, OffsetMap, SourceIndex
from .tags import DEFAULT_TABLES, END_PREFIX, TagTables, extract_tag_name

logger = logging.getLogger(__name__)

EXPRESSION_OPEN = "{{"
EXPRESSION_CLOSE = "}}"
TAG_OPEN = "{%"
TAG_CLOSE = "%}"

# data flag on the body text of raw/comment blocks
VERBATIM = "verbatim"


def _tag_name_between(text: str, open_pos: int, close_pos: int) -> str:
    return extract_tag_name(text[open_pos + len(TAG_OPEN):close_pos])


def find_block_end(
    text: str,
    tag_name: str,
    search_from: int,
    tables: TagTables = DEFAULT_TABLES,
) -> Optional[Tuple[int, int]]:
    """Locate the ``end<tag_name>`` tag that closes a block opened before ``search_from``.

    Nested tags of the same name increase the depth. The bodies of verbatim
    blocks (``raw``, ``comment``) are skipped whole, and a verbatim block
    itself ends at its first end tag. Returns the ``(open, close)`` indexes
    of the matching end tag's delimiters, or None if the text ends first or
    a later tag is unterminated.
    """
    verbatim = tag_name in tables.verbatim_tags
    depth = 1
    end_name = END_PREFIX + tag_name
    pos = search_from
    while pos < len(text):
        open_pos = text.find(TAG_OPEN, pos)
        if open_pos == -1:
            return None
        close_pos = text.find(TAG_CLOSE, open_pos + len(TAG_OPEN))
        if close_pos == -1:
            return None
        name = _tag_name_between(text, open_pos, close_pos)
        pos = close_pos + len(TAG_CLOSE)
        if name == end_name:
            depth -= 1
            if depth == 0 or verbatim:
                return open_pos, close_pos
        elif verbatim:
            continue
        elif name == tag_name:
            depth += 1
        elif name in tables.verbatim_tags:
            inner = find_block_end(text, name, pos, tables)
            if inner is None:
                return None
            pos = inner[1] + len(TAG_CLOSE)
    return None


class _Emitter:
    """Builds the replacement node list and assigns positions as it goes."""

    def __init__(self, offsets: Optional[OffsetMap], index: Optional[SourceIndex]):
        self.nodes: List[DocNode] = []
        self.offsets = offsets
        self.index = index

    def position(self, start: int, end: int):
        if self.offsets is None or self.index is None:
            return None
        return self.index.position(*self.offsets.span(start, end))

    def text(self, text: str, start: int, end: int) -> None:
        if end <= start:
            return
        node = text_node(text[start:end], self.position(start, end))
        if self.offsets is not None and not self.offsets.is_contiguous:
            node.data[OFFSETS] = self.offsets.shifted(start)
        self.nodes.append(node)

    def expression(self, text: str, start: int, end: int) -> None:
        self.nodes.append(
            LiquidExpressionNode(raw_content=text[start:end], position=self.position(start, end))
        )

    def tag(self, text: str, start: int, end: int) -> LiquidTagNode:
        node = LiquidTagNode(raw_content=text[start:end], position=self.position(start, end))
        self.nodes.append(node)
        return node

    def block(
        self, text: str, start: int, open_end: int, close_start: int, end: int,
        verbatim: bool = False,
    ) -> None:
        # children share the span's offset map, so their positions stay absolute
        inner = _Emitter(self.offsets, self.index)
        inner.tag(text, start, open_end)
        inner.text(text, open_end, close_start)
        if verbatim and len(inner.nodes) == 2:
            inner.nodes[1].data[VERBATIM] = True
        inner.tag(text, close_start, end)
        self.nodes.append(
            LiquidBlockNode(
                raw_content=text[start:end],
                position=self.position(start, end),
                children=inner.nodes,
            )
        )


def split_text(
    text: str,
    start_offset: Optional[int] = None,
    index: Optional[SourceIndex] = None,
    tables: TagTables = DEFAULT_TABLES,
    offsets: Optional[OffsetMap] = None,
) -> List[DocNode]:
    """Split one text span into text and Liquid construct nodes.

    Args:
        text: The literal text of the span
        start_offset: Absolute offset of the span in the source, if known
        index: Source index used to turn offsets into line/column points
        tables: Tag tables used to recognise block tags
        offsets: Offset map for a span that is not contiguous in the source;
            takes precedence over ``start_offset``

    Returns:
        Ordered replacement nodes; their literal text joins back to ``text``
    """
    if offsets is None and start_offset is not None:
        offsets = OffsetMap.contiguous(start_offset)
    out = _Emitter(offsets, index)
    if not text:
        return [text_node(text, out.position(0, 0))]
    cursor = 0

    while cursor < len(text):
        expr_pos = text.find(EXPRESSION_OPEN, cursor)
        tag_pos = text.find(TAG_OPEN, cursor)

        if expr_pos == -1 and tag_pos == -1:
            out.text(text, cursor, len(text))
            break

        is_tag = expr_pos == -1 or (tag_pos != -1 and tag_pos < expr_pos)
        open_pos = tag_pos if is_tag else expr_pos
        out.text(text, cursor, open_pos)

        if not is_tag:
            close_pos = text.find(EXPRESSION_CLOSE, open_pos + len(EXPRESSION_OPEN))
            if close_pos == -1:
                logger.debug(f"Unterminated expression at {open_pos}, kept as text")
                out.text(text, open_pos, len(text))
                break
            cursor = close_pos + len(EXPRESSION_CLOSE)
            out.expression(text, open_pos, cursor)
            continue

        close_pos = text.find(TAG_CLOSE, open_pos + len(TAG_OPEN))
        if close_pos == -1:
            logger.debug(f"Unterminated tag at {open_pos}, kept as text")
            out.text(text, open_pos, len(text))
            break
        open_end = close_pos + len(TAG_CLOSE)

        tag_name = _tag_name_between(text, open_pos, close_pos)
        match = None
        if tag_name in tables.block_tags:
            match = find_block_end(text, tag_name, open_end, tables)

        if match is None:
            out.tag(text, open_pos, open_end)
            cursor = open_end
        else:
            end_open, end_close = match
            cursor = end_close + len(TAG_CLOSE)
            out.block(
                text, open_pos, open_end, end_open, cursor,
                verbatim=tag_name in tables.verbatim_tags,
            )

    return out.nodes


def _is_unchanged(original: DocNode, replacement: List[DocNode]) -> bool:
    return (
        len(replacement) == 1
        and replacement[0].type == TEXT
        and replacement[0].value == original.value
    )


def segment_tree(
    root: DocNode,
    index: Optional[SourceIndex] = None,
    tables: TagTables = DEFAULT_TABLES,
) -> int:
    """Replace every text leaf under ``root`` with its split, in place.

    Newly spliced nodes are visited too, which is how the body of a block
    node gets split. Returns the number of text nodes that were replaced.
    """
    if root is None or not isinstance(getattr(root, "children", None), list):
        raise DocumentTreeError("Document tree root must be a node with a children list", root)

    replaced = 0
    stack = [root]
    while stack:
        parent = stack.pop()
        i = 0
        while i < len(parent.children):
            node = parent.children[i]
            if node.type != TEXT or not node.value or node.data.get(VERBATIM):
                if node.children:
                    stack.append(node)
                i += 1
                continue

            start_offset = node.position.start.offset if node.position else None
            replacement = split_text(
                node.value, start_offset, index, tables, offsets=node.data.get(OFFSETS)
            )
            if _is_unchanged(node, replacement):
                i += 1
                continue

            parent.children[i:i + 1] = replacement
            replaced += 1
            for new_node in replacement:
                if new_node.children:
                    stack.append(new_node)
            i += len(replacement)

    logger.debug(f"Split {replaced} text node(s)")
    return replaced

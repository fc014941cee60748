"""Building the host document tree from Markdown with markdown-it-py.

The tree mirrors markdown-it's syntax tree (``paragraph``, ``heading``,
``em``, ``link``, ...) with inline ``text`` and ``softbreak`` runs merged into
single ``text`` leaves, so that a Liquid block written across several lines
of one paragraph stays in one text node.

Text leaves get source positions by locating their text inside the source
range of their block. A leaf whose continuation lines lost their indentation
carries an ``OffsetMap`` in its ``data``. When Markdown changed the text itself
(escapes, entities) it cannot be located and the leaf has no position.
"""

import logging
import re
from typing import List, Optional

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from .nodes import TEXT, DocNode, text_node
from .positions import OFFSETS, OffsetMap, SourceIndex

logger = logging.getLogger(__name__)

# leaves whose content is kept verbatim and never split for Liquid
LITERAL_TYPES = {"code_inline", "code_block", "fence", "html_block", "html_inline"}

# what Markdown strips from the start of a continuation line
_LINE_PREFIX = re.compile(r"[ \t]*(?:>[ \t]?)*[ \t]*")
# trailing spaces before a softbreak are dropped too
_LINE_END = re.compile(r"[ \t]*\n")

_md = None


def get_markdown_parser() -> MarkdownIt:
    global _md
    if _md is None:
        _md = MarkdownIt("commonmark").enable(["table", "strikethrough"])
    return _md


class _TreeBuilder:
    def __init__(self, source: str):
        self.index = SourceIndex(source)
        self.cursor = 0
        # end of the innermost block being converted; text is never looked up past it
        self.limit = len(source)

    def locate(self, text: str) -> Optional[OffsetMap]:
        """Map ``text`` onto the source between the cursor and the block's end.

        Continuation lines may have lost their indentation or blockquote
        markers. Returns None when the text is not in the source as written,
        e.g. because Markdown decoded an entity. Advances the cursor past a
        match.
        """
        if not text:
            return None
        source = self.index.source
        found = source.find(text, self.cursor, self.limit)
        if found != -1:
            self.cursor = found + len(text)
            return OffsetMap.contiguous(found)

        lines = text.split("\n")
        start = source.find(lines[0], self.cursor, self.limit)
        if start == -1:
            return None
        segments = [(0, start)]
        local = len(lines[0]) + 1
        pos = start + len(lines[0])
        for line in lines[1:]:
            newline = _LINE_END.match(source, pos)
            if newline is None:
                return None
            pos = _LINE_PREFIX.match(source, newline.end()).end()
            if pos + len(line) > self.limit or not source.startswith(line, pos):
                return None
            segments.append((local, pos))
            local += len(line) + 1
            pos += len(line)
        self.cursor = pos
        return OffsetMap(segments)

    def block_position(self, node: SyntaxTreeNode):
        if not node.map:
            return None
        start = self.index.line_offset(node.map[0])
        end = self.index.line_offset(node.map[1])
        # a block never starts before text that was already located
        self.cursor = max(self.cursor, start)
        return self.index.position(start, max(start, end))

    def text_run(self, value: str) -> DocNode:
        offsets = self.locate(value)
        if offsets is None:
            return text_node(value)
        node = text_node(value, self.index.position(*offsets.span(0, len(value))))
        if not offsets.is_contiguous:
            node.data[OFFSETS] = offsets
        return node

    def inline_children(self, children: List[SyntaxTreeNode]) -> List[DocNode]:
        out: List[DocNode] = []
        run: List[str] = []

        def flush():
            if run:
                out.append(self.text_run("".join(run)))
                run.clear()

        for child in children:
            if child.type == "text":
                run.append(child.content)
            elif child.type == "softbreak":
                run.append("\n")
            else:
                flush()
                out.append(self.convert(child))
        flush()
        return out

    def convert(self, node: SyntaxTreeNode) -> DocNode:
        if node.is_root:
            return DocNode(type="root", children=self.block_children(node))

        data = dict(node.attrs or {})
        if node.info:
            data["info"] = node.info
        if node.markup:
            data["markup"] = node.markup

        position = self.block_position(node) if node.map else None

        if node.type in LITERAL_TYPES:
            if position is None:
                # inline code: move past it so later text is not found inside it
                self.locate(node.content)
            return DocNode(type=node.type, value=node.content, position=position, data=data)
        if node.type == "text":
            return self.text_run(node.content)
        if node.type in ("softbreak", "hardbreak"):
            return DocNode(type=node.type, value="\n", data=data)
        if node.type == "heading":
            data["depth"] = int(node.tag[1])

        outer_limit = self.limit
        if position is not None:
            self.limit = position.end.offset
        children = self.block_children(node)
        self.limit = outer_limit
        return DocNode(type=node.type, children=children, position=position, data=data)

    def block_children(self, node: SyntaxTreeNode) -> List[DocNode]:
        children: List[DocNode] = []
        for child in node.children:
            if child.type == "inline":
                children.extend(self.inline_children(child.children))
            else:
                children.append(self.convert(child))
        return children


def parse_markdown(source: str) -> DocNode:
    """Parse Markdown into a host tree of ``DocNode`` objects rooted at ``root``."""
    tokens = get_markdown_parser().parse(source)
    builder = _TreeBuilder(source)
    root = builder.convert(SyntaxTreeNode(tokens))
    root.position = builder.index.position(0, len(source))
    logger.debug(f"Parsed markdown into {len(root.children)} top-level block(s)")
    return root

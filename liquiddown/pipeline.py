"""Orchestration of one Liquid pass over a host document tree."""

import logging
from functools import partial
from typing import List, Optional, Tuple

from anyio import to_thread

from .associator import associate_block_tags, validate_block_structure
from .errors import DocumentTreeError
from .markdown import parse_markdown
from .nodes import (DocNode, LiquidBlockNode, LiquidExpressionNode,
                    LiquidTagNode, iter_nodes)
from .positions import SourceIndex
from .processors import process_block, process_expression, process_tag
from .splitter import segment_tree
from .tags import DEFAULT_TABLES, TagTables

logger = logging.getLogger(__name__)


def _collect(tree: DocNode) -> Tuple[List[LiquidExpressionNode], List[LiquidTagNode], List[LiquidBlockNode]]:
    expressions, tags, blocks = [], [], []
    for node in iter_nodes(tree):
        if isinstance(node, LiquidExpressionNode):
            expressions.append(node)
        elif isinstance(node, LiquidTagNode):
            tags.append(node)
        elif isinstance(node, LiquidBlockNode):
            blocks.append(node)
    return expressions, tags, blocks


def _settle_block(node: LiquidBlockNode) -> None:
    """Mirror the outcome of a block span's opening and closing tags."""
    opening, closing = node.opening_tag, node.closing_tag
    if opening is None:
        return
    node.block_id = opening.block_id
    failed = next((t for t in (opening, closing) if t is not None and not t.parse_success), None)
    if failed is None:
        node.mark_success()
    else:
        node.mark_failed(failed.parse_error or "Block is not well formed", kind="block")


def process_liquid_nodes(
    tree: DocNode,
    source: Optional[str] = None,
    tables: TagTables = DEFAULT_TABLES,
) -> DocNode:
    """Find, classify and associate every Liquid construct in ``tree``.

    The tree is mutated in place and returned. Malformed Liquid never raises;
    problems are recorded on the nodes (``parse_outcome``/``parse_error``).

    Args:
        tree: Host document tree (e.g. from ``parse_markdown``)
        source: Original source text, used for line/column positions
        tables: Tag tables for classification

    Raises:
        DocumentTreeError: If ``tree`` is not a node with children
    """
    if tree is None:
        raise DocumentTreeError("No document tree given")

    index = SourceIndex(source) if source is not None else None
    segment_tree(tree, index, tables)

    expressions, tags, blocks = _collect(tree)
    for node in expressions:
        process_expression(node)
    for node in tags:
        process_tag(node, tables)
    for node in blocks:
        process_block(node)

    if tags:
        associate_block_tags(tags, tables=tables)
        validate_block_structure(tags)
    for node in blocks:
        _settle_block(node)

    failures = sum(1 for n in expressions + tags if n.parse_success is False)
    logger.info(
        f"Processed {len(expressions)} expression(s), {len(tags)} tag(s), "
        f"{len(blocks)} block span(s); {failures} with errors"
    )
    return tree


def parse_markdown_liquid(source: str, tables: TagTables = DEFAULT_TABLES) -> DocNode:
    """Parse Markdown and annotate all Liquid constructs in it."""
    tree = parse_markdown(source)
    return process_liquid_nodes(tree, source, tables)


async def parse_markdown_liquid_async(source: str, tables: TagTables = DEFAULT_TABLES) -> DocNode:
    """Async wrapper: runs the synchronous pass in a worker thread."""
    return await to_thread.run_sync(partial(parse_markdown_liquid, source, tables))

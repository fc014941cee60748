"""Per-node processing of expression, tag and block nodes.

Each function fills in the content fields of one node and records a parse
outcome. Nothing here raises for malformed Liquid: failures are stored on the
node.
"""

import logging
import re

from .jinja_utils import parse_construct
from .nodes import LiquidBlockNode, LiquidExpressionNode, LiquidTagNode
from .tags import DEFAULT_TABLES, TagTables, classify, extract_tag_name, TagRole

logger = logging.getLogger(__name__)

_EXPRESSION_DELIMITERS = re.compile(r"^\{\{-?\s*|\s*-?\}\}$")
_TAG_DELIMITERS = re.compile(r"^\{%-?\s*|\s*-?%\}$")


def strip_expression_delimiters(content: str) -> str:
    return _EXPRESSION_DELIMITERS.sub("", content)


def strip_tag_delimiters(content: str) -> str:
    return _TAG_DELIMITERS.sub("", content)


def process_expression(node: LiquidExpressionNode) -> None:
    """Fill in an expression node (``{{ ... }}``) and parse it."""
    if not node.raw_content:
        return
    node.original_content = node.raw_content
    node.inner_content = strip_expression_delimiters(node.raw_content)

    try:
        parsed = parse_construct(node.raw_content)
    except Exception as e:
        logger.debug(f"Expression {node.raw_content!r} failed to parse: {e}")
        node.mark_failed(str(e), kind="expression")
    else:
        node.mark_success(parsed)


def _provisional_block_message(node: LiquidTagNode) -> str:
    if node.is_block_start:
        return f"Block tag '{node.tag_name}' requires a matching 'end{node.tag_name}' tag"
    return f"Tag '{node.tag_name}' is part of a block structure"


def process_tag(node: LiquidTagNode, tables: TagTables = DEFAULT_TABLES) -> None:
    """Fill in a tag node (``{% ... %}``): name, role flags and parse outcome.

    Standalone tags are parsed on their own. Block-role tags are not, since a
    lone ``{% if %}`` can never parse; they are marked failed until the block
    associator pairs them.
    """
    if not node.raw_content:
        return
    node.original_content = node.raw_content
    node.inner_content = strip_tag_delimiters(node.raw_content)
    node.tag_name = extract_tag_name(node.inner_content)

    role = classify(node.tag_name, tables)
    node.is_block_start = role is TagRole.BLOCK_START
    node.is_block_end = role is TagRole.BLOCK_END
    node.is_continuation = role is TagRole.CONTINUATION

    if node.has_block_role:
        node.mark_failed(_provisional_block_message(node), kind="tag")
        return

    try:
        parsed = parse_construct(f"{{% {node.inner_content} %}}")
    except Exception as e:
        logger.debug(f"Tag {node.raw_content!r} failed to parse: {e}")
        node.mark_failed(str(e), kind="tag")
    else:
        node.mark_success(parsed)


def process_block(node: LiquidBlockNode) -> None:
    """Fill in the content fields of a block span node.

    Its outcome is settled later from its opening and closing tags.
    """
    if not node.raw_content:
        return
    node.original_content = node.raw_content
    node.inner_content = strip_tag_delimiters(node.raw_content)
    node.tag_name = extract_tag_name(node.inner_content)

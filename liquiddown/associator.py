"""Block association: pairing block-start, continuation and end tags.

Walks tag nodes in document order with one stack of open frames per block
type. A start tag pushes a frame and gets a fresh block id; an end tag pops
the innermost open frame of its type; a continuation tag joins the innermost
open frame of the one block type it is allowed in. Anything that cannot be
paired is marked failed on the node itself.
"""

import itertools
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .nodes import LiquidTagNode
from .tags import DEFAULT_TABLES, TagTables, block_type_of_end, compatible_block_type

logger = logging.getLogger(__name__)

KIND = "tag"


def unclosed_message(block_type: str) -> str:
    return f"Unclosed block tag '{block_type}'"


def orphaned_end_message(tag_name: str) -> str:
    return f"End tag '{tag_name}' without a matching start tag"


def orphaned_continuation_message(tag_name: str) -> str:
    return f"Continuation tag '{tag_name}' without a matching block start"


def unknown_continuation_message(tag_name: str) -> str:
    return f"Unknown continuation tag type: '{tag_name}'"


class BlockIdFactory:
    """Mints block ids that are unique within one association pass."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self, tag_name: str) -> str:
        return f"{self.prefix}{tag_name}-{next(self._counter)}"


@dataclass(eq=False)
class Frame:
    """An open block: its start tag, id and the member tags seen so far."""

    block_type: str
    start: LiquidTagNode
    block_id: str
    members: List[LiquidTagNode] = field(default_factory=list)

    @property
    def continuations(self) -> List[LiquidTagNode]:
        return [n for n in self.members if n.is_continuation]

    @property
    def end(self) -> Optional[LiquidTagNode]:
        return next((n for n in self.members if n.is_block_end), None)


@dataclass
class AssociationResult:
    closed: List[Frame] = field(default_factory=list)
    unclosed: List[Frame] = field(default_factory=list)
    orphans: List[LiquidTagNode] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unclosed and not self.orphans


def document_order(nodes: Iterable[LiquidTagNode]) -> List[LiquidTagNode]:
    """Sort by source offset when every node has one, else keep the given order."""
    nodes = list(nodes)
    if all(n.position is not None for n in nodes):
        return sorted(nodes, key=lambda n: n.position.start.offset)
    return nodes


def _link_related(frame: Frame) -> None:
    start = frame.start
    continuations = frame.continuations
    end = frame.end
    start.related_nodes = continuations + ([end] if end is not None else [])
    for node in continuations:
        node.related_nodes = [start]
    if end is not None:
        end.related_nodes = [start]


def associate_block_tags(
    tag_nodes: Iterable[LiquidTagNode],
    id_factory: Optional[BlockIdFactory] = None,
    tables: TagTables = DEFAULT_TABLES,
) -> AssociationResult:
    """Pair block tags and record the outcome on every block-role node.

    Standalone tags are ignored and keep their own parse outcome. Block-role
    nodes have their association fields reset first, so running this again
    over the same nodes gives the same result.

    Args:
        tag_nodes: Processed tag nodes (role flags already set)
        id_factory: Block id minter; a fresh one is made per call by default
        tables: Tables mapping continuation tags to their block type

    Returns:
        AssociationResult with closed and unclosed frames and orphaned tags
    """
    mint = id_factory or BlockIdFactory()
    nodes = [n for n in document_order(tag_nodes) if n.has_block_role]
    for node in nodes:
        node.reset_association()

    stacks: Dict[str, List[Frame]] = defaultdict(list)
    result = AssociationResult()

    for node in nodes:
        name = node.tag_name

        if node.is_block_start:
            frame = Frame(block_type=name, start=node, block_id=mint(name), members=[node])
            node.block_id = frame.block_id
            node.mark_success()
            stacks[name].append(frame)

        elif node.is_block_end:
            stack = stacks.get(block_type_of_end(name))
            if not stack:
                node.mark_failed(orphaned_end_message(name), kind=KIND)
                result.orphans.append(node)
                continue
            frame = stack.pop()
            node.block_id = frame.block_id
            node.matching_block_id = frame.block_id
            node.mark_success()
            frame.members.append(node)
            _link_related(frame)
            result.closed.append(frame)

        elif node.is_continuation:
            block_type = compatible_block_type(name, tables)
            if block_type is None:
                node.mark_failed(unknown_continuation_message(name), kind=KIND)
                result.orphans.append(node)
                continue
            stack = stacks.get(block_type)
            if not stack:
                node.mark_failed(orphaned_continuation_message(name), kind=KIND)
                result.orphans.append(node)
                continue
            frame = stack[-1]
            node.block_id = frame.block_id
            node.matching_block_id = frame.block_id
            node.mark_success()
            frame.members.append(node)

    for stack in stacks.values():
        for frame in stack:
            frame.start.mark_failed(unclosed_message(frame.block_type), kind=KIND)
            # continuations of an unclosed block still point at its start
            _link_related(frame)
            result.unclosed.append(frame)

    logger.debug(
        f"Associated {len(result.closed)} block(s); "
        f"{len(result.unclosed)} unclosed, {len(result.orphans)} orphaned tag(s)"
    )
    return result


def _has_end_partner(node: LiquidTagNode) -> bool:
    return node.block_id is not None and any(
        r.is_block_end and r.matching_block_id == node.block_id for r in node.related_nodes
    )


def _has_start_partner(node: LiquidTagNode) -> bool:
    return node.matching_block_id is not None and any(
        r.is_block_start and r.block_id == node.matching_block_id for r in node.related_nodes
    )


def _fail_once(node: LiquidTagNode, message: str, added: List[str]) -> None:
    if node.parse_error != message:
        node.mark_failed(message, kind=KIND)
        added.append(message)


def validate_block_structure(tag_nodes: Iterable[LiquidTagNode]) -> List[str]:
    """Cross-check start/end counts per block type after association.

    When the counts disagree, the starts without an end partner (or ends
    without a start partner) are marked with the unclosed/orphaned messages.
    Correctly paired nodes are never touched. Also clears any error message
    left on a node that reports success.

    Returns:
        The messages added by this pass (empty when everything agreed)
    """
    nodes = list(tag_nodes)
    added: List[str] = []

    for node in nodes:
        if node.parse_success and node.parse_error:
            node.parse_error = None

    starts = Counter(n.tag_name for n in nodes if n.is_block_start)
    ends = Counter(block_type_of_end(n.tag_name) for n in nodes if n.is_block_end)

    for block_type in sorted(set(starts) | set(ends)):
        if starts[block_type] == ends[block_type]:
            continue
        logger.debug(
            f"Block '{block_type}': {starts[block_type]} start(s), {ends[block_type]} end(s)"
        )
        if starts[block_type] > ends[block_type]:
            for node in nodes:
                if node.is_block_start and node.tag_name == block_type and not _has_end_partner(node):
                    _fail_once(node, unclosed_message(block_type), added)
        else:
            for node in nodes:
                if (
                    node.is_block_end
                    and block_type_of_end(node.tag_name) == block_type
                    and not _has_start_partner(node)
                ):
                    _fail_once(node, orphaned_end_message(node.tag_name), added)

    if added:
        logger.info(f"Validation flagged {len(added)} additional block problem(s)")
    return added

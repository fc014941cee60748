"""Summaries of an annotated tree: counts, constructs, blocks and diagnostics."""

from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .nodes import (DocNode, LiquidExpressionNode, LiquidNode, LiquidTagNode,
                    iter_nodes)


class DiagnosticRecord(BaseModel):
    node_type: str = Field(description="liquid_expression, liquid_tag or liquid_block")
    content: str = Field(description="Raw source of the construct")
    message: str
    tag_name: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    offset: Optional[int] = None

    def location(self) -> str:
        if self.line is None:
            return "?"
        return f"{self.line}:{self.column}"


class BlockSummary(BaseModel):
    id: str
    type: str
    start: str
    continuations: List[str] = Field(default_factory=list)
    end: Optional[str] = None
    line: Optional[int] = None

    @property
    def closed(self) -> bool:
        return self.end is not None


class DocumentSummary(BaseModel):
    total_nodes: int = 0
    node_types: Dict[str, int] = Field(default_factory=dict)
    expressions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    blocks: List[BlockSummary] = Field(default_factory=list)
    diagnostics: List[DiagnosticRecord] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


def _diagnostic(node: LiquidNode) -> DiagnosticRecord:
    return DiagnosticRecord(
        node_type=node.type,
        content=node.raw_content,
        message=node.parse_error or "",
        tag_name=getattr(node, "tag_name", None),
        line=node.line,
        column=node.column,
        offset=node.offset,
    )


def collect_blocks(tag_nodes: List[LiquidTagNode]) -> List[BlockSummary]:
    """Group associated tags by block id, in order of their start tags."""
    by_id: Dict[str, Dict] = {}
    for node in tag_nodes:
        if node.block_id is None:
            continue
        entry = by_id.setdefault(node.block_id, {"start": None, "continuations": [], "end": None})
        if node.is_block_start:
            entry["start"] = node
        elif node.is_block_end:
            entry["end"] = node
        elif node.is_continuation:
            entry["continuations"].append(node)

    blocks = []
    for block_id, entry in by_id.items():
        start = entry["start"]
        if start is None:
            continue
        blocks.append(
            BlockSummary(
                id=block_id,
                type=start.tag_name,
                start=start.raw_content,
                continuations=[n.raw_content for n in entry["continuations"]],
                end=entry["end"].raw_content if entry["end"] is not None else None,
                line=start.line,
            )
        )
    return blocks


def summarize_tree(tree: DocNode) -> DocumentSummary:
    """Build a JSON-serialisable summary of an annotated tree."""
    node_types: Counter = Counter()
    expressions: List[str] = []
    tags: List[LiquidTagNode] = []
    diagnostics: List[DiagnosticRecord] = []

    for node in iter_nodes(tree):
        node_types[node.type] += 1
        if isinstance(node, LiquidExpressionNode):
            expressions.append(node.inner_content or node.raw_content)
        elif isinstance(node, LiquidTagNode):
            tags.append(node)
        # block spans mirror their tags, so only leaf constructs are reported
        if isinstance(node, (LiquidExpressionNode, LiquidTagNode)) and node.parse_error:
            diagnostics.append(_diagnostic(node))

    return DocumentSummary(
        total_nodes=sum(node_types.values()),
        node_types=dict(node_types),
        expressions=expressions,
        tags=[n.inner_content or n.raw_content for n in tags],
        blocks=collect_blocks(tags),
        diagnostics=diagnostics,
    )

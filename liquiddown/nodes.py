"""Tree node types: the host Markdown tree and the Liquid nodes spliced into it.

The host tree is a plain ordered tree of ``DocNode`` objects (``type`` +
``children``), in the spirit of mdast/unist. The engine only ever replaces
``text`` leaves with sequences of text, expression, tag and block nodes.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

TEXT = "text"
LIQUID_EXPRESSION = "liquid_expression"
LIQUID_TAG = "liquid_tag"
LIQUID_BLOCK = "liquid_block"

UNKNOWN_TAG = "unknown"


@dataclass(frozen=True)
class Point:
    line: int
    column: int
    offset: int


@dataclass(frozen=True)
class Position:
    start: Point
    end: Point


class ParseOutcome(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Diagnostic:
    """Stored as a node's parsed representation when parsing failed."""

    kind: str
    content: str
    error: str
    tag_name: Optional[str] = None


@dataclass(eq=False, repr=False)
class DocNode:
    type: str
    children: List["DocNode"] = field(default_factory=list)
    value: Optional[str] = None
    position: Optional[Position] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self):
        if self.value is not None:
            preview = self.value if len(self.value) <= 30 else self.value[:27] + "..."
            return f"{type(self).__name__}({self.type!r}, {preview!r})"
        return f"{type(self).__name__}({self.type!r}, children={len(self.children)})"

    @property
    def line(self) -> Optional[int]:
        return self.position.start.line if self.position else None

    @property
    def column(self) -> Optional[int]:
        return self.position.start.column if self.position else None

    @property
    def offset(self) -> Optional[int]:
        return self.position.start.offset if self.position else None


def text_node(value: str, position: Optional[Position] = None) -> DocNode:
    return DocNode(type=TEXT, value=value, position=position)


@dataclass(eq=False, repr=False)
class LiquidNode(DocNode):
    """Fields shared by every embedded construct (expression, tag, block)."""

    raw_content: str = ""
    original_content: Optional[str] = None
    inner_content: Optional[str] = None
    parse_outcome: ParseOutcome = ParseOutcome.PENDING
    parse_error: Optional[str] = None
    parsed: Any = None
    block_id: Optional[str] = None
    matching_block_id: Optional[str] = None
    related_nodes: List["LiquidNode"] = field(default_factory=list)

    def __post_init__(self):
        # the literal text of a construct is its raw source, so joining the
        # ``value`` of all leaves reproduces the document
        if self.value is None:
            self.value = self.raw_content

    @property
    def parse_success(self) -> Optional[bool]:
        if self.parse_outcome is ParseOutcome.PENDING:
            return None
        return self.parse_outcome is ParseOutcome.SUCCESS

    def mark_success(self, parsed: Any = None) -> None:
        self.parse_outcome = ParseOutcome.SUCCESS
        self.parse_error = None
        self.parsed = parsed

    def mark_failed(self, message: str, kind: str) -> None:
        self.parse_outcome = ParseOutcome.FAILED
        self.parse_error = message
        self.parsed = Diagnostic(
            kind=kind,
            content=self.inner_content if self.inner_content is not None else self.raw_content,
            error=message,
            tag_name=getattr(self, "tag_name", None),
        )

    def reset_association(self) -> None:
        self.parse_outcome = ParseOutcome.PENDING
        self.parse_error = None
        self.parsed = None
        self.block_id = None
        self.matching_block_id = None
        self.related_nodes = []


@dataclass(eq=False, repr=False)
class LiquidExpressionNode(LiquidNode):
    type: str = LIQUID_EXPRESSION


@dataclass(eq=False, repr=False)
class LiquidTagNode(LiquidNode):
    type: str = LIQUID_TAG
    tag_name: str = UNKNOWN_TAG
    is_block_start: bool = False
    is_block_end: bool = False
    is_continuation: bool = False

    @property
    def has_block_role(self) -> bool:
        return self.is_block_start or self.is_block_end or self.is_continuation


@dataclass(eq=False, repr=False)
class LiquidBlockNode(LiquidNode):
    """A whole ``{% x %}...{% endx %}`` span found by the splitter.

    ``children`` hold the opening tag, the body text and the closing tag so
    that nested constructs in the body are still reached by tree walks.
    """

    type: str = LIQUID_BLOCK
    tag_name: str = UNKNOWN_TAG

    @property
    def opening_tag(self) -> Optional[LiquidTagNode]:
        if self.children and isinstance(self.children[0], LiquidTagNode):
            return self.children[0]
        return None

    @property
    def closing_tag(self) -> Optional[LiquidTagNode]:
        if len(self.children) > 1 and isinstance(self.children[-1], LiquidTagNode):
            return self.children[-1]
        return None


def iter_nodes(tree: DocNode) -> Iterator[DocNode]:
    """Yield every node of the tree in document (pre-)order."""
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        children = getattr(node, "children", None) or []
        stack.extend(reversed(children))


def collect_liquid_nodes(tree: DocNode) -> List[LiquidNode]:
    return [n for n in iter_nodes(tree) if isinstance(n, LiquidNode)]


def leaf_text(tree: DocNode) -> str:
    """Concatenate the literal text of the tree's leaves, in order.

    Block nodes count once, via their children.
    """
    parts = []
    for node in iter_nodes(tree):
        if not node.children and node.value is not None:
            parts.append(node.value)
    return "".join(parts)

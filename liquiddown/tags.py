"""Tag classification: names and roles of Liquid tags.

Roles are a pure function of the tag name and the tables below. A tag is at
most one of block-start, block-end or continuation; a tag that is none of them
is standalone (``assign``, ``include``, ...).
"""

import enum
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

from decouple import Csv
from decouple import config as env_config

from .nodes import UNKNOWN_TAG

# Tags that open a block and need a matching end<name> tag.
BLOCK_TAGS = frozenset({
    "if", "unless", "for", "case", "capture", "tablerow", "raw", "comment",
    "block", "paginate", "schema", "style", "form", "javascript", "stylesheet",
})

# Tags that sit inside an open block without opening or closing it.
CONTINUATION_TAGS = frozenset({"else", "elsif", "elseif", "when", "empty"})

# Block tags whose body is literal text, never split into constructs.
VERBATIM_TAGS = frozenset({"raw", "comment"})

# The only block type each continuation tag may join.
CONTINUATION_PARENTS = {
    "else": "if",
    "elsif": "if",
    "elseif": "if",
    "when": "case",
    "empty": "for",
}

END_PREFIX = "end"

_TAG_NAME = re.compile(r"^-?\s*(\w+)")


class TagRole(enum.Enum):
    BLOCK_START = "block_start"
    BLOCK_END = "block_end"
    CONTINUATION = "continuation"
    STANDALONE = "standalone"


@dataclass(frozen=True, eq=False)
class TagTables:
    """The static name tables the classifier consults."""

    block_tags: FrozenSet[str] = BLOCK_TAGS
    continuation_tags: FrozenSet[str] = CONTINUATION_TAGS
    verbatim_tags: FrozenSet[str] = VERBATIM_TAGS
    continuation_parents: Dict[str, str] = field(
        default_factory=lambda: dict(CONTINUATION_PARENTS)
    )

    def __post_init__(self):
        bad = sorted(t for t in self.block_tags if t.startswith(END_PREFIX))
        if bad:
            raise ValueError(f"Block tag names may not start with 'end': {', '.join(bad)}")
        overlap = sorted(self.block_tags & self.continuation_tags)
        if overlap:
            raise ValueError(
                f"Tags cannot be both block and continuation tags: {', '.join(overlap)}"
            )

    def with_block_tags(self, extra: Iterable[str]) -> "TagTables":
        extra = {t.strip() for t in extra if t and t.strip()}
        if not extra:
            return self
        return TagTables(
            block_tags=self.block_tags | extra,
            continuation_tags=self.continuation_tags,
            verbatim_tags=self.verbatim_tags,
            continuation_parents=dict(self.continuation_parents),
        )


DEFAULT_TABLES = TagTables().with_block_tags(
    env_config("LIQUIDDOWN_EXTRA_BLOCK_TAGS", default="", cast=Csv())
)


def extract_tag_name(content: Optional[str]) -> str:
    """First word of a tag's inner content, or ``"unknown"``."""
    if not content:
        return UNKNOWN_TAG
    match = _TAG_NAME.match(content.strip())
    return match.group(1) if match else UNKNOWN_TAG


def is_block_start(name: str, tables: TagTables = DEFAULT_TABLES) -> bool:
    return name in tables.block_tags


def is_block_end(name: str, tables: TagTables = DEFAULT_TABLES) -> bool:
    return name.startswith(END_PREFIX) and name[len(END_PREFIX):] in tables.block_tags


def is_continuation(name: str, tables: TagTables = DEFAULT_TABLES) -> bool:
    return name in tables.continuation_tags


def block_type_of_end(name: str) -> str:
    """``endif`` -> ``if``."""
    return name[len(END_PREFIX):] if name.startswith(END_PREFIX) else name


def compatible_block_type(name: str, tables: TagTables = DEFAULT_TABLES) -> Optional[str]:
    return tables.continuation_parents.get(name)


def classify(name: str, tables: TagTables = DEFAULT_TABLES) -> TagRole:
    if is_block_start(name, tables):
        return TagRole.BLOCK_START
    if is_block_end(name, tables):
        return TagRole.BLOCK_END
    if is_continuation(name, tables):
        return TagRole.CONTINUATION
    return TagRole.STANDALONE

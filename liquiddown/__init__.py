"""liquiddown -- finds and structures Liquid constructs in Markdown."""

import logging

# Version - reads from package metadata (set in pyproject.toml)
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("liquiddown")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

logger = logging.getLogger(__name__)

from .associator import (AssociationResult, BlockIdFactory,
                         associate_block_tags, validate_block_structure)
from .errors import DocumentTreeError, LiquiddownError
from .jinja_utils import (LiquidTagsExtension, SilentUndefined,
                          get_liquid_environment, translate_filter_arguments)
from .markdown import parse_markdown
from .nodes import (Diagnostic, DocNode, LiquidBlockNode, LiquidExpressionNode,
                    LiquidNode, LiquidTagNode, ParseOutcome, Point, Position,
                    collect_liquid_nodes, iter_nodes, leaf_text)
from .pipeline import (parse_markdown_liquid, parse_markdown_liquid_async,
                       process_liquid_nodes)
from .processors import process_block, process_expression, process_tag
from .splitter import segment_tree, split_text
from .summary import (BlockSummary, DiagnosticRecord, DocumentSummary,
                      summarize_tree)
from .tags import (BLOCK_TAGS, CONTINUATION_TAGS, DEFAULT_TABLES, TagRole,
                   TagTables, classify, extract_tag_name, is_block_end,
                   is_block_start, is_continuation)

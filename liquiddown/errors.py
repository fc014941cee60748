"""Exception classes for liquiddown."""

from typing import Any, Optional


class LiquiddownError(Exception):
    """Base class for errors raised by liquiddown itself."""


class DocumentTreeError(LiquiddownError):
    """Raised when the engine is handed something that is not a usable tree.

    Malformed Liquid markup never raises; it is recorded on the offending
    node. This error signals a caller bug (e.g. passing ``None`` as the root).
    """

    def __init__(self, message: str, tree: Optional[Any] = None):
        self.tree = tree
        super().__init__(message)

    def __str__(self):
        parts = [f"Error: {self.args[0]}"]
        if self.tree is not None:
            parts.append(f"  Received: {type(self.tree).__name__}")
        return "\n".join(parts)

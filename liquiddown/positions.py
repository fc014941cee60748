"""Offset to line/column conversion for source positions."""

from bisect import bisect_right
from typing import List, Tuple

from .nodes import Point, Position


class SourceIndex:
    """Maps 0-based character offsets in a source string to unist-style points.

    Lines and columns are 1-based; offsets are 0-based.
    """

    __slots__ = ("source", "_line_starts")

    def __init__(self, source: str):
        self.source = source
        starts: List[int] = [0]
        for i, ch in enumerate(source):
            if ch == "\n":
                starts.append(i + 1)
        self._line_starts = starts

    def __len__(self) -> int:
        return len(self.source)

    def point(self, offset: int) -> Point:
        offset = max(0, min(offset, len(self.source)))
        line_idx = bisect_right(self._line_starts, offset) - 1
        return Point(
            line=line_idx + 1,
            column=offset - self._line_starts[line_idx] + 1,
            offset=offset,
        )

    def position(self, start: int, end: int) -> Position:
        return Position(start=self.point(start), end=self.point(end))

    def line_offset(self, line_idx: int) -> int:
        """Offset of the start of a 0-based line index (clamped to the source)."""
        if line_idx >= len(self._line_starts):
            return len(self.source)
        return self._line_starts[max(0, line_idx)]


# data key under which a text leaf carries its OffsetMap
OFFSETS = "offsets"


class OffsetMap:
    """Maps indexes into a text leaf back to offsets in the source.

    A leaf copied from the source verbatim has one segment. Markdown strips
    the indentation of continuation lines, so such a leaf has one segment per
    line.
    """

    __slots__ = ("_local", "_source")

    def __init__(self, segments: List[Tuple[int, int]]):
        self._local = [local for local, _ in segments]
        self._source = [source for _, source in segments]

    @classmethod
    def contiguous(cls, offset: int) -> "OffsetMap":
        return cls([(0, offset)])

    @property
    def is_contiguous(self) -> bool:
        return len(self._local) == 1

    def __call__(self, index: int) -> int:
        i = max(0, bisect_right(self._local, index) - 1)
        return self._source[i] + index - self._local[i]

    def span(self, start: int, end: int) -> Tuple[int, int]:
        """Source offsets of ``text[start:end]``; the end stays on its own line."""
        if end <= start:
            return self(start), self(start)
        return self(start), self(end - 1) + 1

    def shifted(self, start: int) -> "OffsetMap":
        """Map for the text that begins at ``start``."""
        segments = [(0, self(start))]
        segments += [
            (local - start, source)
            for local, source in zip(self._local, self._source)
            if local > start
        ]
        return OffsetMap(segments)

"""Map byte offsets inside a frontmatter body to document positions."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True)
class SourcePosition:
    """A location in the original document.

    ``line`` and ``column`` are 1-based; ``column`` counts code points,
    ``offset`` is the absolute byte offset.
    """

    line: int
    column: int
    offset: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "line": self.line,
            "column": self.column,
            "offset": self.offset,
        }


class PositionTracker:
    """Resolves body-relative byte offsets against the whole document.

    One tracker is built per decode; it holds no shared state.
    """

    def __init__(self, text: str, body_offset: int = 0) -> None:
        self._data = text.encode("utf-8")
        self._body_offset = body_offset
        self._line_starts = [0]
        for i, byte in enumerate(self._data):
            if byte == 0x0A:
                self._line_starts.append(i + 1)

    @property
    def body_offset(self) -> int:
        return self._body_offset

    def position(self, local_offset: int) -> SourcePosition:
        """Position of a byte offset relative to the body start."""
        return self.absolute_position(self._body_offset + local_offset)

    def body_start(self) -> SourcePosition:
        return self.absolute_position(self._body_offset)

    def absolute_position(self, offset: int) -> SourcePosition:
        last = max(len(self._data) - 1, 0)
        offset = min(max(offset, 0), last)

        line_idx = bisect_right(self._line_starts, offset) - 1
        line_start = self._line_starts[line_idx]
        prefix = self._data[line_start:offset].decode(
            "utf-8", errors="ignore"
        )
        return SourcePosition(
            line=line_idx + 1,
            column=len(prefix) + 1,
            offset=offset,
        )

    def snippet(self, offset: int, context: int) -> str:
        """Text around an absolute byte offset, newlines escaped."""
        start = max(offset - context, 0)
        end = min(offset + context, len(self._data))
        text = self._data[start:end].decode("utf-8", errors="ignore")
        return text.replace("\n", "\\n")


def char_to_byte_offset(text: str, index: int) -> int:
    """Byte length of ``text[:index]`` in UTF-8."""
    return len(text[:index].encode("utf-8"))

"""Locate the leading ``---`` fenced metadata block of a document.

Grammar: the document starts with a line that is exactly ``---``
(optionally after a UTF-8 BOM). The body runs up to, but not including,
the next line that is exactly ``---``. Lines end in ``\\n`` or ``\\r\\n``.
"""

from __future__ import annotations

from dataclasses import dataclass

from docdoctor.constants import BOM, FENCE
from docdoctor.errors import UnterminatedFrontmatterError
from docdoctor.parser.position import SourcePosition, char_to_byte_offset


@dataclass(frozen=True)
class FrontmatterSpan:
    """Metadata body plus its location in the document.

    ``start_offset``/``end_offset`` are absolute byte offsets of the body.
    ``body_start``/``body_end`` are the matching ``str`` indices and
    ``fence_end`` is the index just past the closing fence line, so
    ``text[fence_end:]`` is the document content.
    """

    body: str
    start_offset: int
    end_offset: int
    body_start: int
    body_end: int
    fence_end: int
    newline: str = "\n"


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line endings."""
    if not text:
        return []
    lines = text.split("\n")
    out = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        out.append(lines[-1])
    return out


def line_content(line: str) -> str:
    """Strip one trailing ``\\n`` or ``\\r\\n``."""
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def has_opening_fence(text: str) -> bool:
    start = len(BOM) if text.startswith(BOM) else 0
    first = text[start:].split("\n", 1)[0]
    return first.removesuffix("\r") == FENCE


def extract_frontmatter(text: str) -> FrontmatterSpan | None:
    """Return the frontmatter span, or ``None`` if there is no opening fence.

    Raises ``UnterminatedFrontmatterError`` when the opening fence is
    never closed.
    """
    if not has_opening_fence(text):
        return None

    start = len(BOM) if text.startswith(BOM) else 0
    lines = split_lines(text[start:])
    opening = lines[0]
    newline = line_ending(opening) or "\n"
    if not line_ending(opening):
        raise UnterminatedFrontmatterError(
            "Frontmatter opening fence is never closed",
            position=SourcePosition(line=1, column=1, offset=0),
        )

    body_start = start + len(opening)
    cursor = body_start
    for line in lines[1:]:
        if line_content(line) == FENCE:
            body = text[body_start:cursor]
            return FrontmatterSpan(
                body=body,
                start_offset=char_to_byte_offset(text, body_start),
                end_offset=char_to_byte_offset(text, cursor),
                body_start=body_start,
                body_end=cursor,
                fence_end=cursor + len(line),
                newline=newline,
            )
        cursor += len(line)

    raise UnterminatedFrontmatterError(
        "Frontmatter opening fence is never closed",
        position=SourcePosition(line=1, column=1, offset=0),
        suggestion="Add a closing '---' line after the metadata",
    )


def document_body(text: str) -> tuple[str, int]:
    """Content after the metadata block and its ``str`` index."""
    span = extract_frontmatter(text)
    if span is None:
        start = len(BOM) if text.startswith(BOM) else 0
        return text[start:], start
    return text[span.fence_end:], span.fence_end

"""Line-surgical rewriting of the metadata block.

Only the lines that belong to the edited stub change. Everything else in
the metadata (unknown keys, comments, key order) and all content after the
closing fence is copied through untouched.
"""

from __future__ import annotations

import logging

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from docdoctor.constants import BOM, FENCE
from docdoctor.models import Stub
from docdoctor.parser.decoder import MetadataDecoder, compose_body
from docdoctor.parser.frontmatter import (
    FrontmatterSpan,
    extract_frontmatter,
    line_content,
    line_ending,
    split_lines,
)

logger = logging.getLogger(__name__)

DEFAULT_INDENT = 2


def render_stub(stub: Stub, indent: int, newline: str = "\n") -> list[str]:
    """Render one stub as a block sequence item in canonical form."""
    dumped = yaml.safe_dump(
        stub.to_dict(),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )
    pad = " " * indent
    lines = dumped.splitlines()
    out = [f"{pad}- {lines[0]}{newline}"]
    for line in lines[1:]:
        out.append(f"{pad}  {line}{newline}" if line else newline)
    return out


def last_line(node: Node) -> int:
    """Zero-based index of the last body line a node occupies."""
    if isinstance(node, MappingNode) and not node.flow_style and node.value:
        return max(
            max(last_line(k), last_line(v)) for k, v in node.value
        )
    if isinstance(node, SequenceNode) and not node.flow_style and node.value:
        return max(last_line(item) for item in node.value)
    end = node.end_mark
    if end.column == 0 and end.line > node.start_mark.line:
        return end.line - 1
    return end.line


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


class _Layout:
    """Where the ``stubs`` entry sits inside a metadata body."""

    def __init__(self, body: str) -> None:
        self.lines = split_lines(body)
        self.root = compose_body(body) if body.strip() else None
        self.key: Node | None = None
        self.value: Node | None = None
        if isinstance(self.root, MappingNode):
            for key_node, value_node in self.root.value:
                if (
                    isinstance(key_node, ScalarNode)
                    and key_node.value == "stubs"
                ):
                    self.key, self.value = key_node, value_node
                    break

    @property
    def is_block_list(self) -> bool:
        return (
            isinstance(self.value, SequenceNode)
            and not self.value.flow_style
            and bool(self.value.value)
        )

    def items(self) -> list[Node]:
        if isinstance(self.value, SequenceNode):
            return list(self.value.value)
        return []

    def item_range(self, item: Node) -> tuple[int, int]:
        """Half-open line range ``[start, end)`` of a sequence item."""
        start = item.start_mark.line
        while start > 0 and not line_content(
            self.lines[start]
        ).lstrip().startswith("-"):
            start -= 1
        return start, last_line(item) + 1

    def dash_indent(self) -> int:
        start, _ = self.item_range(self.items()[0])
        return _indent_of(self.lines[start])

    def key_indent(self) -> int:
        return 0 if self.key is None else self.key.start_mark.column

    def entry_range(self) -> tuple[int, int]:
        """Lines of the whole ``stubs`` entry; empty at the end if absent."""
        if self.key is None or self.value is None:
            return len(self.lines), len(self.lines)
        start = self.key.start_mark.line
        return start, max(start, last_line(self.value)) + 1


class MetadataWriter:
    """Applies stub edits to document text."""

    def reemit(self, text: str) -> str:
        """Re-serialize with no changes.

        The single normalization is trailing whitespace stripped from
        metadata lines.
        """
        span = extract_frontmatter(text)
        if span is None:
            return text
        lines = [
            line_content(line).rstrip(" \t") + line_ending(line)
            for line in split_lines(span.body)
        ]
        return text[: span.body_start] + "".join(lines) + text[span.body_end :]

    def append_stub(self, text: str, stub: Stub) -> str:
        span = extract_frontmatter(text)
        if span is None:
            newline = "\r\n" if "\r\n" in text else "\n"
            block = [f"{FENCE}{newline}", f"stubs:{newline}"]
            block += render_stub(stub, DEFAULT_INDENT, newline)
            block.append(f"{FENCE}{newline}")
            logger.debug("Created frontmatter block for new stub")
            bom = BOM if text.startswith(BOM) else ""
            return bom + "".join(block) + text[len(bom) :]

        layout = _Layout(span.body)
        lines = list(layout.lines)
        nl = span.newline

        if layout.is_block_list:
            _, end = layout.item_range(layout.items()[-1])
            lines[end:end] = render_stub(stub, layout.dash_indent(), nl)
        elif layout.key is not None:
            existing = self._flow_items(layout)
            start, end = layout.entry_range()
            lines[start:end] = self._render_block(
                layout.key_indent(), existing + [stub], nl
            )
        else:
            if lines and not line_ending(lines[-1]):
                lines[-1] += nl
            lines += self._render_block(0, [stub], nl)

        return self._splice(text, span.body_start, span.body_end, lines)

    def replace_stub(self, text: str, index: int, stub: Stub) -> str:
        span, layout = self._require_stubs(text, index)
        lines = list(layout.lines)
        nl = span.newline

        if layout.is_block_list:
            start, end = layout.item_range(layout.items()[index])
            lines[start:end] = render_stub(
                stub, _indent_of(lines[start]), nl
            )
        else:
            stubs = self._flow_items(layout)
            stubs[index] = stub
            start, end = layout.entry_range()
            lines[start:end] = self._render_block(
                layout.key_indent(), stubs, nl
            )
        return self._splice(text, span.body_start, span.body_end, lines)

    def remove_stub(self, text: str, index: int) -> str:
        span, layout = self._require_stubs(text, index)
        lines = list(layout.lines)
        nl = span.newline

        if layout.is_block_list and len(layout.items()) > 1:
            start, end = layout.item_range(layout.items()[index])
            del lines[start:end]
        else:
            stubs = self._flow_items(layout)
            del stubs[index]
            start, end = layout.entry_range()
            lines[start:end] = self._render_block(
                layout.key_indent(), stubs, nl
            )
        return self._splice(text, span.body_start, span.body_end, lines)

    # ── internals ────────────────────────────────────────

    def _require_stubs(
        self, text: str, index: int
    ) -> tuple[FrontmatterSpan, _Layout]:
        span = extract_frontmatter(text)
        if span is None:
            msg = "Document has no frontmatter"
            raise IndexError(msg)
        layout = _Layout(span.body)
        if not isinstance(layout.value, SequenceNode) or not (
            0 <= index < len(layout.value.value)
        ):
            msg = f"Stub index {index} out of range"
            raise IndexError(msg)
        return span, layout

    @staticmethod
    def _flow_items(layout: _Layout) -> list[Stub]:
        """Decode the current stubs so a whole entry can be re-rendered."""
        body = "".join(layout.lines)
        properties = MetadataDecoder().parse(f"{FENCE}\n{body}{FENCE}\n")
        return list(properties.stubs)

    @staticmethod
    def _render_block(
        key_indent: int, stubs: list[Stub], newline: str
    ) -> list[str]:
        pad = " " * key_indent
        if not stubs:
            return [f"{pad}stubs: []{newline}"]
        out = [f"{pad}stubs:{newline}"]
        for stub in stubs:
            out += render_stub(stub, key_indent + DEFAULT_INDENT, newline)
        return out

    @staticmethod
    def _splice(text: str, start: int, end: int, lines: list[str]) -> str:
        logger.debug("Rewrote metadata block (%d lines)", len(lines))
        return text[:start] + "".join(lines) + text[end:]

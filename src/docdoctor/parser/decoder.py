"""Decode frontmatter into ``L1Properties`` under a strict grammar.

The body is composed into a YAML node graph (``yaml.compose``) rather than
loaded directly, so every field keeps its source mark and errors can point
at the offending key or stub.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any, TypeVar

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from docdoctor.constants import (
    KNOWN_FIELDS,
    KNOWN_STUB_FIELDS,
    LEGACY_STUB_FIELDS,
    SNIPPET_CONTEXT_CHARS,
    STUB_ORIGIN_ALIASES,
    Audience,
    Form,
    Origin,
    Priority,
    StubForm,
    StubOrigin,
    StubType,
    SyncStatus,
    parse_enum,
)
from docdoctor.errors import ParseError
from docdoctor.models import L1Properties, Refinement, Stub
from docdoctor.parser.frontmatter import FrontmatterSpan, extract_frontmatter
from docdoctor.parser.position import (
    PositionTracker,
    SourcePosition,
    char_to_byte_offset,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)


@dataclass(frozen=True)
class DecodeWarning:
    """Non-fatal finding raised while decoding."""

    message: str
    field: str | None = None
    position: SourcePosition | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class DecodedDocument:
    properties: L1Properties
    span: FrontmatterSpan | None
    warnings: tuple[DecodeWarning, ...] = ()
    # Top-level keys as written, in document order.
    fields: tuple[str, ...] = ()


def compose_body(body: str) -> Node | None:
    """Compose a metadata body; ``None`` when it holds no document."""
    try:
        return yaml.compose(body, Loader=yaml.SafeLoader)
    except RecursionError as e:
        raise yaml.YAMLError("Frontmatter nests too deeply") from e


def mark_index(error: yaml.YAMLError) -> int | None:
    """Character index of a YAML error, if the error carries one."""
    mark = getattr(error, "problem_mark", None) or getattr(
        error, "context_mark", None
    )
    if mark is not None:
        return mark.index
    position = getattr(error, "position", None)
    return position if isinstance(position, int) else None


def suggest_field(name: str, known: frozenset[str]) -> str | None:
    matches = difflib.get_close_matches(name, sorted(known), n=1)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


class MetadataDecoder:
    """Strict frontmatter decoder.

    In strict mode unknown keys still land in ``extras`` but also produce
    a warning with a close-match suggestion.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict

    def parse(self, text: str) -> L1Properties:
        return self.decode(text).properties

    def decode(self, text: str) -> DecodedDocument:
        span = extract_frontmatter(text)
        if span is None or not span.body.strip():
            return DecodedDocument(properties=L1Properties(), span=span)

        tracker = PositionTracker(text, span.start_offset)
        try:
            root = compose_body(span.body)
        except yaml.YAMLError as e:
            raise self._syntax_error(e, span.body, tracker) from e

        if root is None:
            return DecodedDocument(properties=L1Properties(), span=span)

        session = _DecodeSession(span.body, tracker, strict=self.strict)
        try:
            properties = session.decode_root(root)
        finally:
            session.close()
        logger.debug(
            "Decoded frontmatter: %d stubs, %d extras, %d warnings",
            len(properties.stubs),
            len(properties.extras),
            len(session.warnings),
        )
        return DecodedDocument(
            properties=properties,
            span=span,
            warnings=tuple(session.warnings),
            fields=tuple(session.fields),
        )

    @staticmethod
    def _syntax_error(
        error: yaml.YAMLError, body: str, tracker: PositionTracker
    ) -> ParseError:
        index = mark_index(error)
        position: SourcePosition | None = None
        snippet: str | None = None
        if index is not None:
            position = tracker.position(char_to_byte_offset(body, index))
            snippet = tracker.snippet(position.offset, SNIPPET_CONTEXT_CHARS)
        problem = getattr(error, "problem", None) or str(error)
        return ParseError(
            f"Invalid YAML in frontmatter: {problem}",
            position=position,
            suggestion="Check YAML syntax (indentation, colons, quotes)",
            snippet=snippet,
        )


def decode_document(text: str, *, strict: bool = False) -> DecodedDocument:
    return MetadataDecoder(strict=strict).decode(text)


def parse_document(text: str, *, strict: bool = False) -> L1Properties:
    return MetadataDecoder(strict=strict).parse(text)


class _DecodeSession:
    """State for decoding one document; discarded afterwards."""

    def __init__(
        self, body: str, tracker: PositionTracker, *, strict: bool
    ) -> None:
        self._body = body
        self._tracker = tracker
        self._strict = strict
        self._loader = yaml.SafeLoader("")
        self.warnings: list[DecodeWarning] = []
        self.fields: list[str] = []

    def close(self) -> None:
        self._loader.dispose()

    # ── helpers ──────────────────────────────────────────

    def position(self, node: Node) -> SourcePosition:
        offset = char_to_byte_offset(self._body, node.start_mark.index)
        return self._tracker.position(offset)

    def error(
        self,
        message: str,
        node: Node,
        field: str | None = None,
        suggestion: str | None = None,
    ) -> ParseError:
        return ParseError(
            message,
            position=self.position(node),
            field=field,
            suggestion=suggestion,
        )

    def construct(self, node: Node) -> Any:
        try:
            return self._loader.construct_object(node, deep=True)
        except yaml.YAMLError as e:
            raise self.error(f"Invalid value: {e}", node) from e

    def pairs(
        self, node: MappingNode, where: str | None
    ) -> dict[str, tuple[Node, Node]]:
        """Mapping entries keyed by name; rejects duplicates."""
        out: dict[str, tuple[Node, Node]] = {}
        for key_node, value_node in node.value:
            if not isinstance(key_node, ScalarNode):
                raise self.error("Metadata keys must be scalars", key_node)
            key = str(key_node.value)
            field = f"{where}.{key}" if where else key
            if key in out:
                raise self.error(
                    f"Duplicate field '{key}'", key_node, field=field
                )
            out[key] = (key_node, value_node)
        return out

    def scalar(self, node: Node, field: str) -> Any:
        if not isinstance(node, ScalarNode):
            raise self.error(
                f"Field '{field}' must be a single value", node, field=field
            )
        return self.construct(node)

    def text(self, node: Node, field: str) -> str | None:
        value = self.scalar(node, field)
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            raise self.error(
                f"Field '{field}' must be text", node, field=field
            )
        return str(value)

    def choice(
        self,
        enum_cls: type[E],
        node: Node,
        field: str,
        aliases: dict[str, E] | None = None,
    ) -> E | None:
        value = self.scalar(node, field)
        if value is None:
            return None
        try:
            return parse_enum(enum_cls, value, aliases)
        except ValueError as e:
            raise self.error(
                f"Invalid {field.rsplit('.', 1)[-1]}: {e}",
                node,
                field=field,
            ) from e

    def string_list(self, node: Node, field: str) -> tuple[str, ...]:
        if isinstance(node, ScalarNode):
            value = self.construct(node)
            return () if value is None else (str(value),)
        if not isinstance(node, SequenceNode):
            raise self.error(
                f"Field '{field}' must be a list", node, field=field
            )
        items: list[str] = []
        for item in node.value:
            value = self.scalar(item, field)
            if value is not None:
                items.append(str(value))
        return tuple(items)

    def timestamp(
        self, node: Node, field: str
    ) -> date | datetime | None:
        value = self.scalar(node, field)
        if value is None or isinstance(value, (date, datetime)):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError:
                pass
        raise self.error(
            f"Field '{field}' must be an ISO-8601 date",
            node,
            field=field,
        )

    def unknown(
        self,
        key: str,
        key_node: Node,
        known: frozenset[str],
        field: str,
    ) -> None:
        if self._strict:
            self.warnings.append(
                DecodeWarning(
                    message=f"Unknown field: {field}",
                    field=field,
                    position=self.position(key_node),
                    suggestion=suggest_field(key, known),
                )
            )

    # ── document ─────────────────────────────────────────

    def decode_root(self, root: Node) -> L1Properties:
        if not isinstance(root, MappingNode):
            raise self.error(
                "Frontmatter must be a mapping of fields", root
            )

        values: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, (key_node, node) in self.pairs(root, None).items():
            self.fields.append(key)
            if key not in KNOWN_FIELDS:
                self.unknown(key, key_node, KNOWN_FIELDS, key)
                extras[key] = self.construct(node)
                continue
            values[key] = self._decode_field(key, key_node, node)

        return L1Properties(
            **{k: v for k, v in values.items() if v is not None},
            extras=extras,
        )

    def _decode_field(self, key: str, key_node: Node, node: Node) -> Any:
        match key:
            case "title" | "uid":
                return self.text(node, key)
            case "refinement":
                return self._refinement(key_node, node)
            case "audience":
                return self.choice(Audience, node, key)
            case "form":
                return self.choice(Form, node, key)
            case "origin":
                return self.choice(Origin, node, key)
            case "tags" | "aliases":
                return self.string_list(node, key)
            case "created" | "modified":
                return self.timestamp(node, key)
            case "stubs":
                return self._stubs(node)
        return None

    def _refinement(
        self, key_node: Node, node: Node
    ) -> Refinement | None:
        value = self.scalar(node, "refinement")
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.error(
                f"Refinement must be a number, got {value!r}",
                node,
                field="refinement",
            )
        try:
            return Refinement(value)
        except ValueError as e:
            raise self.error(
                str(e),
                key_node,
                field="refinement",
                suggestion="Use a value between 0.0 and 1.0",
            ) from e

    # ── stubs ────────────────────────────────────────────

    def _stubs(self, node: Node) -> tuple[Stub, ...]:
        if isinstance(node, ScalarNode) and self.construct(node) is None:
            return ()
        if not isinstance(node, SequenceNode):
            raise self.error(
                "Field 'stubs' must be a list", node, field="stubs"
            )
        return tuple(
            self._stub(item, i) for i, item in enumerate(node.value)
        )

    def _stub(self, node: Node, index: int) -> Stub:
        where = f"stubs[{index}]"
        if not isinstance(node, MappingNode) or not node.value:
            raise self.error(
                f"Stub at {where} must be a mapping", node, field=where
            )
        entries = self.pairs(node, where)
        self._reject_spelled_twice(entries, where)

        if "stub_type" in entries:
            type_node = entries.pop("stub_type")[1]
            return self._stub_fields(
                self._stub_type(type_node, node, where),
                entries,
                node,
                where,
            )
        if "type" in entries:
            type_node = entries.pop("type")[1]
            return self._stub_fields(
                self._stub_type(type_node, node, where),
                entries,
                node,
                where,
            )
        if len(entries) == 1:
            return self._compact_stub(entries, node, where)

        raise self.error(
            f"Stub at {where} has no stub_type",
            node,
            field=f"{where}.stub_type",
            suggestion="Use '- <type>: <description>' or set stub_type",
        )

    def _reject_spelled_twice(
        self, entries: dict[str, tuple[Node, Node]], where: str
    ) -> None:
        """A field given under both its legacy and current name."""
        for legacy, current in LEGACY_STUB_FIELDS.items():
            if legacy in entries and current in entries:
                later = max(
                    entries[legacy][0],
                    entries[current][0],
                    key=lambda n: n.start_mark.index,
                )
                raise self.error(
                    f"Duplicate field '{current}' at {where} "
                    f"(also given as '{legacy}')",
                    later,
                    field=f"{where}.{current}",
                    suggestion=f"Keep only '{current}'",
                )

    def _stub_type(
        self, type_node: Node, stub_node: Node, where: str
    ) -> StubType:
        value = self.scalar(type_node, f"{where}.stub_type")
        return self._resolve_stub_type(value, stub_node, where)

    def _resolve_stub_type(
        self, value: Any, stub_node: Node, where: str
    ) -> StubType:
        try:
            return parse_enum(StubType, value)
        except ValueError as e:
            raise self.error(
                f"Unknown stub_type at {where}: {e}",
                stub_node,
                field=f"{where}.stub_type",
                suggestion=suggest_field(
                    str(value), frozenset(t.value for t in StubType)
                ),
            ) from e

    def _compact_stub(
        self,
        entries: dict[str, tuple[Node, Node]],
        node: MappingNode,
        where: str,
    ) -> Stub:
        type_name, (_, value_node) = next(iter(entries.items()))
        stub_type = self._resolve_stub_type(type_name, node, where)

        if isinstance(value_node, MappingNode):
            inner = self.pairs(value_node, where)
            self._reject_spelled_twice(inner, where)
            return self._stub_fields(stub_type, inner, node, where)

        description = (
            self.scalar(value_node, f"{where}.description")
            if isinstance(value_node, ScalarNode)
            else None
        )
        if not isinstance(description, str) or not description.strip():
            raise self.error(
                f"Stub at {where} is missing a description",
                node,
                field=f"{where}.description",
            )
        return Stub(stub_type=stub_type, description=description)

    def _stub_fields(
        self,
        stub_type: StubType,
        entries: dict[str, tuple[Node, Node]],
        node: MappingNode,
        where: str,
    ) -> Stub:
        fields: dict[str, Any] = {}
        extras: dict[str, Any] = {}

        for key, (key_node, value_node) in entries.items():
            field = f"{where}.{key}"
            match key:
                case "description":
                    value = self.scalar(value_node, field)
                    if not isinstance(value, str):
                        raise self.error(
                            f"Stub description at {where} must be text",
                            node,
                            field=field,
                        )
                    fields["description"] = value
                case "stub_form":
                    fields["stub_form"] = self.choice(
                        StubForm, value_node, field
                    )
                case "priority":
                    fields["priority"] = self.choice(
                        Priority, value_node, field
                    )
                case "stub_origin" | "origin":
                    fields["stub_origin"] = self.choice(
                        StubOrigin, value_node, field, STUB_ORIGIN_ALIASES
                    )
                case "sync_status":
                    fields["sync_status"] = self.choice(
                        SyncStatus, value_node, field
                    )
                case "inline_anchor":
                    anchor = self.text(value_node, field)
                    fields["inline_anchor"] = (
                        anchor.lstrip("^") if anchor else None
                    )
                case _:
                    self.unknown(key, key_node, KNOWN_STUB_FIELDS, field)
                    extras[key] = self.construct(value_node)

        description = fields.pop("description", None)
        if not description or not description.strip():
            raise self.error(
                f"Stub at {where} is missing a description",
                node,
                field=f"{where}.description",
            )
        return Stub(
            stub_type=stub_type,
            description=description,
            **{k: v for k, v in fields.items() if v is not None},
            extras=extras,
        )

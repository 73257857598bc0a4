"""Validate document metadata against the embedded JSON Schemas.

Structural checks run on the composed YAML graph, independently of the
decoder, so malformed metadata still yields positioned messages. Once the
structure is valid the document is decoded and semantic rules add their
warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as JsonSchemaError
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from docdoctor.calculations.config import DEFAULT_CONFIG, CalculationConfig
from docdoctor.constants import (
    KNOWN_FIELDS,
    KNOWN_STUB_FIELDS,
    MAX_EXPANDED_NODES,
    SNIPPET_CONTEXT_CHARS,
)
from docdoctor.errors import ParseError
from docdoctor.parser.decoder import (
    MetadataDecoder,
    compose_body,
    mark_index,
    suggest_field,
)
from docdoctor.parser.frontmatter import extract_frontmatter
from docdoctor.parser.position import (
    PositionTracker,
    SourcePosition,
    char_to_byte_offset,
)
from docdoctor.schemas import EmbeddedSchemaProvider
from docdoctor.validation.rules import Locator, semantic_warnings
from docdoctor.validation.schemas import (
    SchemaError,
    SchemaWarning,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# Stub keys that select a shape rather than carry a field.
_STUB_SHAPE_KEYS = frozenset({"stub_type", "type"})


def escape_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def to_pointer(parts: Iterator[str | int] | list[str | int]) -> str:
    return "".join(f"/{escape_pointer(str(p))}" for p in parts)


def field_from_pointer(pointer: str) -> str | None:
    """``/stubs/0/priority`` becomes ``stubs[0].priority``."""
    if not pointer:
        return None
    out = ""
    for token in pointer.lstrip("/").split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if token.isdigit():
            out += f"[{token}]"
        else:
            out += f".{token}" if out else token
    return out


class _UnbuildableNode(Exception):
    """A node that cannot become part of the JSON instance."""

    def __init__(self, message: str, node: Node, pointer: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.node = node
        self.pointer = pointer


class _Instance:
    """JSON-compatible view of a node graph, indexed by JSON Pointer.

    Aliased nodes are built once and shared. Expansion is charged against
    ``MAX_EXPANDED_NODES`` so alias chains stay linear to validate.
    """

    def __init__(self, body: str, tracker: PositionTracker) -> None:
        self._body = body
        self._tracker = tracker
        self._loader = yaml.SafeLoader("")
        self._active: set[int] = set()
        self._built: dict[int, tuple[Any, int]] = {}
        self.expanded = 0
        self.nodes: dict[str, Node] = {}
        self.errors: list[SchemaError] = []

    def close(self) -> None:
        self._loader.dispose()

    def position_of(self, node: Node) -> SourcePosition:
        offset = char_to_byte_offset(self._body, node.start_mark.index)
        return self._tracker.position(offset)

    def locate(self, pointer: str) -> SourcePosition | None:
        while True:
            node = self.nodes.get(pointer)
            if node is not None:
                return self.position_of(node)
            if not pointer:
                return None
            pointer = pointer.rsplit("/", 1)[0]

    def build(self, node: Node, pointer: str = "") -> Any:
        self.nodes.setdefault(pointer, node)
        key = id(node)
        if key in self._active:
            raise _UnbuildableNode(
                "Recursive alias in frontmatter", node, pointer
            )
        if key in self._built:
            value, size = self._built[key]
            self._spend(size, node, pointer)
            return value

        self._active.add(key)
        start = self.expanded
        try:
            value = self._build(node, pointer)
        finally:
            self._active.discard(key)
        self._built[key] = (value, self.expanded - start)
        return value

    def _spend(self, count: int, node: Node, pointer: str) -> None:
        self.expanded += count
        if self.expanded > MAX_EXPANDED_NODES:
            raise _UnbuildableNode(
                "Frontmatter expands to more than "
                f"{MAX_EXPANDED_NODES} values through aliases",
                node,
                pointer,
            )

    def _build(self, node: Node, pointer: str) -> Any:
        self._spend(1, node, pointer)
        if isinstance(node, MappingNode):
            out: dict[str, Any] = {}
            for key_node, value_node in node.value:
                key = self._key(key_node)
                child = f"{pointer}/{escape_pointer(key)}"
                if key in out:
                    self.errors.append(
                        SchemaError(
                            message=f"Duplicate field '{key}'",
                            path=child,
                            position=self.position_of(key_node),
                            field=field_from_pointer(child),
                        )
                    )
                    continue
                out[key] = self.build(value_node, child)
            return out
        if isinstance(node, SequenceNode):
            return [
                self.build(item, f"{pointer}/{i}")
                for i, item in enumerate(node.value)
            ]
        return self._scalar(node, pointer)

    def _key(self, node: Node) -> str:
        if isinstance(node, ScalarNode):
            return str(node.value)
        try:
            return str(self._loader.construct_object(node, deep=True))
        except yaml.YAMLError as e:
            raise _UnbuildableNode(f"Invalid key: {e}", node) from e

    def _scalar(self, node: Node, pointer: str) -> Any:
        try:
            value = self._loader.construct_object(node, deep=True)
        except yaml.YAMLError as e:
            self.errors.append(
                SchemaError(
                    message=f"Invalid value: {e}",
                    path=pointer,
                    position=self.position_of(node),
                    field=field_from_pointer(pointer),
                )
            )
            return None
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value


class SchemaValidator:
    """Collects every schema error and warning in one pass."""

    def __init__(
        self,
        provider: EmbeddedSchemaProvider | None = None,
        config: CalculationConfig | None = None,
    ) -> None:
        self.provider = provider or EmbeddedSchemaProvider()
        self.config = config or DEFAULT_CONFIG
        frontmatter = self.provider.frontmatter_schema()
        stubs = self.provider.stubs_schema()
        Draft202012Validator.check_schema(frontmatter)
        Draft202012Validator.check_schema(stubs)
        self._frontmatter = Draft202012Validator(frontmatter)
        self._stubs = Draft202012Validator(stubs)

    def validate(self, text: str, *, strict: bool = False) -> ValidationResult:
        try:
            span = extract_frontmatter(text)
        except ParseError as e:
            return self._failed(e.message, "", e.position)

        if span is None or not span.body.strip():
            return self._semantic(text, present=(), locate=None)

        tracker = PositionTracker(text, span.start_offset)
        try:
            root = compose_body(span.body)
        except yaml.YAMLError as e:
            index = mark_index(e)
            position = (
                tracker.position(char_to_byte_offset(span.body, index))
                if index is not None
                else tracker.body_start()
            )
            problem = getattr(e, "problem", None) or str(e)
            return self._failed(
                f"Invalid YAML in frontmatter: {problem}",
                "",
                position,
                snippet=tracker.snippet(
                    position.offset, SNIPPET_CONTEXT_CHARS
                ),
            )

        if root is None:
            return self._semantic(text, present=(), locate=None)

        view = _Instance(span.body, tracker)
        try:
            instance = view.build(root)
        except _UnbuildableNode as e:
            return self._failed(
                e.message,
                e.pointer,
                view.position_of(e.node),
                field_from_pointer(e.pointer),
            )
        finally:
            view.close()

        if not isinstance(root, MappingNode):
            return self._failed(
                "Frontmatter must be a mapping of fields",
                "",
                view.position_of(root),
            )

        errors = list(view.errors)
        errors += self._schema_errors(self._frontmatter, instance, [], view)
        stubs = instance.get("stubs")
        if isinstance(stubs, list):
            errors += self._schema_errors(self._stubs, stubs, ["stubs"], view)

        warnings = list(self._unknown_fields(instance, view))
        if strict:
            errors += [
                SchemaError(
                    message=w.message,
                    path=w.path,
                    position=w.position,
                    field=field_from_pointer(w.path),
                )
                for w in warnings
            ]
            warnings = []

        if errors:
            errors.sort(
                key=lambda e: (e.position.offset if e.position else -1, e.path)
            )
            logger.debug("Validation found %d schema errors", len(errors))
            return ValidationResult(
                is_valid=False, errors=errors, warnings=warnings
            )

        result = self._semantic(
            text, present=tuple(instance), locate=view.locate
        )
        result.warnings[:0] = warnings
        return result

    # ── internals ────────────────────────────────────────

    def _schema_errors(
        self,
        validator: Draft202012Validator,
        instance: Any,
        prefix: list[str | int],
        view: _Instance,
    ) -> list[SchemaError]:
        out: list[SchemaError] = []
        for error in validator.iter_errors(instance):
            pointer = to_pointer(prefix + list(error.absolute_path))
            out.append(
                SchemaError(
                    message=self._message(error, pointer),
                    path=pointer,
                    position=view.locate(pointer),
                    field=field_from_pointer(pointer),
                )
            )
        return out

    @staticmethod
    def _message(error: JsonSchemaError, pointer: str) -> str:
        where = field_from_pointer(pointer) or "frontmatter"
        return f"{where}: {error.message}"

    @staticmethod
    def _unknown_fields(
        instance: dict[str, Any], view: _Instance
    ) -> Iterator[SchemaWarning]:
        for key in instance:
            if key not in KNOWN_FIELDS:
                pointer = f"/{escape_pointer(key)}"
                yield SchemaWarning(
                    message=f"Unknown field: {key}",
                    path=pointer,
                    position=view.locate(pointer),
                    suggestion=suggest_field(key, KNOWN_FIELDS),
                )

        stubs = instance.get("stubs")
        if not isinstance(stubs, list):
            return
        for i, item in enumerate(stubs):
            if not isinstance(item, dict):
                continue
            fields = item
            base = f"/stubs/{i}"
            if not _STUB_SHAPE_KEYS & item.keys() and len(item) == 1:
                type_key, value = next(iter(item.items()))
                if not isinstance(value, dict):
                    continue
                fields = value
                base = f"{base}/{escape_pointer(str(type_key))}"
            for key in fields:
                if key in KNOWN_STUB_FIELDS or key in _STUB_SHAPE_KEYS:
                    continue
                pointer = f"{base}/{escape_pointer(key)}"
                yield SchemaWarning(
                    message=f"Unknown stub field: {key}",
                    path=pointer,
                    position=view.locate(pointer),
                    suggestion=suggest_field(key, KNOWN_STUB_FIELDS),
                )

    def _semantic(
        self,
        text: str,
        *,
        present: tuple[str, ...],
        locate: Locator | None,
    ) -> ValidationResult:
        try:
            decoded = MetadataDecoder().decode(text)
        except ParseError as e:
            path = ""
            if e.field:
                path = "/" + e.field.replace(".", "/").replace(
                    "[", "/"
                ).replace("]", "")
            return self._failed(
                e.message, path, e.position, e.field, e.snippet
            )

        warnings = semantic_warnings(
            decoded.properties,
            self.config,
            present=present,
            locate=locate,
        )
        return ValidationResult(is_valid=True, warnings=warnings)

    @staticmethod
    def _failed(
        message: str,
        path: str,
        position: SourcePosition | None,
        field: str | None = None,
        snippet: str | None = None,
    ) -> ValidationResult:
        return ValidationResult(
            is_valid=False,
            errors=[
                SchemaError(
                    message=message,
                    path=path,
                    position=position,
                    field=field,
                    snippet=snippet,
                )
            ],
        )


def validate_document(text: str, *, strict: bool = False) -> ValidationResult:
    return SchemaValidator().validate(text, strict=strict)

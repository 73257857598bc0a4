"""Switchboard: the single entry point adapters bind to.

Combines decoder, writer, validator, repository and calculation engine.
Text-producing operations return ``(new_text, result)``; the new text is
re-decoded and checked before it is returned, and nothing is returned on
error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, fields
from datetime import date, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

from docdoctor.calculations.config import DEFAULT_CONFIG, CalculationConfig
from docdoctor.calculations.providers import load_calculation_config
from docdoctor.calculations.state import (
    StateDimensions,
    Usefulness,
    calculate_health,
    calculate_state_dimensions,
    calculate_usefulness,
    days_since,
)
from docdoctor.calculations.vector import (
    VectorSummary,
    calculate_vectors,
    forecast_completion,
)
from docdoctor.config import Settings
from docdoctor.constants import (
    STUB_ORIGIN_ALIASES,
    Priority,
    StubForm,
    StubOrigin,
    StubType,
    SyncStatus,
    parse_enum,
)
from docdoctor.errors import (
    AmbiguousSelectorError,
    AnalysisError,
    DocumentAccessError,
    InvalidStubError,
    ParseError,
    RepositoryError,
    StubNotFoundError,
    SwitchboardError,
    WriteBackError,
)
from docdoctor.models import L1Properties, Stub
from docdoctor.parser.decoder import DecodeWarning, MetadataDecoder
from docdoctor.parser.frontmatter import document_body
from docdoctor.parser.position import PositionTracker, char_to_byte_offset
from docdoctor.parser.writer import MetadataWriter
from docdoctor.repositories.filesystem import FileSystemRepository
from docdoctor.repositories.protocols import DocumentRepository
from docdoctor.schemas import EmbeddedSchemaProvider
from docdoctor.validation.rules import semantic_warnings
from docdoctor.validation.schemas import SchemaWarning, ValidationResult
from docdoctor.validation.validator import SchemaValidator

logger = logging.getLogger(__name__)

Selector = int | str
E = TypeVar("E", bound=StrEnum)

_ANCHOR_NAME = re.compile(r"^[\w-]+$")
# A caret opens an anchor only at line start, after whitespace or after '#'.
_ANY_ANCHOR = re.compile(r"(?<![^\s#])\^([\w-]+)")


def _anchor_pattern(anchor: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![^\s#])\^{re.escape(anchor)}(?![\w-])")


def normalize_anchor(anchor: str) -> str:
    name = anchor.strip().removeprefix("^")
    if not _ANCHOR_NAME.match(name):
        raise InvalidStubError(
            f"Invalid anchor {anchor!r}: use letters, digits, '-' or '_'",
            field="inline_anchor",
        )
    return name


# ── Inputs ───────────────────────────────────────────────


class StubResolution(StrEnum):
    RESOLVE = "resolve"
    CANCEL = "cancel"
    REMOVE = "remove"


def _enum_field(
    enum_cls: type[E],
    value: Any,
    field: str,
    aliases: dict[str, E] | None = None,
) -> E:
    try:
        return parse_enum(enum_cls, value, aliases)
    except ValueError as e:
        raise InvalidStubError(f"Invalid {field}: {e}", field=field) from e


@dataclass(frozen=True)
class NewStub:
    """A stub to add; enumerations may be given as strings."""

    stub_type: StubType | str
    description: str
    stub_form: StubForm | str = StubForm.TRANSIENT
    priority: Priority | str = Priority.MEDIUM
    stub_origin: StubOrigin | str = StubOrigin.AUTHOR
    inline_anchor: str | None = None
    sync_status: SyncStatus | str | None = None

    def to_stub(self) -> Stub:
        if not self.description or not self.description.strip():
            raise InvalidStubError(
                "Stub description must not be empty", field="description"
            )
        return Stub(
            stub_type=_enum_field(StubType, self.stub_type, "stub_type"),
            description=self.description,
            stub_form=_enum_field(StubForm, self.stub_form, "stub_form"),
            priority=_enum_field(Priority, self.priority, "priority"),
            stub_origin=_enum_field(
                StubOrigin,
                self.stub_origin,
                "stub_origin",
                STUB_ORIGIN_ALIASES,
            ),
            inline_anchor=(
                normalize_anchor(self.inline_anchor)
                if self.inline_anchor
                else None
            ),
            sync_status=(
                _enum_field(SyncStatus, self.sync_status, "sync_status")
                if self.sync_status is not None
                else None
            ),
        )


@dataclass(frozen=True)
class StubUpdates:
    """Fields to change on an existing stub; ``None`` leaves a field as is."""

    stub_type: StubType | str | None = None
    description: str | None = None
    stub_form: StubForm | str | None = None
    priority: Priority | str | None = None
    stub_origin: StubOrigin | str | None = None
    inline_anchor: str | None = None
    sync_status: SyncStatus | str | None = None

    def changed_fields(self) -> tuple[str, ...]:
        return tuple(
            f.name for f in fields(self) if getattr(self, f.name) is not None
        )

    def apply(self, stub: Stub) -> Stub:
        changes: dict[str, Any] = {}
        if self.stub_type is not None:
            changes["stub_type"] = _enum_field(
                StubType, self.stub_type, "stub_type"
            )
        if self.description is not None:
            if not self.description.strip():
                raise InvalidStubError(
                    "Stub description must not be empty",
                    field="description",
                )
            changes["description"] = self.description
        if self.stub_form is not None:
            changes["stub_form"] = _enum_field(
                StubForm, self.stub_form, "stub_form"
            )
        if self.priority is not None:
            changes["priority"] = _enum_field(
                Priority, self.priority, "priority"
            )
        if self.stub_origin is not None:
            changes["stub_origin"] = _enum_field(
                StubOrigin,
                self.stub_origin,
                "stub_origin",
                STUB_ORIGIN_ALIASES,
            )
        if self.inline_anchor is not None:
            changes["inline_anchor"] = normalize_anchor(self.inline_anchor)
        if self.sync_status is not None:
            changes["sync_status"] = _enum_field(
                SyncStatus, self.sync_status, "sync_status"
            )
        return stub.with_changes(**changes)


@dataclass(frozen=True)
class StubFilter:
    stub_type: StubType | None = None
    priority: Priority | None = None
    blocking_only: bool = False
    open_only: bool = False

    def matches(self, stub: Stub) -> bool:
        if self.stub_type is not None and stub.stub_type != self.stub_type:
            return False
        if self.priority is not None and stub.priority != self.priority:
            return False
        if self.blocking_only and not stub.is_blocking:
            return False
        return not (self.open_only and not stub.is_open)


# ── Results ──────────────────────────────────────────────


@dataclass(frozen=True)
class IndexedStub:
    index: int
    stub: Stub


@dataclass(frozen=True)
class StubAddResult:
    index: int
    stub: Stub
    stub_count: int


@dataclass(frozen=True)
class StubResolveResult:
    index: int
    stub: Stub
    resolution: StubResolution
    stub_count: int


@dataclass(frozen=True)
class StubUpdateResult:
    index: int
    stub: Stub
    previous: Stub
    changed_fields: tuple[str, ...]


@dataclass(frozen=True)
class AnchorMatch:
    """One ``^anchor`` token.

    ``offset`` is a byte offset into the document body (the content after
    the metadata block); ``line`` and ``column`` refer to the whole document.
    """

    offset: int
    line: int
    column: int


@dataclass(frozen=True)
class AnchorMatches:
    anchor: str
    matches: tuple[AnchorMatch, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.matches)

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def lines(self) -> list[int]:
        return [m.line for m in self.matches]


@dataclass(frozen=True)
class StubAnchor:
    """An anchor present in the body and the stubs linked to it."""

    anchor: str
    matches: tuple[AnchorMatch, ...]
    stub_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class StubAnchorReport:
    anchors: tuple[StubAnchor, ...] = ()
    # Stubs whose inline_anchor does not occur in the body.
    orphaned_stubs: tuple[int, ...] = ()


@dataclass(frozen=True)
class DocumentAnalysis:
    properties: L1Properties
    dimensions: StateDimensions
    vectors: VectorSummary
    warnings: tuple[SchemaWarning, ...] = ()

    @property
    def warning_messages(self) -> list[str]:
        return [w.message for w in self.warnings]


def _as_schema_warning(warning: DecodeWarning) -> SchemaWarning:
    path = ""
    if warning.field:
        path = "/" + warning.field.replace(".", "/").replace(
            "[", "/"
        ).replace("]", "")
    return SchemaWarning(
        message=warning.message,
        path=path,
        position=warning.position,
        suggestion=warning.suggestion,
    )


class Switchboard:
    """Stable façade over the library. Construct once per process."""

    def __init__(
        self,
        *,
        config: CalculationConfig | None = None,
        repository: DocumentRepository | None = None,
        schema_provider: EmbeddedSchemaProvider | None = None,
        strict: bool = False,
    ) -> None:
        self.config = config
        self.repository = repository
        self.strict = strict
        self.schemas = schema_provider or EmbeddedSchemaProvider()
        self._decoder = MetadataDecoder(strict=strict)
        self._verifier = MetadataDecoder()
        self._writer = MetadataWriter()
        self._validator = SchemaValidator(self.schemas, config)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        project_root: Path | None = None,
        repository: DocumentRepository | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> Switchboard:
        """Layered config plus a filesystem repository at ``project_root``."""
        settings = settings or Settings()
        config = load_calculation_config(settings, project_root, overrides)
        if repository is None and project_root is not None:
            repository = FileSystemRepository(project_root)
        return cls(
            config=config,
            repository=repository,
            strict=settings.strict,
        )

    def _config(self, config: CalculationConfig | None) -> CalculationConfig:
        return config or self.config or DEFAULT_CONFIG

    # ── Decode, analyze, validate ────────────────────────

    def parse_document(self, text: str) -> L1Properties:
        return self._decoder.parse(text)

    def analyze_document(
        self,
        text: str,
        *,
        days_since_update: float | None = None,
        as_of: date | datetime | None = None,
    ) -> DocumentAnalysis:
        """Decode and compute dimensions.

        Without ``days_since_update``, age is taken from the ``modified``
        field relative to ``as_of`` when both are known.
        """
        try:
            decoded = self._decoder.decode(text)
        except ParseError as e:
            raise AnalysisError(
                f"Cannot analyze document: {e}", cause=e
            ) from e

        props = decoded.properties
        days = days_since_update
        if days is None and as_of is not None and props.modified is not None:
            days = days_since(props.modified, as_of)

        config = self._config(None)
        dimensions = calculate_state_dimensions(props, config, days)
        warnings = [_as_schema_warning(w) for w in decoded.warnings]
        warnings += semantic_warnings(props, config, present=decoded.fields)
        return DocumentAnalysis(
            properties=props,
            dimensions=dimensions,
            vectors=calculate_vectors(props.stubs, config),
            warnings=tuple(warnings),
        )

    def validate_document(
        self, text: str, strict: bool | None = None
    ) -> ValidationResult:
        return self._validator.validate(
            text, strict=self.strict if strict is None else strict
        )

    # ── Stub operations ──────────────────────────────────

    def list_stubs(
        self, text: str, stub_filter: StubFilter | None = None
    ) -> list[IndexedStub]:
        props = self.parse_document(text)
        return [
            IndexedStub(index=i, stub=stub)
            for i, stub in enumerate(props.stubs)
            if stub_filter is None or stub_filter.matches(stub)
        ]

    def add_stub(
        self, text: str, new_stub: NewStub | Stub
    ) -> tuple[str, StubAddResult]:
        props = self.parse_document(text)
        stub = (
            new_stub.to_stub() if isinstance(new_stub, NewStub) else new_stub
        )

        new_text = self._writer.append_stub(text, stub)
        expected = props.with_stubs([*props.stubs, stub])
        self._verify(text, new_text, expected)
        logger.debug(
            "Added %s stub at index %d", stub.stub_type, len(props.stubs)
        )
        return new_text, StubAddResult(
            index=len(props.stubs),
            stub=stub,
            stub_count=len(expected.stubs),
        )

    def resolve_stub(
        self,
        text: str,
        selector: Selector,
        resolution: StubResolution | str = StubResolution.RESOLVE,
    ) -> tuple[str, StubResolveResult]:
        mode = _enum_field(StubResolution, resolution, "resolution")
        props = self.parse_document(text)
        index = self.select_stub(props.stubs, selector)
        stub = props.stubs[index]
        stubs = list(props.stubs)

        if mode == StubResolution.REMOVE:
            new_text = self._writer.remove_stub(text, index)
            del stubs[index]
        else:
            status = (
                SyncStatus.RESOLVED
                if mode == StubResolution.RESOLVE
                else SyncStatus.CANCELLED
            )
            stub = stub.with_changes(sync_status=status)
            new_text = self._writer.replace_stub(text, index, stub)
            stubs[index] = stub

        self._verify(text, new_text, props.with_stubs(stubs))
        return new_text, StubResolveResult(
            index=index,
            stub=stub,
            resolution=mode,
            stub_count=len(stubs),
        )

    def update_stub(
        self, text: str, selector: Selector, updates: StubUpdates
    ) -> tuple[str, StubUpdateResult]:
        changed = updates.changed_fields()
        if not changed:
            raise InvalidStubError("No stub fields to update")
        props = self.parse_document(text)
        index = self.select_stub(props.stubs, selector)
        return self._replace(text, props, index, updates.apply, changed)

    def link_stub_anchor(
        self, text: str, selector: Selector, anchor: str
    ) -> tuple[str, StubUpdateResult]:
        name = normalize_anchor(anchor)
        props = self.parse_document(text)
        index = self.select_stub(props.stubs, selector)
        return self._replace(
            text,
            props,
            index,
            lambda s: s.with_changes(inline_anchor=name),
            ("inline_anchor",),
        )

    def unlink_stub_anchor(
        self, text: str, selector: Selector
    ) -> tuple[str, StubUpdateResult]:
        props = self.parse_document(text)
        index = self.select_stub(props.stubs, selector)
        if props.stubs[index].inline_anchor is None:
            raise InvalidStubError(
                f"Stub {index} has no inline anchor", field="inline_anchor"
            )
        return self._replace(
            text,
            props,
            index,
            lambda s: s.with_changes(inline_anchor=None),
            ("inline_anchor",),
        )

    def select_stub(self, stubs: tuple[Stub, ...], selector: Selector) -> int:
        """Index for a selector: a position or a description prefix."""
        if isinstance(selector, bool):
            raise InvalidStubError("Stub selector must be an index or text")
        if isinstance(selector, int):
            if 0 <= selector < len(stubs):
                return selector
            raise StubNotFoundError(selector, len(stubs))

        prefix = selector.strip().casefold()
        if not prefix:
            raise InvalidStubError("Stub selector must not be empty")
        candidates = [
            i
            for i, stub in enumerate(stubs)
            if stub.description.casefold().startswith(prefix)
        ]
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            raise StubNotFoundError(selector, len(stubs))
        exact = [
            i for i in candidates if stubs[i].description.casefold() == prefix
        ]
        if len(exact) == 1:
            return exact[0]
        raise AmbiguousSelectorError(selector, candidates)

    # ── Anchors ──────────────────────────────────────────

    def find_anchor_matches(self, text: str, anchor: str) -> AnchorMatches:
        name = normalize_anchor(anchor)
        return AnchorMatches(
            anchor=name,
            matches=tuple(
                self._scan(text, _anchor_pattern(name)).get(name, [])
            ),
        )

    def find_stub_anchors(self, text: str) -> StubAnchorReport:
        props = self.parse_document(text)
        found = self._scan(text, _ANY_ANCHOR)

        anchors = tuple(
            StubAnchor(
                anchor=name,
                matches=tuple(matches),
                stub_indices=tuple(
                    i
                    for i, stub in enumerate(props.stubs)
                    if stub.inline_anchor == name
                ),
            )
            for name, matches in found.items()
        )
        orphaned = tuple(
            i
            for i, stub in enumerate(props.stubs)
            if stub.inline_anchor is not None
            and stub.inline_anchor not in found
        )
        return StubAnchorReport(anchors=anchors, orphaned_stubs=orphaned)

    @staticmethod
    def _scan(
        text: str, pattern: re.Pattern[str]
    ) -> dict[str, list[AnchorMatch]]:
        """Anchor matches keyed by name, in order of first appearance.

        Patterns with a capture group key by the group; otherwise by the
        matched text without its caret.
        """
        body, start = document_body(text)
        body_offset = char_to_byte_offset(text, start)
        tracker = PositionTracker(text)

        found: dict[str, list[AnchorMatch]] = {}
        cursor, offset = 0, 0
        for match in pattern.finditer(body):
            offset += len(body[cursor : match.start()].encode("utf-8"))
            cursor = match.start()
            pos = tracker.absolute_position(body_offset + offset)
            name = match.group(1) if pattern.groups else match.group(0)[1:]
            found.setdefault(name, []).append(
                AnchorMatch(offset=offset, line=pos.line, column=pos.column)
            )
        return found

    # ── Calculations ─────────────────────────────────────

    def calculate_health(
        self,
        properties: L1Properties,
        config: CalculationConfig | None = None,
    ) -> float:
        return calculate_health(
            properties.refinement, properties.stubs, self._config(config)
        )

    def calculate_dimensions(
        self,
        properties: L1Properties,
        config: CalculationConfig | None = None,
        days_since_update: float | None = None,
    ) -> StateDimensions:
        return calculate_state_dimensions(
            properties, self._config(config), days_since_update
        )

    def calculate_usefulness(
        self,
        properties: L1Properties,
        config: CalculationConfig | None = None,
    ) -> Usefulness:
        return calculate_usefulness(
            properties.refinement, properties.audience, self._config(config)
        )

    def calculate_vectors(
        self,
        properties: L1Properties,
        config: CalculationConfig | None = None,
    ) -> VectorSummary:
        return calculate_vectors(properties.stubs, self._config(config))

    def forecast_completion(
        self,
        properties: L1Properties,
        velocity: float,
        config: CalculationConfig | None = None,
    ) -> float:
        return forecast_completion(
            properties.stubs, velocity, self._config(config)
        )

    # ── Schemas ──────────────────────────────────────────

    def frontmatter_schema(self) -> dict[str, Any]:
        return self.schemas.frontmatter_schema()

    def stubs_schema(self) -> dict[str, Any]:
        return self.schemas.stubs_schema()

    def schema_version(self) -> str:
        return self.schemas.version()

    # ── Round trip ───────────────────────────────────────

    def reemit_document(self, text: str) -> str:
        props = self.parse_document(text)
        new_text = self._writer.reemit(text)
        self._verify(text, new_text, props)
        return new_text

    # ── Path-based operations ────────────────────────────

    def analyze_path(
        self,
        path: Path | str,
        *,
        days_since_update: float | None = None,
        as_of: date | datetime | None = None,
    ) -> DocumentAnalysis:
        return self.analyze_document(
            self._read(path),
            days_since_update=days_since_update,
            as_of=as_of,
        )

    def validate_path(
        self, path: Path | str, strict: bool | None = None
    ) -> ValidationResult:
        return self.validate_document(self._read(path), strict=strict)

    def write_document(self, path: Path | str, text: str) -> None:
        """Write text that decodes cleanly; decode errors propagate."""
        self.parse_document(text)
        repository = self._repository()
        try:
            repository.write(path, text)
        except RepositoryError as e:
            raise DocumentAccessError(e) from e
        logger.info("Wrote document %s", path)

    def _repository(self) -> DocumentRepository:
        if self.repository is None:
            raise SwitchboardError("No document repository configured")
        return self.repository

    def _read(self, path: Path | str) -> str:
        repository = self._repository()
        try:
            return repository.read(path)
        except RepositoryError as e:
            raise DocumentAccessError(e) from e

    # ── Write-back ───────────────────────────────────────

    def _replace(
        self,
        text: str,
        props: L1Properties,
        index: int,
        change: Callable[[Stub], Stub],
        changed: tuple[str, ...],
    ) -> tuple[str, StubUpdateResult]:
        previous = props.stubs[index]
        stub = change(previous)
        new_text = self._writer.replace_stub(text, index, stub)
        stubs = list(props.stubs)
        stubs[index] = stub
        self._verify(text, new_text, props.with_stubs(stubs))
        return new_text, StubUpdateResult(
            index=index,
            stub=stub,
            previous=previous,
            changed_fields=changed,
        )

    def _verify(
        self, old_text: str, new_text: str, expected: L1Properties
    ) -> None:
        try:
            actual = self._verifier.parse(new_text)
        except ParseError as e:
            raise WriteBackError(
                f"Rewritten metadata no longer decodes: {e}"
            ) from e
        if actual != expected:
            raise WriteBackError(
                "Rewritten metadata does not match the intended change"
            )

        old_body, _ = document_body(old_text)
        new_body, _ = document_body(new_text)
        if old_body != new_body:
            raise WriteBackError("Document body changed during rewrite")

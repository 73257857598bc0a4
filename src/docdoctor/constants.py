"""Shared constants: the single source of truth for the editorial vocabulary.

Every closed enumeration that appears in metadata lives here. StrEnum
members are str-compatible, so canonical values flow unchanged into YAML,
JSON payloads and log lines.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Self, TypeVar

# ── Document Enumerations ────────────────────────────────


class Audience(StrEnum):
    """Who a document is written for, ordered by strictness."""

    PERSONAL = "personal"
    INTERNAL = "internal"
    TRUSTED = "trusted"
    PUBLIC = "public"

    @property
    def default_gate(self) -> float:
        """Minimum refinement for the document to be useful."""
        return _AUDIENCE_GATES[self]


class Form(StrEnum):
    """Lifecycle stage of a document."""

    TRANSIENT = "transient"
    DEVELOPING = "developing"
    STABLE = "stable"
    EVERGREEN = "evergreen"
    CANONICAL = "canonical"

    @property
    def cadence_days(self) -> float:
        """Freshness half-life in days (``math.inf`` never goes stale)."""
        return _FORM_CADENCES[self]


class Origin(StrEnum):
    """Provenance of the document content."""

    HUMAN = "human"
    COLLABORATIVE = "collaborative"
    AI_ASSISTED = "ai_assisted"
    AI_GENERATED = "ai_generated"
    IMPORTED = "imported"
    DERIVED = "derived"
    UNKNOWN = "unknown"


class RefinementLabel(StrEnum):
    """Coarse label for a refinement score."""

    POOR = "poor"
    WEAK = "weak"
    MODERATE = "moderate"
    GOOD = "good"
    EXCELLENT = "excellent"

    @classmethod
    def for_value(cls, value: float) -> Self:
        if value < 0.30:
            return cls.POOR
        if value < 0.50:
            return cls.WEAK
        if value < 0.70:
            return cls.MODERATE
        if value < 0.90:
            return cls.GOOD
        return cls.EXCELLENT


# ── Stub Enumerations ────────────────────────────────────


class VectorFamily(StrEnum):
    """Grouping of stub types by the activity that resolves them."""

    RETRIEVAL = "retrieval"
    COMPUTATION = "computation"
    SYNTHESIS = "synthesis"
    CREATION = "creation"
    STRUCTURAL = "structural"


class StubType(StrEnum):
    """Kind of gap a stub declares."""

    LINK = "link"
    CITATION = "citation"
    VERIFY = "verify"
    CALCULATION = "calculation"
    BENCHMARK = "benchmark"
    SUMMARIZE = "summarize"
    COMPARE = "compare"
    DRAFT = "draft"
    EXAMPLE = "example"
    REFACTOR = "refactor"
    REORGANIZE = "reorganize"

    @property
    def family(self) -> VectorFamily:
        return _STUB_FAMILIES[self]


class StubForm(StrEnum):
    """Severity class of a stub."""

    TRANSIENT = "transient"
    PERSISTENT = "persistent"
    BLOCKING = "blocking"
    STRUCTURAL = "structural"

    @property
    def refinement_penalty(self) -> float:
        """Built-in penalty; negative because it lowers refinement."""
        return _STUB_FORM_PENALTIES[self]

    @property
    def is_blocking(self) -> bool:
        return self in (StubForm.BLOCKING, StubForm.STRUCTURAL)


class Priority(StrEnum):
    """Stub priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def multiplier(self) -> float:
        return _PRIORITY_MULTIPLIERS[self]


class StubOrigin(StrEnum):
    """Who or what surfaced a stub."""

    AUTHOR = "author"
    PEER_SURFACED = "peer_surfaced"
    QA_DETECTED = "qa_detected"
    REVIEW_FEEDBACK = "review_feedback"
    USER_REPORTED = "user_reported"
    AUTO_DISCOVERY = "auto_discovery"
    SYSTEM_GENERATED = "system_generated"
    EXTERNAL_CITED = "external_cited"


class SyncStatus(StrEnum):
    """Workflow state of a stub."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class Severity(StrEnum):
    """Severity levels for validation findings."""

    ERROR = "error"
    WARNING = "warning"


# ── Lookup Tables ────────────────────────────────────────

_AUDIENCE_GATES: dict[Audience, float] = {
    Audience.PERSONAL: 0.50,
    Audience.INTERNAL: 0.70,
    Audience.TRUSTED: 0.80,
    Audience.PUBLIC: 0.90,
}

_FORM_CADENCES: dict[Form, float] = {
    Form.TRANSIENT: 7.0,
    Form.DEVELOPING: 30.0,
    Form.STABLE: 90.0,
    Form.EVERGREEN: 365.0,
    Form.CANONICAL: math.inf,
}

_STUB_FAMILIES: dict[StubType, VectorFamily] = {
    StubType.LINK: VectorFamily.RETRIEVAL,
    StubType.CITATION: VectorFamily.RETRIEVAL,
    StubType.VERIFY: VectorFamily.RETRIEVAL,
    StubType.CALCULATION: VectorFamily.COMPUTATION,
    StubType.BENCHMARK: VectorFamily.COMPUTATION,
    StubType.SUMMARIZE: VectorFamily.SYNTHESIS,
    StubType.COMPARE: VectorFamily.SYNTHESIS,
    StubType.DRAFT: VectorFamily.CREATION,
    StubType.EXAMPLE: VectorFamily.CREATION,
    StubType.REFACTOR: VectorFamily.STRUCTURAL,
    StubType.REORGANIZE: VectorFamily.STRUCTURAL,
}

_STUB_FORM_PENALTIES: dict[StubForm, float] = {
    StubForm.TRANSIENT: -0.02,
    StubForm.PERSISTENT: -0.05,
    StubForm.BLOCKING: -0.10,
    StubForm.STRUCTURAL: -0.15,
}

_PRIORITY_MULTIPLIERS: dict[Priority, float] = {
    Priority.LOW: 0.5,
    Priority.MEDIUM: 1.0,
    Priority.HIGH: 1.5,
    Priority.CRITICAL: 2.0,
}

# Accepted spellings that are not the canonical value.
STUB_ORIGIN_ALIASES: dict[str, StubOrigin] = {
    "author_identified": StubOrigin.AUTHOR,
}


def normalize_token(raw: str) -> str:
    """Fold an enumeration spelling to canonical lower-snake-case."""
    return raw.strip().lower().replace("-", "_").replace(" ", "_")


E = TypeVar("E", bound=StrEnum)


def parse_enum(
    enum_cls: type[E],
    raw: object,
    aliases: dict[str, E] | None = None,
) -> E:
    """Case-insensitive lookup of an enumeration member.

    Raises ``ValueError`` naming the accepted values.
    """
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, str):
        token = normalize_token(raw)
        if aliases and token in aliases:
            return aliases[token]
        try:
            return enum_cls(token)
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"Unknown value {raw!r} (expected one of: {allowed})")


# ── Metadata Field Names ─────────────────────────────────

DOCUMENT_FIELDS: tuple[str, ...] = (
    "title",
    "refinement",
    "audience",
    "form",
    "origin",
    "tags",
    "stubs",
)

# Recognized bookkeeping fields that are not part of the scoring model.
BOOKKEEPING_FIELDS: tuple[str, ...] = (
    "uid",
    "aliases",
    "created",
    "modified",
)

KNOWN_FIELDS: frozenset[str] = frozenset(DOCUMENT_FIELDS + BOOKKEEPING_FIELDS)

STUB_FIELDS: tuple[str, ...] = (
    "stub_type",
    "description",
    "stub_form",
    "priority",
    "stub_origin",
    "inline_anchor",
    "sync_status",
)

# Legacy spellings still accepted inside stubs.
LEGACY_STUB_FIELDS: dict[str, str] = {
    "type": "stub_type",
    "origin": "stub_origin",
}

KNOWN_STUB_FIELDS: frozenset[str] = frozenset(
    STUB_FIELDS + tuple(LEGACY_STUB_FIELDS)
)

# ── Validation Thresholds ────────────────────────────────

HIGH_REFINEMENT_WITH_STUBS = 0.9
HIGH_REFINEMENT_WITH_BLOCKERS = 0.7

# ── Schema ───────────────────────────────────────────────

SCHEMA_VERSION = "1.0.0"

# Values a metadata block may expand to once YAML aliases are followed.
MAX_EXPANDED_NODES = 10_000

# ── Misc ─────────────────────────────────────────────────

FENCE = "---"
BOM = "\ufeff"
SNIPPET_CONTEXT_CHARS = 30

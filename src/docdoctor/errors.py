"""Exception taxonomy for decoding, configuration, calculation and I/O.

Every error the library raises derives from ``DocDoctorError`` so adapters
can catch one base type. Schema findings are values (see
``docdoctor.validation.schemas``), not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docdoctor.parser.position import SourcePosition


class DocDoctorError(Exception):
    """Base class for all library errors."""


# ── Decode ───────────────────────────────────────────────


class ParseError(DocDoctorError):
    """Metadata could not be decoded into L1 properties."""

    def __init__(
        self,
        message: str,
        *,
        position: SourcePosition | None = None,
        field: str | None = None,
        suggestion: str | None = None,
        snippet: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.position = position
        self.field = field
        self.suggestion = suggestion
        # Source text around the position, newlines escaped.
        self.snippet = snippet

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return (
            f"{self.message} (line {self.position.line}, "
            f"column {self.position.column})"
        )


class UnterminatedFrontmatterError(ParseError):
    """An opening ``---`` fence has no matching closing fence."""


# ── Configuration ────────────────────────────────────────


@dataclass(frozen=True)
class ConfigViolation:
    """One invalid configuration value, addressed by dotted path."""

    path: str
    message: str


class ConfigValidationError(DocDoctorError):
    """The merged configuration violates its validity predicate."""

    def __init__(self, violations: list[ConfigViolation]) -> None:
        self.violations = tuple(violations)
        summary = "; ".join(f"{v.path}: {v.message}" for v in violations)
        super().__init__(f"Invalid configuration: {summary}")

    @property
    def paths(self) -> list[str]:
        return [v.path for v in self.violations]


class ConfigLoadError(DocDoctorError):
    """A configuration source could not be read or parsed."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        if source:
            message = f"{message} ({source})"
        super().__init__(message)


# ── Calculation ──────────────────────────────────────────


class CalculationError(DocDoctorError, ValueError):
    """A calculation received a demonstrably invalid input."""


# ── Repository ───────────────────────────────────────────


class RepositoryErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_PATH = "invalid_path"
    IO_ERROR = "io_error"
    OTHER = "other"


class RepositoryError(DocDoctorError):
    """A document repository adapter failed."""

    def __init__(
        self,
        kind: RepositoryErrorKind,
        message: str,
        *,
        path: Path | str | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.path = Path(path) if path is not None else None
        super().__init__(
            f"{message} ({self.path})" if self.path else message
        )

    @classmethod
    def not_found(cls, path: Path | str) -> RepositoryError:
        return cls(
            RepositoryErrorKind.NOT_FOUND,
            "File not found",
            path=path,
        )

    @classmethod
    def permission_denied(cls, path: Path | str) -> RepositoryError:
        return cls(
            RepositoryErrorKind.PERMISSION_DENIED,
            "Permission denied",
            path=path,
        )


# ── Switchboard ──────────────────────────────────────────


class SwitchboardError(DocDoctorError):
    """Base class for façade operation failures."""


class StubNotFoundError(SwitchboardError):
    """No stub matches the selector."""

    def __init__(self, selector: int | str, stub_count: int) -> None:
        self.selector = selector
        self.stub_count = stub_count
        if isinstance(selector, int):
            msg = (
                f"Stub index {selector} out of range "
                f"(document has {stub_count} stubs)"
            )
        else:
            msg = f"No stub description starts with {selector!r}"
        super().__init__(msg)


class AmbiguousSelectorError(SwitchboardError):
    """A description prefix matches more than one stub."""

    def __init__(self, selector: str, candidates: list[int]) -> None:
        self.selector = selector
        self.candidates = tuple(candidates)
        super().__init__(
            f"Selector {selector!r} matches stubs at indices "
            f"{', '.join(str(i) for i in candidates)}"
        )


class InvalidStubError(SwitchboardError):
    """A requested stub value is not valid metadata."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class WriteBackError(SwitchboardError):
    """Rewritten metadata did not decode back to the intended state."""


class AnalysisError(SwitchboardError):
    """A document could not be analyzed."""

    def __init__(self, message: str, *, cause: ParseError | None = None):
        self.position = cause.position if cause else None
        self.field = cause.field if cause else None
        super().__init__(message)


class DocumentAccessError(SwitchboardError):
    """The repository failed while serving a path-based operation."""

    def __init__(self, error: RepositoryError) -> None:
        self.kind = error.kind
        self.path = error.path
        super().__init__(str(error))

"""Run switchboard operations over every document a repository lists.

Per-document failures are recorded and the batch carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from docdoctor.errors import (
    DocDoctorError,
    DocumentAccessError,
    RepositoryError,
)
from docdoctor.repositories.protocols import DocumentRepository
from docdoctor.services.switchboard import DocumentAnalysis, Switchboard
from docdoctor.validation.schemas import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "**/*.md"


@dataclass(frozen=True)
class BatchDocumentResult:
    path: Path
    analysis: DocumentAnalysis | None = None
    validation: ValidationResult | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        return self.validation is None or self.validation.is_valid


@dataclass(frozen=True)
class BatchResult:
    results: tuple[BatchDocumentResult, ...] = field(default=())

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    def failures(self) -> list[BatchDocumentResult]:
        return [r for r in self.results if not r.ok]

    def average_health(self) -> float | None:
        scores = [
            r.analysis.dimensions.health
            for r in self.results
            if r.analysis is not None
        ]
        if not scores:
            return None
        return sum(scores) / len(scores)


class BatchProcessor:
    """Applies analysis or validation to each path matching a glob."""

    def __init__(
        self,
        switchboard: Switchboard,
        repository: DocumentRepository | None = None,
    ) -> None:
        repository = repository or switchboard.repository
        if repository is None:
            msg = "BatchProcessor needs a document repository"
            raise ValueError(msg)
        self.switchboard = switchboard
        self.repository: DocumentRepository = repository

    def _read(self, path: Path) -> str:
        try:
            return self.repository.read(path)
        except RepositoryError as e:
            raise DocumentAccessError(e) from e

    def analyze(
        self,
        pattern: str = DEFAULT_PATTERN,
        *,
        days_since_update: float | None = None,
        as_of: date | datetime | None = None,
    ) -> BatchResult:
        results: list[BatchDocumentResult] = []
        for path in self.repository.list(pattern):
            try:
                analysis = self.switchboard.analyze_document(
                    self._read(path),
                    days_since_update=days_since_update,
                    as_of=as_of,
                )
            except DocDoctorError as e:
                results.append(self._failure(path, e))
                continue
            results.append(BatchDocumentResult(path=path, analysis=analysis))
        return self._finish("analyzed", results)

    def validate(
        self, pattern: str = DEFAULT_PATTERN, *, strict: bool | None = None
    ) -> BatchResult:
        results: list[BatchDocumentResult] = []
        for path in self.repository.list(pattern):
            try:
                validation = self.switchboard.validate_document(
                    self._read(path), strict=strict
                )
            except DocDoctorError as e:
                results.append(self._failure(path, e))
                continue
            if not validation.is_valid:
                logger.warning(
                    "Invalid metadata in %s: %s",
                    path,
                    validation.errors[0].message,
                )
            results.append(
                BatchDocumentResult(path=path, validation=validation)
            )
        return self._finish("validated", results)

    @staticmethod
    def _failure(path: Path, error: Exception) -> BatchDocumentResult:
        logger.warning("Skipping %s: %s", path, error)
        return BatchDocumentResult(
            path=path,
            error=str(error),
            error_type=type(error).__name__,
        )

    @staticmethod
    def _finish(
        verb: str, results: list[BatchDocumentResult]
    ) -> BatchResult:
        batch = BatchResult(results=tuple(results))
        logger.info(
            "Batch %s %d documents: %d succeeded, %d failed",
            verb,
            batch.total,
            batch.succeeded,
            batch.failed,
        )
        return batch

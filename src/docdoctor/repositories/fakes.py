"""In-memory fake repository for testing.

Dict-backed implementation of ``DocumentRepository``.
No I/O, so operations are instant for unit tests.
"""

from __future__ import annotations

import fnmatch
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from docdoctor.errors import RepositoryError, RepositoryErrorKind
from docdoctor.repositories.protocols import DocumentMetadata


class InMemoryDocumentRepository:
    """Dict-backed DocumentRepository keyed by POSIX-style path."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self._store: dict[str, str] = {}
        self._modified: dict[str, datetime] = {}
        self.denied: set[str] = set()
        for path, content in (documents or {}).items():
            self.write(path, content)

    @staticmethod
    def _key(path: Path | str) -> str:
        key = PurePosixPath(str(path).replace("\\", "/"))
        if key.is_absolute() or ".." in key.parts:
            raise RepositoryError(
                RepositoryErrorKind.INVALID_PATH,
                "Path escapes repository root",
                path=str(path),
            )
        return str(key)

    def read(self, path: Path | str) -> str:
        key = self._key(path)
        if key in self.denied:
            raise RepositoryError.permission_denied(key)
        if key not in self._store:
            raise RepositoryError.not_found(key)
        return self._store[key]

    def write(self, path: Path | str, content: str) -> None:
        key = self._key(path)
        if key in self.denied:
            raise RepositoryError.permission_denied(key)
        self._store[key] = content
        self._modified[key] = datetime.now(UTC)

    def list(self, pattern: str) -> list[Path]:
        # "**/" also matches at the top level, as pathlib globbing does
        patterns = [pattern]
        if pattern.startswith("**/"):
            patterns.append(pattern[3:])
        return [
            Path(key)
            for key in sorted(self._store)
            if any(fnmatch.fnmatch(key, p) for p in patterns)
        ]

    def exists(self, path: Path | str) -> bool:
        return self._key(path) in self._store

    def metadata(self, path: Path | str) -> DocumentMetadata:
        key = self._key(path)
        if key not in self._store:
            raise RepositoryError.not_found(key)
        return DocumentMetadata(
            size=len(self._store[key].encode("utf-8")),
            modified=self._modified[key],
        )

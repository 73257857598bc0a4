"""Protocol-based repository interface.

Adapters satisfy ``DocumentRepository`` structurally (no inheritance).
Failures surface as ``RepositoryError`` with a ``RepositoryErrorKind``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class DocumentMetadata:
    size: int
    modified: datetime | None = None
    created: datetime | None = None
    is_directory: bool = False


class DocumentRepository(Protocol):
    def read(self, path: Path | str) -> str: ...
    def write(self, path: Path | str, content: str) -> None: ...
    def list(self, pattern: str) -> list[Path]: ...
    def exists(self, path: Path | str) -> bool: ...
    def metadata(self, path: Path | str) -> DocumentMetadata: ...

"""Filesystem-backed document repository rooted at a directory."""

from __future__ import annotations

import errno
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from docdoctor.errors import RepositoryError, RepositoryErrorKind
from docdoctor.repositories.protocols import DocumentMetadata

logger = logging.getLogger(__name__)


def _from_os_error(error: OSError, path: Path) -> RepositoryError:
    if isinstance(error, FileNotFoundError):
        return RepositoryError.not_found(path)
    if isinstance(error, PermissionError):
        return RepositoryError.permission_denied(path)
    if isinstance(error, (IsADirectoryError, NotADirectoryError)) or (
        error.errno == errno.ENAMETOOLONG
    ):
        return RepositoryError(
            RepositoryErrorKind.INVALID_PATH,
            error.strerror or "Invalid path",
            path=path,
        )
    return RepositoryError(
        RepositoryErrorKind.IO_ERROR,
        error.strerror or str(error),
        path=path,
    )


class FileSystemRepository:
    """Reads and writes UTF-8 documents below ``root``.

    Relative paths resolve against ``root``; any path escaping it is
    rejected as ``invalid_path``.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: Path | str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(self.root):
            raise RepositoryError(
                RepositoryErrorKind.INVALID_PATH,
                "Path escapes repository root",
                path=path,
            )
        return resolved

    def read(self, path: Path | str) -> str:
        target = self.resolve(path)
        try:
            # newline="" keeps \r\n intact for byte-exact rewrites
            with target.open(encoding="utf-8", newline="") as fh:
                return fh.read()
        except UnicodeDecodeError as e:
            raise RepositoryError(
                RepositoryErrorKind.IO_ERROR,
                f"File is not valid UTF-8: {e.reason}",
                path=target,
            ) from e
        except OSError as e:
            raise _from_os_error(e, target) from e

    def write(self, path: Path | str, content: str) -> None:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("w", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except OSError as e:
            raise _from_os_error(e, target) from e
        logger.debug("Wrote %d chars to %s", len(content), target)

    def list(self, pattern: str) -> list[Path]:
        """Files under ``root`` matching a glob, sorted, root-relative."""
        try:
            matches = sorted(
                p for p in self.root.glob(pattern) if p.is_file()
            )
        except (OSError, ValueError) as e:
            raise RepositoryError(
                RepositoryErrorKind.INVALID_PATH,
                f"Invalid glob pattern {pattern!r}: {e}",
            ) from e
        return [p.relative_to(self.root) for p in matches]

    def exists(self, path: Path | str) -> bool:
        try:
            return self.resolve(path).exists()
        except RepositoryError:
            return False

    def metadata(self, path: Path | str) -> DocumentMetadata:
        target = self.resolve(path)
        try:
            stat = target.stat()
        except OSError as e:
            raise _from_os_error(e, target) from e

        created: datetime | None = None
        birth = getattr(stat, "st_birthtime", None)
        if birth is not None:
            created = datetime.fromtimestamp(birth, tz=UTC)
        return DocumentMetadata(
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            created=created,
            is_directory=os.path.isdir(target),
        )

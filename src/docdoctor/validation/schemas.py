"""Pydantic models for validation output."""

from __future__ import annotations

from pydantic import BaseModel, Field

from docdoctor.constants import SCHEMA_VERSION
from docdoctor.parser.position import SourcePosition


class SchemaError(BaseModel):
    """A structural violation, addressed by JSON Pointer."""

    message: str
    path: str = ""
    position: SourcePosition | None = None
    field: str | None = None
    snippet: str | None = None


class SchemaWarning(BaseModel):
    """A non-fatal finding about the document's metadata."""

    message: str
    path: str = ""
    position: SourcePosition | None = None
    suggestion: str | None = None


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: list[SchemaError] = Field(
        default_factory=lambda: list[SchemaError]()
    )
    warnings: list[SchemaWarning] = Field(
        default_factory=lambda: list[SchemaWarning]()
    )
    schema_version: str = SCHEMA_VERSION

    def messages(self) -> list[str]:
        return [e.message for e in self.errors] + [
            w.message for w in self.warnings
        ]

"""Schema and semantic validation of document metadata."""

from docdoctor.validation.schemas import (
    SchemaError,
    SchemaWarning,
    ValidationResult,
)
from docdoctor.validation.validator import SchemaValidator, validate_document

__all__ = [
    "SchemaError",
    "SchemaValidator",
    "SchemaWarning",
    "ValidationResult",
    "validate_document",
]

"""Stub: a declared gap in a document.

Four metadata shapes (compact scalar, compact object, expanded, legacy)
decode into this single type; downstream code never sees the shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from docdoctor.constants import (
    Priority,
    StubForm,
    StubOrigin,
    StubType,
    SyncStatus,
    VectorFamily,
)

_CLOSED_STATUSES = frozenset({SyncStatus.RESOLVED, SyncStatus.CANCELLED})


@dataclass(frozen=True)
class Stub:
    stub_type: StubType
    description: str
    stub_form: StubForm = StubForm.TRANSIENT
    priority: Priority = Priority.MEDIUM
    stub_origin: StubOrigin = StubOrigin.AUTHOR
    inline_anchor: str | None = None
    sync_status: SyncStatus | None = None
    # Unknown keys from expanded/legacy stubs, re-emitted on rewrite.
    extras: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            msg = "Stub description must be a non-empty string"
            raise ValueError(msg)

    @property
    def family(self) -> VectorFamily:
        return self.stub_type.family

    @property
    def is_blocking(self) -> bool:
        return self.stub_form.is_blocking

    @property
    def is_open(self) -> bool:
        """False once the stub is resolved or cancelled."""
        return self.sync_status not in _CLOSED_STATUSES

    @property
    def refinement_penalty(self) -> float:
        return self.stub_form.refinement_penalty

    def with_changes(self, **changes: Any) -> Stub:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Canonical expanded form, optional fields omitted when unset."""
        out: dict[str, Any] = {
            "stub_type": self.stub_type.value,
            "description": self.description,
            "stub_form": self.stub_form.value,
            "priority": self.priority.value,
            "stub_origin": self.stub_origin.value,
        }
        if self.inline_anchor is not None:
            out["inline_anchor"] = self.inline_anchor
        if self.sync_status is not None:
            out["sync_status"] = self.sync_status.value
        for key, value in self.extras.items():
            out.setdefault(key, value)
        return out

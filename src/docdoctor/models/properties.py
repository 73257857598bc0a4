"""L1 (intrinsic) properties: the metadata stored in a document."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from docdoctor.constants import Audience, Form, Origin
from docdoctor.models.refinement import Refinement
from docdoctor.models.stub import Stub


@dataclass(frozen=True)
class L1Properties:
    """Decoded frontmatter.

    ``extras`` preserves unknown keys in document order so analysis of two
    documents differing only in unknown keys is identical.
    """

    title: str | None = None
    refinement: Refinement = field(default_factory=Refinement)
    audience: Audience = Audience.INTERNAL
    form: Form = Form.DEVELOPING
    origin: Origin = Origin.UNKNOWN
    tags: tuple[str, ...] = ()
    stubs: tuple[Stub, ...] = ()
    uid: str | None = None
    aliases: tuple[str, ...] = ()
    created: date | datetime | None = None
    modified: date | datetime | None = None
    extras: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def stub_count(self) -> int:
        return len(self.stubs)

    def has_blocking_stubs(self) -> bool:
        return any(s.is_blocking for s in self.stubs)

    def blocking_stubs(self) -> list[Stub]:
        return [s for s in self.stubs if s.is_blocking]

    def open_stubs(self) -> list[Stub]:
        return [s for s in self.stubs if s.is_open]

    def with_stubs(self, stubs: list[Stub] | tuple[Stub, ...]) -> L1Properties:
        return replace(self, stubs=tuple(stubs))

    def to_dict(self) -> dict[str, Any]:
        """Canonical field names, JSON-friendly values."""
        out: dict[str, Any] = {
            "title": self.title,
            "refinement": self.refinement.value,
            "audience": self.audience.value,
            "form": self.form.value,
            "origin": self.origin.value,
            "tags": list(self.tags),
            "stubs": [s.to_dict() for s in self.stubs],
        }
        if self.uid is not None:
            out["uid"] = self.uid
        if self.aliases:
            out["aliases"] = list(self.aliases)
        if self.created is not None:
            out["created"] = self.created.isoformat()
        if self.modified is not None:
            out["modified"] = self.modified.isoformat()
        if self.extras:
            out["extras"] = dict(self.extras)
        return out

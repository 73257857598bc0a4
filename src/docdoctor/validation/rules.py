"""Semantic checks over decoded metadata.

Each rule inspects one smell and returns a warning or ``None``. Rules run
only after the metadata has passed structural validation.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass, field

from docdoctor.calculations.config import DEFAULT_CONFIG, CalculationConfig
from docdoctor.constants import (
    HIGH_REFINEMENT_WITH_BLOCKERS,
    HIGH_REFINEMENT_WITH_STUBS,
)
from docdoctor.models import L1Properties
from docdoctor.parser.position import SourcePosition
from docdoctor.validation.schemas import SchemaWarning

Locator = Callable[[str], SourcePosition | None]


def _nowhere(path: str) -> SourcePosition | None:
    return None


@dataclass(frozen=True)
class RuleContext:
    properties: L1Properties
    config: CalculationConfig = DEFAULT_CONFIG
    present: Collection[str] = ()
    locate: Locator = field(default=_nowhere)

    def warn(
        self, message: str, path: str, suggestion: str | None = None
    ) -> SchemaWarning:
        return SchemaWarning(
            message=message,
            path=path,
            position=self.locate(path),
            suggestion=suggestion,
        )


def missing_title(ctx: RuleContext) -> SchemaWarning | None:
    if ctx.properties.title:
        return None
    return ctx.warn(
        "Missing title",
        "/title",
        suggestion="Add a 'title' field to the frontmatter",
    )


def default_refinement(ctx: RuleContext) -> SchemaWarning | None:
    if "refinement" in ctx.present:
        return None
    return ctx.warn(
        "Refinement not set; defaulting to 0.0",
        "/refinement",
        suggestion="Add 'refinement: <0.0-1.0>' to the frontmatter",
    )


def high_refinement_with_stubs(ctx: RuleContext) -> SchemaWarning | None:
    props = ctx.properties
    open_stubs = props.open_stubs()
    if props.refinement.value <= HIGH_REFINEMENT_WITH_STUBS or not open_stubs:
        return None
    return ctx.warn(
        f"High refinement ({props.refinement.value:.2f}) with "
        f"{len(open_stubs)} unresolved stubs",
        "/refinement",
    )


def blocking_with_high_refinement(ctx: RuleContext) -> SchemaWarning | None:
    props = ctx.properties
    blockers = [s for s in props.open_stubs() if s.is_blocking]
    if props.refinement.value <= HIGH_REFINEMENT_WITH_BLOCKERS or not blockers:
        return None
    return ctx.warn(
        f"Blocking stubs with high refinement ({len(blockers)} blocking, "
        f"refinement {props.refinement.value:.2f})",
        "/stubs",
        suggestion="Resolve blocking stubs or lower refinement",
    )


def audience_gate(ctx: RuleContext) -> SchemaWarning | None:
    props = ctx.properties
    gate = ctx.config.audience_gates.gate(props.audience)
    if props.refinement.value >= gate:
        return None
    return ctx.warn(
        f"Refinement {props.refinement.value:.2f} is below the "
        f"{props.audience.value} audience gate ({gate:.2f})",
        "/audience",
    )


RULES: tuple[Callable[[RuleContext], SchemaWarning | None], ...] = (
    missing_title,
    default_refinement,
    high_refinement_with_stubs,
    blocking_with_high_refinement,
    audience_gate,
)


def semantic_warnings(
    properties: L1Properties,
    config: CalculationConfig | None = None,
    *,
    present: Collection[str] = (),
    locate: Locator | None = None,
) -> list[SchemaWarning]:
    ctx = RuleContext(
        properties=properties,
        config=config or DEFAULT_CONFIG,
        present=present,
        locate=locate or _nowhere,
    )
    return [w for rule in RULES if (w := rule(ctx)) is not None]

"""Calculation parameters and layered merging.

Every section is a frozen pydantic model with built-in defaults. Layers are
plain mappings folded left to right; the validity predicate runs once on
the merged result and reports every violating dotted path.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Iterable, Mapping
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from docdoctor.constants import (
    Audience,
    Form,
    Origin,
    Priority,
    StubForm,
    VectorFamily,
)
from docdoctor.errors import ConfigValidationError, ConfigViolation

logger = logging.getLogger(__name__)

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]
Weight = Annotated[float, Field(ge=0.0)]
Cadence = Annotated[float, Field(gt=0.0)]

_SECTION_CONFIG = ConfigDict(extra="forbid", frozen=True)


class HealthConfig(BaseModel):
    """Weights of the subtractive health formula."""

    model_config = _SECTION_CONFIG

    refinement_weight: UnitFloat = 1.0
    stub_weight: UnitFloat = 1.0


class PriorityMultipliers(BaseModel):
    model_config = _SECTION_CONFIG

    low: Weight = 0.5
    medium: Weight = 1.0
    high: Weight = 1.5
    critical: Weight = 2.0

    def multiplier(self, priority: Priority) -> float:
        return getattr(self, priority.value)


class StubPenaltyConfig(BaseModel):
    """Absolute penalty per stub form, scaled by priority."""

    model_config = _SECTION_CONFIG

    transient: UnitFloat = 0.02
    persistent: UnitFloat = 0.05
    blocking: UnitFloat = 0.10
    structural: UnitFloat = 0.15
    priority_multipliers: PriorityMultipliers = Field(
        default_factory=PriorityMultipliers
    )

    def penalty(self, form: StubForm) -> float:
        return getattr(self, form.value)


class AudienceGates(BaseModel):
    model_config = _SECTION_CONFIG

    personal: UnitFloat = 0.50
    internal: UnitFloat = 0.70
    trusted: UnitFloat = 0.80
    public: UnitFloat = 0.90

    @model_validator(mode="after")
    def _monotone(self) -> AudienceGates:
        order = list(Audience)
        for lower, higher in zip(order, order[1:]):
            if self.gate(higher) < self.gate(lower):
                raise ValueError(
                    f"gates must be non-decreasing: {higher.value} "
                    f"({self.gate(higher)}) < {lower.value} "
                    f"({self.gate(lower)})"
                )
        return self

    def gate(self, audience: Audience) -> float:
        return getattr(self, audience.value)


class FormCadences(BaseModel):
    """Freshness half-life in days; ``None`` never decays."""

    model_config = _SECTION_CONFIG

    transient: Cadence | None = 7.0
    developing: Cadence | None = 30.0
    stable: Cadence | None = 90.0
    evergreen: Cadence | None = 365.0
    canonical: Cadence | None = None

    def cadence(self, form: Form) -> float:
        value = getattr(self, form.value)
        return math.inf if value is None else value


class TrustFactors(BaseModel):
    model_config = _SECTION_CONFIG

    human: UnitFloat = 0.90
    collaborative: UnitFloat = 0.85
    ai_assisted: UnitFloat = 0.70
    ai_generated: UnitFloat = 0.50
    imported: UnitFloat = 0.60
    derived: UnitFloat = 0.60
    unknown: UnitFloat = 0.50

    def factor(self, origin: Origin) -> float:
        return getattr(self, origin.value)


class FamilyWeights(BaseModel):
    model_config = _SECTION_CONFIG

    retrieval: Weight = 1.0
    computation: Weight = 1.0
    synthesis: Weight = 1.0
    creation: Weight = 1.0
    structural: Weight = 1.0

    def weight(self, family: VectorFamily) -> float:
        return getattr(self, family.value)


class VectorPhysicsConfig(BaseModel):
    model_config = _SECTION_CONFIG

    family_weights: FamilyWeights = Field(default_factory=FamilyWeights)
    base_friction: Weight = 0.0
    blocking_friction: Weight = 0.1


class CalculationConfig(BaseModel):
    """All tunables of the calculation engine."""

    model_config = _SECTION_CONFIG

    version: str = "1.0"
    health: HealthConfig = Field(default_factory=HealthConfig)
    stub_penalties: StubPenaltyConfig = Field(
        default_factory=StubPenaltyConfig
    )
    audience_gates: AudienceGates = Field(default_factory=AudienceGates)
    form_cadences: FormCadences = Field(default_factory=FormCadences)
    trust_factors: TrustFactors = Field(default_factory=TrustFactors)
    vector_physics: VectorPhysicsConfig = Field(
        default_factory=VectorPhysicsConfig
    )

    def is_default(self) -> bool:
        return self == DEFAULT_CONFIG

    def to_layer(self) -> dict[str, Any]:
        """Plain mapping suitable as a merge layer or a YAML document."""
        return self.model_dump(mode="python")


DEFAULT_CONFIG = CalculationConfig()


# ── Merging ──────────────────────────────────────────────


def deep_merge(
    base: Mapping[str, Any], override: Mapping[str, Any]
) -> dict[str, Any]:
    """Nested mappings merge recursively; any other value replaces."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def unknown_keys(
    data: Mapping[str, Any],
    model: type[BaseModel] = CalculationConfig,
    prefix: str = "",
) -> list[str]:
    """Dotted paths in ``data`` that name no configuration field."""
    found: list[str] = []
    for key, value in data.items():
        path = f"{prefix}{key}"
        field = model.model_fields.get(str(key))
        if field is None:
            found.append(path)
            continue
        nested = field.annotation
        if (
            isinstance(nested, type)
            and issubclass(nested, BaseModel)
            and isinstance(value, Mapping)
        ):
            found.extend(unknown_keys(value, nested, f"{path}."))
    return found


def _drop_paths(data: dict[str, Any], paths: Iterable[str]) -> None:
    for path in paths:
        *parents, leaf = path.split(".")
        target: Any = data
        for part in parents:
            target = target[part]
        target.pop(leaf, None)


def _violations(error: ValidationError) -> list[ConfigViolation]:
    out: list[ConfigViolation] = []
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"]) or "<root>"
        out.append(ConfigViolation(path=path, message=item["msg"]))
    return out


def validate_config(
    data: Mapping[str, Any], *, strict: bool = False
) -> list[ConfigViolation]:
    """Every violation in a merged mapping; empty when valid."""
    merged = deep_merge(DEFAULT_CONFIG.to_layer(), data)
    if not strict:
        _drop_paths(merged, unknown_keys(merged))
    try:
        CalculationConfig.model_validate(merged)
    except ValidationError as e:
        return _violations(e)
    return []


def merge_config_layers(
    layers: Iterable[Mapping[str, Any]], *, strict: bool = False
) -> CalculationConfig:
    """Fold layers over the defaults and validate the result.

    Later layers win. Unknown keys are violations when ``strict``;
    otherwise they are logged and ignored.
    """
    merged = DEFAULT_CONFIG.to_layer()
    for layer in layers:
        merged = deep_merge(merged, layer)

    ignored = unknown_keys(merged)
    if ignored and not strict:
        logger.warning(
            "Ignoring unknown configuration keys: %s", ", ".join(ignored)
        )
        _drop_paths(merged, ignored)

    try:
        return CalculationConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigValidationError(_violations(e)) from e

"""Vector physics over a document's stubs.

Each family of stubs carries potential energy (priority-weighted demand)
slowed by friction (blocking stubs). The outputs are informational and
drive ordering of editorial work.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from pydantic import BaseModel, Field

from docdoctor.calculations.config import DEFAULT_CONFIG, CalculationConfig
from docdoctor.constants import VectorFamily
from docdoctor.errors import CalculationError
from docdoctor.models import Stub


class FamilyVector(BaseModel):
    family: VectorFamily
    stub_count: int = 0
    blocking_count: int = 0
    potential_energy: float = 0.0
    friction: float = 0.0
    magnitude: float = 0.0


class VectorSummary(BaseModel):
    """Per-family vectors plus the document aggregate."""

    families: list[FamilyVector] = Field(
        default_factory=lambda: list[FamilyVector]()
    )
    stub_count: int = 0
    blocking_count: int = 0
    potential_energy: float = 0.0
    friction: float = 0.0
    magnitude: float = 0.0
    remaining_work: float = 0.0

    def family(self, family: VectorFamily) -> FamilyVector:
        for vector in self.families:
            if vector.family == family:
                return vector
        return FamilyVector(family=family)


def potential_energy(
    stubs: Iterable[Stub],
    family_weight: float = 1.0,
    config: CalculationConfig = DEFAULT_CONFIG,
) -> float:
    multipliers = config.stub_penalties.priority_multipliers
    return family_weight * math.fsum(
        multipliers.multiplier(s.priority) for s in stubs
    )


def friction(
    stubs: Iterable[Stub], config: CalculationConfig = DEFAULT_CONFIG
) -> float:
    physics = config.vector_physics
    blocking = sum(1 for s in stubs if s.is_blocking)
    return physics.base_friction + physics.blocking_friction * blocking


def magnitude(energy: float, friction_value: float) -> float:
    return math.sqrt(energy**2 / (1.0 + friction_value**2))


def remaining_work(
    stubs: Iterable[Stub], config: CalculationConfig = DEFAULT_CONFIG
) -> float:
    """Priority-weighted count of stubs not yet resolved or cancelled."""
    multipliers = config.stub_penalties.priority_multipliers
    return math.fsum(
        multipliers.multiplier(s.priority) for s in stubs if s.is_open
    )


def forecast_completion(
    stubs: Iterable[Stub],
    velocity: float,
    config: CalculationConfig = DEFAULT_CONFIG,
) -> float:
    """Time units to clear remaining work; infinite when not moving."""
    if math.isnan(velocity):
        raise CalculationError("velocity must be a number")
    if velocity <= 0:
        return math.inf
    return remaining_work(stubs, config) / velocity


def calculate_vectors(
    stubs: Iterable[Stub], config: CalculationConfig = DEFAULT_CONFIG
) -> VectorSummary:
    stubs = tuple(stubs)
    weights = config.vector_physics.family_weights

    families: list[FamilyVector] = []
    total_energy = 0.0
    for family in VectorFamily:
        members = [s for s in stubs if s.family == family]
        energy = potential_energy(members, weights.weight(family), config)
        drag = friction(members, config)
        total_energy += energy
        families.append(
            FamilyVector(
                family=family,
                stub_count=len(members),
                blocking_count=sum(1 for s in members if s.is_blocking),
                potential_energy=energy,
                friction=drag,
                magnitude=magnitude(energy, drag),
            )
        )

    drag = friction(stubs, config)
    return VectorSummary(
        families=families,
        stub_count=len(stubs),
        blocking_count=sum(1 for s in stubs if s.is_blocking),
        potential_energy=total_energy,
        friction=drag,
        magnitude=magnitude(total_energy, drag),
        remaining_work=remaining_work(stubs, config),
    )

"""L2 state dimensions derived from L1 properties.

All functions are pure. Results are clamped to their declared ranges as
the last step of each formula.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date, datetime

from pydantic import BaseModel

from docdoctor.calculations.config import DEFAULT_CONFIG, CalculationConfig
from docdoctor.constants import Audience, Form, Origin
from docdoctor.errors import CalculationError
from docdoctor.models import L1Properties, Refinement, Stub

_LN2 = math.log(2)
_SECONDS_PER_DAY = 86_400.0


class Usefulness(BaseModel):
    """Audience fit: how far refinement clears the audience gate."""

    margin: float
    is_useful: bool
    gate: float
    refinement: float
    audience: Audience


class StateDimensions(BaseModel):
    health: float
    usefulness: Usefulness
    freshness: float
    trust_level: float
    stub_penalty: float
    using_defaults: bool = True


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def _refinement(value: Refinement | float) -> float:
    return value.value if isinstance(value, Refinement) else float(value)


def calculate_stub_penalty(
    stubs: Iterable[Stub], config: CalculationConfig = DEFAULT_CONFIG
) -> float:
    """Sum of |form penalty| x priority multiplier, clamped to [0, 1]."""
    penalties = config.stub_penalties
    multipliers = penalties.priority_multipliers
    total = math.fsum(
        abs(penalties.penalty(s.stub_form))
        * multipliers.multiplier(s.priority)
        for s in stubs
    )
    return clamp(total)


def calculate_health(
    refinement: Refinement | float,
    stubs: Iterable[Stub] = (),
    config: CalculationConfig = DEFAULT_CONFIG,
) -> float:
    penalty = calculate_stub_penalty(stubs, config)
    weights = config.health
    return clamp(
        weights.refinement_weight * _refinement(refinement)
        - weights.stub_weight * min(penalty, 1.0)
    )


def calculate_usefulness(
    refinement: Refinement | float,
    audience: Audience,
    config: CalculationConfig = DEFAULT_CONFIG,
) -> Usefulness:
    r = _refinement(refinement)
    gate = config.audience_gates.gate(audience)
    return Usefulness(
        margin=clamp(r - gate, -1.0, 1.0),
        is_useful=r >= gate,
        gate=gate,
        refinement=r,
        audience=audience,
    )


def half_life_decay(days: float, cadence: float) -> float:
    """``exp(-ln2 * days / cadence)``; an infinite cadence never decays.

    Raises ``CalculationError`` for a non-positive or NaN cadence.
    """
    if math.isnan(cadence) or cadence <= 0:
        raise CalculationError(f"Cadence must be positive, got {cadence}")
    if math.isnan(days):
        raise CalculationError("days_since_update must be a number")
    if math.isinf(cadence):
        return 1.0
    return clamp(math.exp(-_LN2 * max(days, 0.0) / cadence))


def calculate_freshness(
    days_since_update: float | None,
    form: Form,
    config: CalculationConfig = DEFAULT_CONFIG,
) -> float:
    """Absent update time counts as fresh; negative ages count as zero."""
    if days_since_update is None:
        return 1.0
    return half_life_decay(
        float(days_since_update), config.form_cadences.cadence(form)
    )


def calculate_trust(
    origin: Origin, config: CalculationConfig = DEFAULT_CONFIG
) -> float:
    return clamp(config.trust_factors.factor(origin))


def days_since(
    moment: date | datetime, as_of: date | datetime
) -> float:
    """Elapsed days between two metadata timestamps."""
    if isinstance(moment, datetime) and isinstance(as_of, datetime):
        if (moment.tzinfo is None) != (as_of.tzinfo is None):
            moment = moment.replace(tzinfo=None)
            as_of = as_of.replace(tzinfo=None)
        return (as_of - moment).total_seconds() / _SECONDS_PER_DAY
    if isinstance(moment, datetime):
        moment = moment.date()
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    return float((as_of - moment).days)


def calculate_state_dimensions(
    properties: L1Properties,
    config: CalculationConfig | None = None,
    days_since_update: float | None = None,
) -> StateDimensions:
    cfg = config or DEFAULT_CONFIG
    return StateDimensions(
        health=calculate_health(properties.refinement, properties.stubs, cfg),
        usefulness=calculate_usefulness(
            properties.refinement, properties.audience, cfg
        ),
        freshness=calculate_freshness(
            days_since_update, properties.form, cfg
        ),
        trust_level=calculate_trust(properties.origin, cfg),
        stub_penalty=calculate_stub_penalty(properties.stubs, cfg),
        using_defaults=config is None or config.is_default(),
    )

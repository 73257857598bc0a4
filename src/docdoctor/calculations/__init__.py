"""Deterministic calculation engine and its configuration."""

from docdoctor.calculations.config import (
    CalculationConfig,
    merge_config_layers,
)
from docdoctor.calculations.state import (
    StateDimensions,
    Usefulness,
    calculate_freshness,
    calculate_health,
    calculate_state_dimensions,
    calculate_stub_penalty,
    calculate_trust,
    calculate_usefulness,
)
from docdoctor.calculations.vector import (
    VectorSummary,
    calculate_vectors,
    forecast_completion,
)

__all__ = [
    "CalculationConfig",
    "StateDimensions",
    "Usefulness",
    "VectorSummary",
    "calculate_freshness",
    "calculate_health",
    "calculate_state_dimensions",
    "calculate_stub_penalty",
    "calculate_trust",
    "calculate_usefulness",
    "calculate_vectors",
    "forecast_completion",
    "merge_config_layers",
]

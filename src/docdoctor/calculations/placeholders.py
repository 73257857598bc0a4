"""Dimensions that need context beyond a single document.

Graph and history engines are not part of this package. These types hold
zeroed values so callers can depend on their shape now.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class NetworkDimensions:
    """Position in the link graph (requires vault-wide context)."""

    network_position: float = 0.0
    propagation_risk: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class TrajectoryDimensions:
    """Change over time (requires revision history)."""

    drift: float = 0.0
    health_trend: float = 0.0
    adoption: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PriorityDimensions:
    attention_priority: float = 0.0
    retention_value: float = 0.0
    effort_to_improve: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

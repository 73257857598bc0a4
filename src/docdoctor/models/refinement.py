"""Refinement: a document's editorial maturity score."""

from __future__ import annotations

import math
from dataclasses import dataclass

from docdoctor.constants import RefinementLabel


@dataclass(frozen=True, order=True)
class Refinement:
    """Bounded real in [0, 1]. Construction outside the range raises."""

    value: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(
            self.value, (int, float)
        ):
            msg = f"Refinement must be a number, got {self.value!r}"
            raise ValueError(msg)
        if math.isnan(self.value) or not 0.0 <= self.value <= 1.0:
            msg = (
                f"Refinement {self.value} is out of range "
                f"(must be 0.0-1.0)"
            )
            raise ValueError(msg)
        object.__setattr__(self, "value", float(self.value))

    @property
    def label(self) -> RefinementLabel:
        return RefinementLabel.for_value(self.value)

    def __float__(self) -> float:
        return self.value

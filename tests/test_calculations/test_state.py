"""Tests for L2 state dimensions."""

import math
from datetime import date, datetime

import pytest

from docdoctor.calculations.config import (
    DEFAULT_CONFIG,
    merge_config_layers,
)
from docdoctor.calculations.state import (
    calculate_freshness,
    calculate_health,
    calculate_state_dimensions,
    calculate_stub_penalty,
    calculate_trust,
    calculate_usefulness,
    clamp,
    days_since,
    half_life_decay,
)
from docdoctor.constants import (
    Audience,
    Form,
    Origin,
    Priority,
    StubForm,
    StubType,
    SyncStatus,
)
from docdoctor.errors import CalculationError
from docdoctor.models import L1Properties, Refinement, Stub


def stub(
    form: StubForm = StubForm.TRANSIENT,
    priority: Priority = Priority.MEDIUM,
    **kwargs: object,
) -> Stub:
    return Stub(
        stub_type=StubType.VERIFY,
        description="check",
        stub_form=form,
        priority=priority,
        **kwargs,  # type: ignore[arg-type]
    )


class TestStubPenalty:
    def test_no_stubs(self) -> None:
        assert calculate_stub_penalty([]) == 0.0

    def test_blocking_high(self) -> None:
        penalty = calculate_stub_penalty(
            [stub(StubForm.BLOCKING, Priority.HIGH)]
        )
        assert penalty == pytest.approx(0.15)

    @pytest.mark.parametrize(
        ("form", "priority", "expected"),
        [
            (StubForm.TRANSIENT, Priority.LOW, 0.01),
            (StubForm.PERSISTENT, Priority.MEDIUM, 0.05),
            (StubForm.STRUCTURAL, Priority.CRITICAL, 0.30),
        ],
    )
    def test_form_times_priority(
        self, form: StubForm, priority: Priority, expected: float
    ) -> None:
        assert calculate_stub_penalty([stub(form, priority)]) == (
            pytest.approx(expected)
        )

    def test_clamped_to_one(self) -> None:
        many = [stub(StubForm.STRUCTURAL, Priority.CRITICAL)] * 10
        assert calculate_stub_penalty(many) == 1.0

    def test_configured_penalties(self) -> None:
        config = merge_config_layers(
            [{"stub_penalties": {"transient": 0.1}}]
        )
        assert calculate_stub_penalty([stub()], config) == pytest.approx(0.1)


class TestHealth:
    def test_bare_document(self) -> None:
        assert calculate_health(Refinement(0.0)) == 0.0

    def test_refinement_minus_penalty(self) -> None:
        health = calculate_health(
            0.95, [stub(StubForm.BLOCKING, Priority.HIGH)]
        )
        assert health == pytest.approx(0.80)

    def test_never_negative(self) -> None:
        health = calculate_health(0.1, [stub(StubForm.STRUCTURAL)] * 3)
        assert health == 0.0

    def test_weights(self) -> None:
        config = merge_config_layers(
            [{"health": {"refinement_weight": 0.5, "stub_weight": 0.0}}]
        )
        assert calculate_health(
            0.8, [stub(StubForm.BLOCKING)], config
        ) == pytest.approx(0.4)

    @pytest.mark.parametrize("refinement", [0.0, 0.3, 0.75, 1.0])
    def test_adding_a_stub_never_increases_health(
        self, refinement: float
    ) -> None:
        stubs: list[Stub] = []
        previous = calculate_health(refinement, stubs)
        for form in StubForm:
            stubs.append(stub(form, Priority.HIGH))
            current = calculate_health(refinement, stubs)
            assert current <= previous
            previous = current

    def test_raising_refinement_never_decreases_health(self) -> None:
        stubs = [stub(StubForm.PERSISTENT, Priority.CRITICAL)]
        values = [i / 20 for i in range(21)]
        healths = [calculate_health(r, stubs) for r in values]
        assert healths == sorted(healths)


class TestUsefulness:
    def test_public_gate_met(self) -> None:
        result = calculate_usefulness(0.95, Audience.PUBLIC)
        assert result.margin == pytest.approx(0.05)
        assert result.is_useful
        assert result.gate == 0.90
        assert result.refinement == 0.95
        assert result.audience == Audience.PUBLIC

    def test_public_gate_missed(self) -> None:
        result = calculate_usefulness(0.8, Audience.PUBLIC)
        assert result.margin == pytest.approx(-0.10)
        assert not result.is_useful

    def test_exactly_at_gate_is_useful(self) -> None:
        result = calculate_usefulness(0.7, Audience.INTERNAL)
        assert result.is_useful

    @pytest.mark.parametrize("audience", list(Audience))
    def test_is_useful_iff_refinement_reaches_gate(
        self, audience: Audience
    ) -> None:
        for i in range(101):
            r = i / 100
            result = calculate_usefulness(r, audience)
            assert result.is_useful == (r >= result.gate)
            assert -1.0 <= result.margin <= 1.0

    def test_margin_monotone_in_refinement(self) -> None:
        margins = [
            calculate_usefulness(i / 10, Audience.TRUSTED).margin
            for i in range(11)
        ]
        assert margins == sorted(margins)


class TestFreshness:
    def test_half_life_at_cadence(self) -> None:
        assert calculate_freshness(30, Form.DEVELOPING) == pytest.approx(
            0.5, abs=1e-12
        )

    @pytest.mark.parametrize("form", [f for f in Form if f != Form.CANONICAL])
    def test_half_life_holds_for_every_finite_cadence(
        self, form: Form
    ) -> None:
        assert calculate_freshness(form.cadence_days, form) == pytest.approx(
            0.5, abs=1e-12
        )

    @pytest.mark.parametrize("days", [0, 30, 10_000])
    def test_canonical_never_decays(self, days: float) -> None:
        assert calculate_freshness(days, Form.CANONICAL) == 1.0

    def test_absent_update_time_is_fresh(self) -> None:
        assert calculate_freshness(None, Form.TRANSIENT) == 1.0

    def test_future_dates_count_as_fresh(self) -> None:
        assert calculate_freshness(-5, Form.TRANSIENT) == 1.0

    def test_invalid_cadence(self) -> None:
        with pytest.raises(CalculationError):
            half_life_decay(10, -1)
        with pytest.raises(CalculationError):
            half_life_decay(10, 0)
        with pytest.raises(CalculationError):
            half_life_decay(math.nan, 30)

    def test_calculation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            half_life_decay(1, math.nan)


class TestTrust:
    def test_human(self) -> None:
        assert calculate_trust(Origin.HUMAN) == 0.90

    def test_unknown_defaults_to_half(self) -> None:
        assert calculate_trust(Origin.UNKNOWN) == 0.5


class TestDaysSince:
    def test_dates(self) -> None:
        assert days_since(date(2024, 1, 1), date(2024, 1, 31)) == 30.0

    def test_datetimes(self) -> None:
        elapsed = days_since(
            datetime(2024, 1, 1, 0, 0), datetime(2024, 1, 2, 12, 0)
        )
        assert elapsed == pytest.approx(1.5)

    def test_mixed(self) -> None:
        assert days_since(datetime(2024, 1, 1, 18), date(2024, 1, 3)) == 2.0


class TestStateDimensions:
    def test_defaults(self) -> None:
        dims = calculate_state_dimensions(L1Properties())
        assert dims.health == 0.0
        assert dims.freshness == 1.0
        assert dims.trust_level == 0.5
        assert dims.stub_penalty == 0.0
        assert dims.using_defaults
        assert not dims.usefulness.is_useful

    def test_custom_config_flagged(self) -> None:
        config = merge_config_layers([{"trust_factors": {"unknown": 0.2}}])
        dims = calculate_state_dimensions(L1Properties(), config)
        assert dims.trust_level == 0.2
        assert not dims.using_defaults

    def test_explicit_default_config_counts_as_default(self) -> None:
        dims = calculate_state_dimensions(L1Properties(), DEFAULT_CONFIG)
        assert dims.using_defaults

    def test_ranges(self) -> None:
        props = L1Properties(
            refinement=Refinement(1.0),
            form=Form.TRANSIENT,
            stubs=(stub(StubForm.STRUCTURAL, Priority.CRITICAL),) * 4,
        )
        dims = calculate_state_dimensions(props, days_since_update=1000)
        for value in (dims.health, dims.freshness, dims.trust_level):
            assert 0.0 <= value <= 1.0
        assert -1.0 <= dims.usefulness.margin <= 1.0

    def test_resolved_stubs_still_count(self) -> None:
        done = stub(StubForm.BLOCKING, sync_status=SyncStatus.RESOLVED)
        props = L1Properties(refinement=Refinement(0.5), stubs=(done,))
        assert calculate_state_dimensions(props).stub_penalty == (
            pytest.approx(0.10)
        )

    def test_deterministic(self) -> None:
        props = L1Properties(
            refinement=Refinement(0.63),
            stubs=(stub(StubForm.PERSISTENT, Priority.HIGH),) * 3,
        )
        first = calculate_state_dimensions(props, days_since_update=12.5)
        second = calculate_state_dimensions(props, days_since_update=12.5)
        assert first == second


def test_clamp() -> None:
    assert clamp(2.0) == 1.0
    assert clamp(-2.0) == 0.0
    assert clamp(-2.0, -1.0, 1.0) == -1.0

"""Tests for the logistic pressure transform."""

import math

import pytest

from headroom.system.config import DEFAULT_PARAMS
from headroom.system.models import SigmoidParams, SignalKind
from headroom.system.sigmoid import pressure


def _params(midpoint=0.65, steepness=8.0):
    return SigmoidParams(midpoint=midpoint, steepness=steepness)


class TestPressure:

    @pytest.mark.parametrize("kind", list(SignalKind))
    def test_half_at_midpoint(self, kind):
        params = DEFAULT_PARAMS[kind]
        assert pressure(params.midpoint, params) == pytest.approx(0.5)

    @pytest.mark.parametrize("x", [-3.0, 0.0, 0.4, 1.0, 7.5])
    def test_zero_steepness_is_flat(self, x):
        assert pressure(x, _params(steepness=0.0)) == 0.5

    def test_inside_unit_interval(self):
        for kind, params in DEFAULT_PARAMS.items():
            for i in range(0, 101):
                x = i / 100.0
                p = pressure(x, params)
                assert 0.0 <= p <= 1.0, (kind, x, p)
                # away from float saturation the bounds are never reached
                if abs(params.steepness * (x - params.midpoint)) <= 30:
                    assert 0.0 < p < 1.0, (kind, x, p)

    def test_non_decreasing_in_x(self):
        params = _params()
        xs = [i / 50.0 for i in range(-50, 101)]
        ps = [pressure(x, params) for x in xs]
        assert all(b >= a for a, b in zip(ps, ps[1:]))

    def test_matches_closed_form(self):
        params = _params(midpoint=0.85, steepness=18.0)
        expected = 1.0 / (1.0 + math.exp(-18.0 * (0.95 - 0.85)))
        assert pressure(0.95, params) == pytest.approx(expected)

    def test_extreme_inputs_saturate_without_error(self):
        params = _params()
        assert pressure(1e6, params) == 1.0
        assert pressure(-1e6, params) == 0.0
        assert pressure(1e308, params) == 1.0
        assert pressure(-1e308, params) == 0.0

    def test_never_nan_for_finite_input(self):
        params = _params(steepness=1e300)
        for x in (-1e300, -1.0, 0.65, 1.0, 1e300):
            assert not math.isnan(pressure(x, params))

    def test_negative_steepness_inverts(self):
        assert pressure(0.9, _params(steepness=-8.0)) < 0.5

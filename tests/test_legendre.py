"""
Tests for associated Legendre polynomials.
"""

import numpy as np
import pytest
from scipy.special import lpmv

from dft_paw.errors import DomainError
from dft_paw.legendre import ass_leg_pol, double_factorial


class TestAssLegPol:
    """Tests for ass_leg_pol."""

    @pytest.fixture
    def x_grid(self):
        """Arguments covering [-1, 1] including both end points."""
        return np.linspace(-1.0, 1.0, 41)

    def test_p00_is_one(self, x_grid):
        """P_0^0 is 1 everywhere."""
        for x in x_grid:
            assert ass_leg_pol(0, 0, x) == 1.0

    def test_closed_forms(self, x_grid):
        """Low orders against their closed forms (Condon-Shortley phase)."""
        s = np.sqrt(1 - x_grid**2)
        expected = {
            (1, 0): x_grid,
            (1, 1): -s,
            (2, 0): 0.5 * (3 * x_grid**2 - 1),
            (2, 1): -3 * x_grid * s,
            (2, 2): 3 * (1 - x_grid**2),
            (3, 0): 0.5 * (5 * x_grid**3 - 3 * x_grid),
            (3, 3): -15 * s**3,
        }
        for (l, m), ref in expected.items():
            np.testing.assert_allclose(ass_leg_pol(l, m, x_grid), ref, atol=1e-12)

    def test_matches_scipy(self, x_grid):
        """All (l, m) up to l = 5 against scipy's lpmv."""
        for l in range(6):
            for m in range(l + 1):
                for x in x_grid:
                    assert ass_leg_pol(l, m, x) == pytest.approx(lpmv(m, l, x), abs=1e-8)

    def test_scalar_returns_float(self):
        """Scalar input gives a Python float."""
        assert isinstance(ass_leg_pol(3, 1, 0.3), float)

    def test_array_shape_preserved(self):
        """Array input keeps its shape."""
        x = np.linspace(-0.9, 0.9, 12).reshape(3, 4)
        assert ass_leg_pol(4, 2, x).shape == (3, 4)

    def test_end_points(self):
        """P_l^m(+-1) vanishes for m > 0, P_l^0(+-1) = (+-1)^l."""
        for l in range(1, 6):
            assert ass_leg_pol(l, 0, 1.0) == pytest.approx(1.0)
            assert ass_leg_pol(l, 0, -1.0) == pytest.approx((-1.0) ** l)
            for m in range(1, l + 1):
                assert ass_leg_pol(l, m, 1.0) == pytest.approx(0.0, abs=1e-14)

    def test_rounding_overshoot_is_clamped(self):
        """|x| slightly above 1 from rounding is treated as 1."""
        assert ass_leg_pol(3, 0, 1.0 + 1e-13) == pytest.approx(1.0)
        assert ass_leg_pol(2, 2, -1.0 - 1e-13) == pytest.approx(0.0, abs=1e-12)

    @pytest.mark.parametrize("l,m,x", [
        (2, 3, 0.5),
        (2, -1, 0.5),
        (-1, 0, 0.5),
        (2, 1, 1.5),
        (2, 1, -1.001),
        (1, 0, np.nan),
    ])
    def test_domain_errors(self, l, m, x):
        """Out-of-range arguments raise DomainError."""
        with pytest.raises(DomainError):
            ass_leg_pol(l, m, x)

    def test_domain_error_in_array(self):
        """A single bad element of an array is rejected."""
        with pytest.raises(DomainError):
            ass_leg_pol(1, 0, np.array([0.0, 0.5, 2.0]))

    def test_domain_error_is_value_error(self):
        """DomainError can be caught as ValueError."""
        with pytest.raises(ValueError):
            ass_leg_pol(1, 2, 0.0)


class TestDoubleFactorial:
    """Tests for double_factorial."""

    def test_values(self):
        assert double_factorial(-1) == 1
        assert double_factorial(0) == 1
        assert double_factorial(1) == 1
        assert double_factorial(5) == 15
        assert double_factorial(6) == 48

    def test_pmm_closed_form(self):
        """P_m^m(x) = (-1)^m (2m-1)!! (1-x^2)^(m/2)."""
        x = 0.37
        for m in range(6):
            ref = (-1) ** m * double_factorial(2 * m - 1) * (1 - x**2) ** (m / 2)
            assert ass_leg_pol(m, m, x) == pytest.approx(ref, rel=1e-12)

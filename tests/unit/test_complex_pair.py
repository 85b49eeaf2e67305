"""
Unit tests for ComplexPair arithmetic, checked against Python's complex.
"""

import math

import pytest

from src.spectral import ComplexPair

VALUES = [
    (1.5, -2.0),
    (0.0, 3.0),
    (-4.25, 0.5),
    (2.0, 0.0),
]


def _as_complex(pair: ComplexPair) -> complex:
    return complex(pair.real, pair.imag)


class TestComplexPair:

    @pytest.mark.parametrize("a", VALUES)
    @pytest.mark.parametrize("b", VALUES)
    def test_add_mul_div(self, a, b):
        pa, pb = ComplexPair(*a), ComplexPair(*b)
        ca, cb = complex(*a), complex(*b)

        assert _as_complex(pa + pb) == pytest.approx(ca + cb)
        assert _as_complex(pa * pb) == pytest.approx(ca * cb)
        assert _as_complex(pa / pb) == pytest.approx(ca / cb)

    def test_real_operands(self):
        z = ComplexPair(1.0, 2.0)

        assert 2 * z == ComplexPair(2.0, 4.0)
        assert z + 3 == ComplexPair(4.0, 2.0)
        assert 3 + z == ComplexPair(4.0, 2.0)
        assert _as_complex(1 / z) == pytest.approx(1 / complex(1.0, 2.0))

    def test_abs(self):
        z = ComplexPair(3.0, -4.0)
        assert abs(z) == 5.0
        assert z.abs_squared() == 25.0

    def test_division_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            ComplexPair(1.0, 1.0) / ComplexPair(0.0, 0.0)

    def test_immutable(self):
        z = ComplexPair(1.0, 1.0)
        with pytest.raises(AttributeError):
            z.real = 2.0

    def test_unit_circle(self):
        z = ComplexPair(math.cos(0.3), math.sin(0.3))
        assert abs(z * z * z) == pytest.approx(1.0)

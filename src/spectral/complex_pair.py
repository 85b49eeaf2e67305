"""
Minimal complex arithmetic on explicit (real, imag) pairs.

Used to evaluate the ISO 2631 weighting filters at s = i*w, so the
transfer-function cascade can be checked term by term against hand
calculations.
"""

import math
from dataclasses import dataclass
from typing import Union

Number = Union[int, float]


@dataclass(frozen=True)
class ComplexPair:
    """Complex number as a pair of reals."""
    real: float
    imag: float = 0.0

    @classmethod
    def of(cls, value: Union["ComplexPair", Number]) -> "ComplexPair":
        if isinstance(value, ComplexPair):
            return value
        return cls(float(value), 0.0)

    def __add__(self, other: Union["ComplexPair", Number]) -> "ComplexPair":
        other = ComplexPair.of(other)
        return ComplexPair(self.real + other.real, self.imag + other.imag)

    __radd__ = __add__

    def __mul__(self, other: Union["ComplexPair", Number]) -> "ComplexPair":
        other = ComplexPair.of(other)
        return ComplexPair(
            self.real * other.real - self.imag * other.imag,
            self.real * other.imag + self.imag * other.real,
        )

    __rmul__ = __mul__

    def __truediv__(self, other: Union["ComplexPair", Number]) -> "ComplexPair":
        other = ComplexPair.of(other)
        denominator = other.real * other.real + other.imag * other.imag
        if denominator == 0.0:
            raise ZeroDivisionError("complex division by zero")
        return ComplexPair(
            (self.real * other.real + self.imag * other.imag) / denominator,
            (self.imag * other.real - self.real * other.imag) / denominator,
        )

    def __rtruediv__(self, other: Number) -> "ComplexPair":
        return ComplexPair.of(other) / self

    def __abs__(self) -> float:
        return math.hypot(self.real, self.imag)

    def abs_squared(self) -> float:
        return self.real * self.real + self.imag * self.imag

"""Streaming filters for noisy sensor readings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T", int, float)


def _divide(numerator: T, denominator: int) -> T:
    """Divide, truncating toward zero when both operands are integers."""
    if isinstance(numerator, int):
        quotient = abs(numerator) // abs(denominator)
        negative = (numerator < 0) != (denominator < 0)
        return -quotient if negative else quotient
    return numerator / denominator


class Filter(ABC, Generic[T]):
    """A filter that turns a stream of values into a smoothed stream."""

    @abstractmethod
    def filter(self, value: T) -> T:
        """Feed *value* and return the filtered output."""


class MovingAvgFilter(Filter[T]):
    """Average of the last *nsamples* values, missing samples counting as zero.

    Integer input gives an integer average truncated toward zero.
    """

    def __init__(self, nsamples: int) -> None:
        if nsamples <= 0:
            raise ValueError("nsamples must be positive")
        self.nsamples = nsamples
        self._samples: deque = deque([0] * nsamples, maxlen=nsamples)
        self._total = 0

    def filter(self, value: T) -> T:
        self._total -= self._samples[0]
        self._samples.append(value)
        self._total += value
        return _divide(self._total, self.nsamples)


class ExpSmoothingFilter(Filter[T]):
    """Exponential smoothing giving each new value a weight of a/b."""

    def __init__(self, a: int, b: int) -> None:
        if b == 0:
            raise ValueError("weight denominator must not be zero")
        self.a = a
        self.b = b
        self._previous = 0

    def filter(self, value: T) -> T:
        self._previous = _divide(value * self.a + self._previous * (self.b - self.a), self.b)
        return self._previous
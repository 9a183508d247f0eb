from __future__ import annotations

import numbers
from functools import total_ordering
from typing import Any, Optional

import numpy as np

from .errors import FloatIsNanOrPositive, MultiplicandIsZero, ProbabilitiesSumToGreaterThanOne
from .numerics import caps_for, coerce, log_add_exp


def _is_log_prob(v: np.floating) -> bool:
    return not (np.isnan(v) or v > 0)


@total_ordering
class LogProb:
    """The natural log of a probability.

    The wrapped value is a float32 or float64 numpy scalar that is either
    negative, a signed zero (p = 1) or -inf (p = 0). It is never NaN and never
    positive, so two LogProbs always compare.
    """

    __slots__ = ("_value",)

    # numpy scalars must defer to our reflected operators (np.uint8(4) * lp).
    __array_ufunc__ = None

    def __init__(self, value: Any, dtype: Optional[Any] = None):
        v = coerce(value, dtype)
        if not _is_log_prob(v):
            raise FloatIsNanOrPositive(f"LogProb constructed with positive or NaN value: {v!r}")
        self._value = v

    @classmethod
    def from_log(cls, value: Any, dtype: Optional[Any] = None) -> LogProb:
        return cls(value, dtype)

    @classmethod
    def from_linear(cls, p: Any, dtype: Optional[Any] = None) -> LogProb:
        """Build from a probability in [0, 1]; anything else fails validation on ln(p)."""
        p = coerce(p, dtype)
        with np.errstate(divide="ignore", invalid="ignore"):
            v = np.log(p)
        if not _is_log_prob(v):
            raise FloatIsNanOrPositive(f"not a probability in [0, 1]: {p!r}")
        return cls._wrap(v)

    @classmethod
    def _wrap(cls, v: np.floating) -> LogProb:
        lp = cls.__new__(cls)
        lp._value = v
        return lp

    @classmethod
    def one(cls, dtype: Any = np.float64) -> LogProb:
        """Probability one, ln 1 = 0."""
        return cls._wrap(caps_for(dtype).zero)

    @classmethod
    def zero(cls, dtype: Any = np.float64) -> LogProb:
        """Probability zero, ln 0 = -inf."""
        return cls._wrap(caps_for(dtype).neg_inf)

    @property
    def dtype(self) -> np.dtype:
        return self._value.dtype

    def into_raw(self) -> np.floating:
        return self._value

    into_inner = into_raw

    def linear_probability(self) -> np.floating:
        return np.exp(self._value)

    def complement(self) -> LogProb:
        """ln(1 - p), computed as ln1p(-exp(x))."""
        with np.errstate(divide="ignore"):
            return LogProb._wrap(np.log1p(-np.exp(self._value)))

    def _operand(self, other: LogProb) -> np.floating:
        if not isinstance(other, LogProb):
            raise TypeError(f"expected LogProb, got {type(other).__name__}")
        if other._value.dtype != self._value.dtype:
            raise TypeError(f"mixed float widths: {self.dtype.name} and {other.dtype.name}")
        return other._value

    # -- ln(p + q) -----------------------------------------------------------

    def add_log_prob(self, other: LogProb) -> LogProb:
        """ln(p + q); raises ProbabilitiesSumToGreaterThanOne when p + q > 1."""
        v = log_add_exp(self._value, self._operand(other))
        if not _is_log_prob(v):
            raise ProbabilitiesSumToGreaterThanOne(
                f"ln(p + q) = {v!r} for ln p = {self._value!r}, ln q = {other._value!r}"
            )
        return LogProb._wrap(v)

    def add_log_prob_clamped(self, other: LogProb) -> LogProb:
        """ln(p + q), saturating at ln 1 = 0 when p + q > 1.

        This is lossy: any sum slightly or greatly above one comes back as
        exactly one.
        """
        v = log_add_exp(self._value, self._operand(other))
        if not _is_log_prob(v):
            return LogProb.one(self.dtype)
        return LogProb._wrap(v)

    def add_log_prob_float(self, other: LogProb) -> np.floating:
        """Raw ln(p + q); may be positive. Not for building new LogProbs."""
        return log_add_exp(self._value, self._operand(other))

    # -- ln(p * q) and ln(p ** n) --------------------------------------------

    def add(self, other: LogProb) -> LogProb:
        return LogProb(self._value + self._operand(other))

    def add_in_place(self, other: LogProb) -> None:
        """Accumulate ln q into this value; left unchanged if the result is invalid."""
        v = self._value + self._operand(other)
        if not _is_log_prob(v):
            raise FloatIsNanOrPositive(f"LogProb constructed with positive or NaN value: {v!r}")
        self._value = v

    def scale(self, count: int) -> LogProb:
        """ln(p ** count) for a non-negative integer count."""
        if isinstance(count, bool) or not isinstance(count, numbers.Integral):
            raise TypeError(f"LogProb can only be scaled by a non-negative integer, got {type(count).__name__}")
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        if count == 0 and np.isneginf(self._value):
            raise MultiplicandIsZero()
        if count > 0 and self._value == 0:
            return LogProb._wrap(self._value)
        # counts beyond the float range become inf, so p ** count saturates at ln 0
        t = self._value.dtype.type
        with np.errstate(over="ignore"):
            try:
                c = t(count)
            except OverflowError:
                c = t(np.inf)
            return LogProb._wrap(self._value * c)

    def __add__(self, other: Any) -> LogProb:
        if not isinstance(other, LogProb):
            return NotImplemented
        return self.add(other)

    def __iadd__(self, other: Any) -> LogProb:
        if not isinstance(other, LogProb):
            return NotImplemented
        self.add_in_place(other)
        return self

    def __mul__(self, count: Any) -> LogProb:
        if isinstance(count, bool) or not isinstance(count, numbers.Integral):
            return NotImplemented
        return self.scale(count)

    __rmul__ = __mul__

    # -- ordering --------------------------------------------------------------

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, LogProb):
            return NotImplemented
        return bool(self._value == other._value)

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, LogProb):
            return NotImplemented
        return bool(self._value < other._value)

    def __float__(self) -> float:
        return float(self._value)

    def __repr__(self) -> str:
        return f"LogProb({float(self._value)!r}, dtype={self.dtype.name})"

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FloatCaps:
    """Constants a float width must provide for log-probability arithmetic."""

    dtype: np.dtype
    zero: np.floating
    neg_zero: np.floating
    neg_inf: np.floating
    ln_2: np.floating
    exp: Callable[..., Any] = np.exp
    ln: Callable[..., Any] = np.log
    ln_1p: Callable[..., Any] = np.log1p

    @property
    def name(self) -> str:
        return self.dtype.name

    def scalar(self, value: Any) -> np.floating:
        return self.dtype.type(value)


def _caps(t: type) -> FloatCaps:
    return FloatCaps(
        dtype=np.dtype(t),
        zero=t(0.0),
        neg_zero=t(-0.0),
        neg_inf=t(-np.inf),
        ln_2=t(np.log(2.0)),
    )


FLOAT32 = _caps(np.float32)
FLOAT64 = _caps(np.float64)

_CAPS: Dict[np.dtype, FloatCaps] = {FLOAT32.dtype: FLOAT32, FLOAT64.dtype: FLOAT64}


def caps_for(dtype: Any) -> FloatCaps:
    """Capabilities for float32/float64; anything else is a TypeError."""
    try:
        key = np.dtype(dtype)
    except TypeError as e:
        raise TypeError(f"not a float dtype: {dtype!r}") from e
    caps = _CAPS.get(key)
    if caps is None:
        raise TypeError(f"unsupported float width: {key.name} (expected float32 or float64)")
    return caps


def coerce(value: Any, dtype: Optional[Any] = None) -> np.floating:
    """Numpy scalar of a supported width; Python numbers default to float64."""
    if dtype is not None:
        return caps_for(dtype).scalar(value)
    if isinstance(value, np.floating):
        caps_for(value.dtype)
        return value
    return np.float64(value)


def log_add_exp(x: np.floating, y: np.floating) -> np.floating:
    """ln(exp(x) + exp(y)) without leaving log space.

    The argument to exp is always <= 0 so it cannot overflow. Equal inputs take
    the closed form x + ln 2 instead of ln1p(exp(0)).
    """
    caps = caps_for(np.result_type(x))
    if x > y:
        return x + caps.ln_1p(caps.exp(y - x))
    if x < y:
        return y + caps.ln_1p(caps.exp(x - y))
    return x + caps.ln_2


def log_normalizer(x: np.ndarray) -> Tuple[np.floating, np.floating]:
    """Return (m, s) with m = max(x) and s = ln(sum(exp(x - m))) for a 1D array.

    An empty array gives (0, -inf). If the max is -inf every term carries zero
    mass and s is -inf as well, instead of the NaN that -inf - -inf would give.
    """
    caps = caps_for(x.dtype)
    if x.size == 0:
        return caps.zero, caps.neg_inf
    m = np.max(x)
    if np.isneginf(m):
        return m, caps.neg_inf
    # x - m overflows to -inf for terms far below a huge max; those carry no mass
    with np.errstate(over="ignore", under="ignore"):
        s = caps.ln(np.sum(caps.exp(x - m)))
    return m, s


def logsumexp(x: np.ndarray) -> np.floating:
    """Stable logsumexp for 1D arrays; supports -inf entries and empty input."""
    m, s = log_normalizer(x)
    return s + m


def log_softmax(x: np.ndarray) -> np.ndarray:
    """Stable log-space softmax for 1D arrays; supports -inf entries.

    Each entry is x_i - s - m (see log_normalizer). An empty array stays empty.
    If every entry is -inf the result is uniform, -ln(n) each.
    """
    m, s = log_normalizer(x)
    if np.isneginf(m):
        return np.full_like(x, -caps_for(x.dtype).ln(x.dtype.type(x.size)))
    with np.errstate(over="ignore"):
        return x - s - m

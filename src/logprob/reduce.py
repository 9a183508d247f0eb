"""Log-sum-exp over sequences of LogProb.

Two strategies, each in strict / clamped / float form:

- buffered (``log_sum_exp*``): copy the raw values into one numpy array, find
  the max m and return ln(sum(exp(x - m))) + m.
- streaming (``log_sum_exp*_no_alloc``): left fold with the pairwise adder,
  O(1) state, consumes iterators lazily.

The two are not bit-identical; compare them with a tolerance. Every entry
point returns -inf for an empty sequence (no mass), with the width taken from
``dtype`` (default float64).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple, Union

import numpy as np

from .errors import FloatIsNanOrPositive, ProbabilitiesSumToGreaterThanOne
from .log_prob import LogProb
from .numerics import FloatCaps, caps_for, log_add_exp, logsumexp

logger = logging.getLogger(__name__)

STRATEGIES = ("buffered", "streaming")
MODES = ("strict", "clamped", "float")

_MISSING = object()


def _caps_for_sequence(first: Optional[LogProb], dtype: Optional[Any]) -> FloatCaps:
    if dtype is not None:
        return caps_for(dtype)
    if isinstance(first, LogProb):
        return caps_for(first.dtype)
    return caps_for(np.float64)


def _raw(lp: Any, caps: FloatCaps) -> np.floating:
    if not isinstance(lp, LogProb):
        raise TypeError(f"expected LogProb, got {type(lp).__name__}")
    if lp.dtype != caps.dtype:
        raise TypeError(f"mixed float widths: {caps.name} and {lp.dtype.name}")
    return lp.into_raw()


# -- buffered ------------------------------------------------------------------


def _buffer(values: Iterable[LogProb], dtype: Optional[Any]) -> np.ndarray:
    items = list(values)
    caps = _caps_for_sequence(items[0] if items else None, dtype)
    return np.fromiter((_raw(lp, caps) for lp in items), dtype=caps.dtype, count=len(items))


def log_sum_exp_float(values: Iterable[LogProb], dtype: Optional[Any] = None) -> np.floating:
    """Buffered ln(sum p_i) as a raw float; may be positive."""
    return logsumexp(_buffer(values, dtype))


def log_sum_exp(values: Iterable[LogProb], dtype: Optional[Any] = None) -> LogProb:
    """Buffered ln(sum p_i); raises ProbabilitiesSumToGreaterThanOne if the sum exceeds one."""
    v = log_sum_exp_float(values, dtype)
    try:
        return LogProb(v)
    except FloatIsNanOrPositive as e:
        raise ProbabilitiesSumToGreaterThanOne(f"log-sum-exp = {v!r}") from e


def log_sum_exp_clamped(values: Iterable[LogProb], dtype: Optional[Any] = None) -> LogProb:
    """Buffered ln(sum p_i), saturating at ln 1 when the sum exceeds one."""
    v = log_sum_exp_float(values, dtype)
    if v > 0:
        logger.debug("buffered log-sum-exp clamped: raw=%r", v)
        return LogProb.one(v.dtype)
    return LogProb(v)


# -- streaming -----------------------------------------------------------------


def _head(values: Iterable[LogProb], dtype: Optional[Any]) -> Tuple[Optional[LogProb], Iterator[LogProb], FloatCaps]:
    it = iter(values)
    first = next(it, _MISSING)
    if first is _MISSING:
        return None, it, _caps_for_sequence(None, dtype)
    caps = _caps_for_sequence(first, dtype)
    _raw(first, caps)
    return first, it, caps


def log_sum_exp_no_alloc(values: Iterable[LogProb], dtype: Optional[Any] = None) -> LogProb:
    """Streaming ln(sum p_i); raises on the first partial sum above one."""
    acc, it, caps = _head(values, dtype)
    if acc is None:
        return LogProb.zero(caps.dtype)
    for lp in it:
        _raw(lp, caps)
        acc = acc.add_log_prob(lp)
    return acc


def log_sum_exp_clamped_no_alloc(values: Iterable[LogProb], dtype: Optional[Any] = None) -> LogProb:
    """Streaming ln(sum p_i), saturating at ln 1.

    Returns as soon as a partial sum exceeds one and leaves the rest of the
    iterator unconsumed. Remaining terms can only add mass, so the result is
    the same ln 1 the buffered form gives, but which element triggered the
    clamp is not reported.
    """
    acc, it, caps = _head(values, dtype)
    if acc is None:
        return LogProb.zero(caps.dtype)
    for i, lp in enumerate(it, start=1):
        _raw(lp, caps)
        try:
            acc = acc.add_log_prob(lp)
        except ProbabilitiesSumToGreaterThanOne:
            logger.debug("streaming log-sum-exp clamped at element %d", i)
            return LogProb.one(caps.dtype)
    return acc


def log_sum_exp_float_no_alloc(values: Iterable[LogProb], dtype: Optional[Any] = None) -> np.floating:
    """Streaming ln(sum p_i) as a raw float; folds every element."""
    first, it, caps = _head(values, dtype)
    if first is None:
        return caps.neg_inf
    acc = first.into_raw()
    for lp in it:
        acc = log_add_exp(acc, _raw(lp, caps))
    return acc


# -- config --------------------------------------------------------------------

Reducer = Callable[..., Union[LogProb, np.floating]]

_REDUCERS: Dict[Tuple[str, str], Reducer] = {
    ("buffered", "strict"): log_sum_exp,
    ("buffered", "clamped"): log_sum_exp_clamped,
    ("buffered", "float"): log_sum_exp_float,
    ("streaming", "strict"): log_sum_exp_no_alloc,
    ("streaming", "clamped"): log_sum_exp_clamped_no_alloc,
    ("streaming", "float"): log_sum_exp_float_no_alloc,
}


@dataclass
class ReduceConfig:
    strategy: str = "buffered"
    mode: str = "strict"
    dtype: Optional[str] = None

    def __post_init__(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ValueError(f"unknown strategy {self.strategy!r}, expected one of {STRATEGIES}")
        if self.mode not in MODES:
            raise ValueError(f"unknown mode {self.mode!r}, expected one of {MODES}")
        if self.dtype is not None:
            caps_for(self.dtype)


def reduce_log_probs(values: Iterable[LogProb], cfg: Optional[ReduceConfig] = None) -> Union[LogProb, np.floating]:
    cfg = cfg or ReduceConfig()
    return _REDUCERS[(cfg.strategy, cfg.mode)](values, dtype=cfg.dtype)

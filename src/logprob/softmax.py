from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional

import numpy as np

from .errors import FloatIsNanOrPositiveInfinity
from .log_prob import LogProb
from .numerics import caps_for, log_softmax


def _as_array(values: Iterable[Any], dtype: Optional[Any]) -> np.ndarray:
    items = values if isinstance(values, np.ndarray) else list(values)
    if dtype is None:
        if isinstance(items, np.ndarray) and np.issubdtype(items.dtype, np.floating):
            dtype = items.dtype
        elif len(items) and isinstance(items[0], np.floating):
            dtype = items[0].dtype
        else:
            dtype = np.float64
    x = np.array(items, dtype=caps_for(dtype).dtype)
    if x.ndim != 1:
        raise ValueError(f"softmax expects a 1D sequence, got shape {x.shape}")
    return x


def softmax(values: Iterable[Any], dtype: Optional[Any] = None) -> Iterator[LogProb]:
    """Log-space softmax: ln(exp(x_i) / sum_j exp(x_j)) for each input, in order.

    The whole input is checked before anything is returned; NaN or +inf raises
    FloatIsNanOrPositiveInfinity, -inf is allowed and gets zero mass. The
    result is a lazy single-pass iterator. If every input is -inf the mass is
    spread evenly.
    """
    x = _as_array(values, dtype)
    bad = np.isnan(x) | np.isposinf(x)
    if bad.any():
        i = int(np.flatnonzero(bad)[0])
        raise FloatIsNanOrPositiveInfinity(f"softmax input at index {i} is {x[i]!r}")

    return (LogProb(v) for v in log_softmax(x))

import logging
from decimal import Decimal, localcontext

import numpy as np
import pytest

from logprob.errors import ProbabilitiesSumToGreaterThanOne
from logprob.log_prob import LogProb
from logprob.reduce import (
    ReduceConfig,
    log_sum_exp,
    log_sum_exp_clamped,
    log_sum_exp_clamped_no_alloc,
    log_sum_exp_float,
    log_sum_exp_float_no_alloc,
    log_sum_exp_no_alloc,
    reduce_log_probs,
)

STRICT = [log_sum_exp, log_sum_exp_no_alloc]
CLAMPED = [log_sum_exp_clamped, log_sum_exp_clamped_no_alloc]
FLOAT = [log_sum_exp_float, log_sum_exp_float_no_alloc]
ALL = STRICT + CLAMPED + FLOAT


def linear(*ps, dtype=np.float64):
    return [LogProb.from_linear(p, dtype) for p in ps]


def raw(x):
    return x.into_raw() if isinstance(x, LogProb) else x


@pytest.mark.parametrize("fn", STRICT)
def test_strict_sum_below_one(fn):
    got = fn(linear(0.5, 0.2, 0.25))
    assert abs(got.into_raw() - np.log(0.95)) < 1e-12


@pytest.mark.parametrize("fn", STRICT)
def test_strict_sum_above_one_raises(fn):
    with pytest.raises(ProbabilitiesSumToGreaterThanOne):
        fn(linear(0.5, 0.5, 0.3))


@pytest.mark.parametrize("fn", CLAMPED)
def test_clamped_saturates_at_one(fn):
    assert abs(fn(linear(0.5, 0.5, 0.5)).into_raw()) < 1e-12
    assert abs(fn(linear(0.5, 0.2, 0.3)).into_raw()) < 1e-12


@pytest.mark.parametrize("fn", CLAMPED)
def test_clamped_below_one_is_exact(fn):
    got = fn(linear(0.5, 0.3, 0.0, 0.0))
    assert abs(got.into_raw() - np.log(0.8)) < 1e-12


@pytest.mark.parametrize("fn", FLOAT)
def test_float_exceeds_zero(fn):
    got = fn(linear(0.5, 0.5, 0.5, 0.0))
    assert abs(got - np.log(1.5)) < 1e-12


@pytest.mark.parametrize("fn", ALL)
def test_empty_sequence_is_negative_infinity(fn):
    assert raw(fn([])) == -np.inf
    assert raw(fn(iter([]))) == -np.inf
    assert raw(fn([], dtype=np.float32)).dtype == np.float32


def test_empty_streaming_strict_is_not_ln_one():
    # the empty sum is zero probability, not probability one
    assert log_sum_exp_no_alloc([]) == LogProb.zero()
    assert log_sum_exp_no_alloc([]) != LogProb.one()


@pytest.mark.parametrize("fn", ALL)
def test_all_zero_probabilities(fn):
    assert raw(fn(linear(0.0, 0.0, 0.0))) == -np.inf


@pytest.mark.parametrize("fn", ALL)
def test_single_element_is_itself(fn):
    assert abs(raw(fn(linear(0.4))) - np.log(0.4)) < 1e-15


def test_clamped_streaming_stops_at_first_overflow():
    a, b, c, d = linear(0.75, 0.75, 0.1, 0.1)
    it = iter([a, b, c, d])
    assert log_sum_exp_clamped_no_alloc(it) == LogProb.one()
    assert list(it) == [c, d]


def test_strict_streaming_stops_at_first_overflow():
    a, b, c = linear(0.75, 0.75, 0.1)
    it = iter([a, b, c])
    with pytest.raises(ProbabilitiesSumToGreaterThanOne):
        log_sum_exp_no_alloc(it)
    assert list(it) == [c]


def test_buffered_consumes_everything():
    it = iter(linear(0.75, 0.75, 0.1))
    assert log_sum_exp_clamped(it) == LogProb.one()
    assert list(it) == []


def test_clamped_streaming_logs_overflow_position(caplog):
    caplog.set_level(logging.DEBUG, logger="logprob.reduce")
    log_sum_exp_clamped_no_alloc(linear(0.1, 0.75, 0.75, 0.1))
    assert "clamped at element 2" in caplog.text


def test_far_apart_terms_match_decimal_reference():
    # e^-800 and e^-1500 differ by ~304 orders of magnitude
    with localcontext() as ctx:
        ctx.prec = 60
        want = float((Decimal(-800).exp() + Decimal(-1500).exp()).ln())
    xs = [LogProb(-800.0), LogProb(-1500.0)]
    for fn in ALL:
        got = raw(fn(xs))
        assert not np.isnan(got)
        assert abs(got - want) <= 1e-12 * abs(want)


def test_far_apart_terms_float32():
    xs = [LogProb(-120.0, np.float32), LogProb(-400.0, np.float32)]
    for fn in ALL:
        got = raw(fn(xs))
        assert got.dtype == np.float32
        assert got == np.float32(-120.0)


def test_strategies_agree(rng):
    lengths = [0, 1, 2, 1000] + [int(n) for n in rng.integers(0, 1001, size=20)]
    for n in lengths:
        ps = rng.uniform(0.0, 1.0, size=n)
        proper = [LogProb.from_linear(p / max(n, 1)) for p in ps]
        improper = [LogProb.from_linear(p) for p in ps]
        pairs = [
            (log_sum_exp(proper).into_raw(), log_sum_exp_no_alloc(proper).into_raw()),
            (log_sum_exp_clamped(improper).into_raw(), log_sum_exp_clamped_no_alloc(improper).into_raw()),
            (log_sum_exp_float(improper), log_sum_exp_float_no_alloc(improper)),
        ]
        for a, b in pairs:
            if n == 0:
                assert a == b == -np.inf
            else:
                assert abs(a - b) <= 1e-9 * max(1.0, abs(a))


def test_float32_reduction_keeps_width():
    xs = linear(0.25, 0.25, 0.25, dtype=np.float32)
    got = log_sum_exp(xs)
    assert got.dtype == np.float32
    assert abs(float(got) - np.log(0.75)) < 1e-6
    assert log_sum_exp_no_alloc(xs).dtype == np.float32


@pytest.mark.parametrize("fn", ALL)
def test_mixed_widths_rejected(fn):
    with pytest.raises(TypeError):
        fn([LogProb(-1.0), LogProb(-1.0, np.float32)])
    with pytest.raises(TypeError):
        fn([LogProb(-1.0)], dtype=np.float32)
    with pytest.raises(TypeError):
        fn([LogProb(-1.0), -1.0])


def test_reduce_config_dispatch():
    xs = linear(0.5, 0.75)
    assert reduce_log_probs(xs, ReduceConfig(mode="clamped")) == LogProb.one()
    assert reduce_log_probs(xs, ReduceConfig(strategy="streaming", mode="clamped")) == LogProb.one()
    got = reduce_log_probs(xs, ReduceConfig(strategy="streaming", mode="float"))
    assert abs(got - np.log(1.25)) < 1e-12
    with pytest.raises(ProbabilitiesSumToGreaterThanOne):
        reduce_log_probs(xs)


def test_reduce_config_validation():
    with pytest.raises(ValueError):
        ReduceConfig(strategy="parallel")
    with pytest.raises(ValueError):
        ReduceConfig(mode="lossy")
    with pytest.raises(TypeError):
        ReduceConfig(dtype="float16")


@pytest.mark.parametrize("fn", ALL)
def test_leading_none_is_rejected_not_treated_as_empty(fn):
    with pytest.raises(TypeError):
        fn([None, LogProb(-1.0)])


def test_reduce_config_infers_width():
    xs = linear(0.25, 0.25, dtype=np.float32)
    got = reduce_log_probs(xs)
    assert got.dtype == np.float32
    assert abs(float(got) - np.log(0.5)) < 1e-6
    assert reduce_log_probs([], ReduceConfig(strategy="streaming")).dtype == np.float64
    with pytest.raises(TypeError):
        reduce_log_probs(xs, ReduceConfig(dtype="float64"))

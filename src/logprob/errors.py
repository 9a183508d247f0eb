from __future__ import annotations


class LogProbError(ValueError):
    """Base class for invalid log-probability arithmetic."""

    default_message = "invalid log-probability"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)


class FloatIsNanOrPositive(LogProbError):
    default_message = "LogProb constructed with positive or NaN value"


class ProbabilitiesSumToGreaterThanOne(LogProbError):
    default_message = "The sum is greater than 1.0 (improper distribution)"


class FloatIsNanOrPositiveInfinity(LogProbError):
    default_message = "softmax input contains NaN or positive infinity"


class MultiplicandIsZero(LogProbError):
    default_message = "LogProb cannot be multiplied by zero"

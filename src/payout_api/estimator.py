"""Placeholder payout models feeding the dispatch pipeline."""

from __future__ import annotations

import math
import random

from .base import PayoutEstimatorBase
from .exceptions import ValidationError
from .types import PayoutEstimate

BASE_RATE = 0.003
MAX_VOLATILITY_BONUS = 0.002
MAX_SIZE_MULTIPLIER = 1.5


def size_multiplier(principal: float) -> float:
    """Larger principals earn a slightly higher rate, capped at 1.5x."""
    return min(MAX_SIZE_MULTIPLIER, 1 + (principal / 1000) * 0.1)


def _check_principal(principal: float) -> float:
    try:
        value = float(principal)
    except (TypeError, ValueError):
        raise ValidationError("Principal must be numeric", field="principal", value=principal)

    if not math.isfinite(value) or value < 0:
        raise ValidationError(
            "Principal must be a finite, non-negative amount", field="principal", value=principal
        )
    return value


class RandomPayoutEstimator(PayoutEstimatorBase):
    """Bounded pseudo-random payout: base rate plus a uniform volatility bonus.

    ``payout = principal * (0.003 + U[0, 0.002)) * min(1.5, 1 + principal / 1000 * 0.1)``
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def estimate(self, principal: float) -> PayoutEstimate:
        value = _check_principal(principal)
        bonus = self._rng.random() * MAX_VOLATILITY_BONUS
        rate = (BASE_RATE + bonus) * size_multiplier(value)
        return PayoutEstimate(principal=value, payout=value * rate, rate=rate)


class FixedRateEstimator(PayoutEstimatorBase):
    """Deterministic payout at a fixed rate, before the size multiplier."""

    def __init__(self, rate: float = BASE_RATE, *, apply_size_multiplier: bool = True) -> None:
        self._rate = rate
        self._apply_size_multiplier = apply_size_multiplier

    def estimate(self, principal: float) -> PayoutEstimate:
        value = _check_principal(principal)
        rate = self._rate
        if self._apply_size_multiplier:
            rate *= size_multiplier(value)
        return PayoutEstimate(principal=value, payout=value * rate, rate=rate)

"""Payout estimator base interface."""

from abc import ABC, abstractmethod

from .types import PayoutEstimate


class PayoutEstimatorBase(ABC):
    """Revenue model mapping a requested principal to a payout."""

    @abstractmethod
    def estimate(self, principal: float) -> PayoutEstimate:
        pass

"""Exception hierarchy for the treasury payout relay."""

from typing import Any


class PayoutError(Exception):
    """Base exception for all payout pipeline errors."""

    category = "internal"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a structured, JSON-friendly payload."""

        payload: dict[str, Any] = {"error": self.message, "category": self.category}
        payload.update(self.details)
        return payload


class ValidationError(PayoutError):
    """Raised when input validation fails."""

    category = "validation"
    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.field is not None:
            payload["field"] = self.field
            payload["received"] = self.value
        return payload


class ConnectivityError(PayoutError):
    """Raised when no RPC endpoint passes its liveness probe."""

    category = "connectivity"
    status_code = 503

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class InsufficientFundsError(PayoutError):
    """Raised when the custodial balance cannot cover a disbursement plus reserve."""

    category = "insufficient_funds"
    status_code = 400

    def __init__(
        self,
        message: str,
        available_wei: int,
        required_wei: int,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.available_wei = available_wei
        self.required_wei = required_wei

    @property
    def available(self) -> float:
        return self.available_wei / 10**18

    @property
    def required(self) -> float:
        return self.required_wei / 10**18

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["available"] = self.available
        payload["required"] = self.required
        return payload


class SubmissionError(PayoutError):
    """Raised when the network rejects a built transaction."""

    category = "submission"
    status_code = 500

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        code: Any | None = None,
        transaction_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.reason = reason
        self.code = code
        self.transaction_hash = transaction_hash

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason
        payload["code"] = self.code
        if self.transaction_hash is not None:
            payload["txHash"] = self.transaction_hash
        return payload


class ConfirmationTimeoutError(PayoutError):
    """Raised when a broadcast transaction was not seen included in time.

    The transaction may still land; callers must reconcile through a balance
    or status query instead of dispatching again.
    """

    category = "confirmation_timeout"
    status_code = 504

    def __init__(
        self,
        message: str,
        transaction_hash: str,
        timeout: float | None = None,
        cancelled: bool = False,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash
        self.timeout = timeout
        self.cancelled = cancelled

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["txHash"] = self.transaction_hash
        payload["timeout"] = self.timeout
        payload["cancelled"] = self.cancelled
        return payload

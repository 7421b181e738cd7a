"""Error taxonomy for the payment order lifecycle.

Services raise these; routers translate them into HTTP responses.
"""


class PaymentError(Exception):
    """Base class for payment lifecycle errors."""

    detail = "Payment error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InvalidPlan(PaymentError):
    detail = "Invalid plan selected"


class UpstreamUnavailable(PaymentError):
    detail = "Payment gateway unavailable"


class NotFound(PaymentError):
    detail = "Payment record not found"


class InvalidSignature(PaymentError):
    detail = "Invalid signature"


class DuplicateReceipt(PaymentError):
    """Receipt collision; retried by the issuer, never shown to users."""

    detail = "Duplicate receipt"


class ConfigurationError(PaymentError):
    detail = "Payment provider not configured"

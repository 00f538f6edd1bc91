"""
Exception hierarchy for the settlement engine.

Every domain error carries a stable ``error_code`` that the API layer maps to
an HTTP status, so services never raise HTTP exceptions themselves.
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace domain errors."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str = "MARKETPLACE_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_detail(self) -> dict:
        """Error body used in ``{"detail": ...}`` responses."""
        return {"code": self.error_code, "message": self.message, **self.details}


class ValidationError(MarketplaceError):
    """Missing or malformed required fields (price, quantity, dates)."""

    status_code = 400

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)


class ForbiddenError(MarketplaceError):
    """Actor is not a participant or lacks the required role."""

    status_code = 403

    def __init__(self, message: str = "Not authorized", **kwargs):
        super().__init__(message, error_code="FORBIDDEN", **kwargs)


class NotFoundError(MarketplaceError):
    """Referenced record does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        details = {"resource": resource}
        if resource_id is not None:
            details["id"] = resource_id
        super().__init__(f"{resource} not found", error_code="NOT_FOUND", details=details)


class InvalidStateError(MarketplaceError):
    """Operation is not allowed in the record's current state."""

    status_code = 409

    def __init__(self, message: str, error_code: str = "INVALID_STATE", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class NegotiationClosedError(InvalidStateError):
    """Negotiation is no longer active."""

    def __init__(self, negotiation_id: str):
        super().__init__(
            "Negotiation is closed",
            error_code="NEGOTIATION_CLOSED",
            details={"negotiation_id": negotiation_id},
        )


class AlreadyAcceptedError(MarketplaceError):
    """
    The RFQ already has an accepted quote.

    ``result`` holds the existing settlement so callers can replay it instead
    of failing a retried request.
    """

    status_code = 409

    def __init__(self, rfq_id: str, result: Any = None):
        self.result = result
        super().__init__(
            "A quote has already been accepted for this RFQ",
            error_code="ALREADY_ACCEPTED",
            details={"rfq_id": rfq_id},
        )


class AlreadyClosedError(MarketplaceError):
    """
    The negotiation is already settled or closed.

    ``negotiation`` and ``order`` hold the existing state; ``order`` is None
    when the negotiation was closed without a deal.
    """

    status_code = 409

    def __init__(self, negotiation: Any, order: Any = None):
        self.negotiation = negotiation
        self.order = order
        super().__init__(
            "Negotiation is already closed",
            error_code="ALREADY_CLOSED",
            details={"negotiation_id": negotiation.id},
        )


class AIServiceError(MarketplaceError):
    """External AI call failed after retries, timed out or is not configured."""

    status_code = 502

    def __init__(self, message: str, error_code: str = "AI_SERVICE_ERROR", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class AIQuotaExceededError(AIServiceError):
    """Billing or quota exhaustion at the AI provider. Never retried."""

    status_code = 429

    def __init__(self, message: str):
        super().__init__(
            f"AI service quota exceeded: {message}",
            error_code="AI_QUOTA_EXCEEDED",
            details={"suggestion": "Check billing/plan or wait before retrying."},
        )

"""
Custom exceptions for Online Order Fulfillment module.
"""

from typing import Dict, Any, Optional


class BusinessException(Exception):
    """Base exception for business logic errors."""

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class InvalidTransitionException(BusinessException):
    """Raised when attempting an invalid workflow transition."""

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "Order"):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        super().__init__(message, "INVALID_TRANSITION", {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type
        })


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class FulfillmentStepError(BusinessException):
    """
    Raised when a hard step of order confirmation fails.

    Steps that already committed are not rolled back; ``committed`` lists
    the identities written before the failure so the order can be
    reconciled by hand.
    """

    def __init__(self, step: str, order_number: str, committed: Optional[Dict[str, Any]] = None,
                 reason: str = ""):
        self.step = step
        self.committed = {k: v for k, v in (committed or {}).items() if v is not None}
        message = f"Confirmation of order {order_number} failed at step '{step}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "FULFILLMENT_STEP_FAILED", {
            "step": step,
            "order_number": order_number,
            "committed": {k: str(v) for k, v in self.committed.items()},
        })

    @property
    def needs_reconciliation(self) -> bool:
        """True when earlier steps left records behind."""
        return bool(self.committed)

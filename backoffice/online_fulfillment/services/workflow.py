"""
Workflow service for Online Order Fulfillment.

Allowed state transitions for orders and shipments.
"""

from ..conf import get_setting
from ..exceptions import InvalidTransitionException
from ..models import Order, OrderStatus, Shipment, ShipmentStatus


class OrderWorkflow:
    """Workflow rules for Order state transitions."""

    ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.REJECTED],
        OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
        OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
        OrderStatus.READY: [OrderStatus.IN_DELIVERY, OrderStatus.DELIVERED, OrderStatus.CANCELLED],
        OrderStatus.IN_DELIVERY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
        OrderStatus.DELIVERED: [],  # Final state
        OrderStatus.CANCELLED: [],  # Final state
        OrderStatus.REJECTED: [],   # Final state
    }

    @classmethod
    def validate_transition(cls, order: Order, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Args:
            order: Order instance
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        current_status = order.status

        if current_status == new_status:
            return  # Allow no-op transitions

        if new_status not in cls.ALLOWED_TRANSITIONS.get(current_status, []):
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type="Order"
            )

    @classmethod
    def can_transition_to(cls, order: Order, new_status: str) -> bool:
        """Check if transition is allowed without raising exception."""
        try:
            cls.validate_transition(order, new_status)
            return True
        except InvalidTransitionException:
            return False


class ShipmentWorkflow:
    """
    Workflow rules for Shipment state transitions.

    Status only moves forward; returned and cancelled branch off any
    non-terminal state. Re-assigning an assigned shipment is the one
    same-state move allowed.
    """

    ALLOWED_TRANSITIONS = {
        ShipmentStatus.PENDING: [ShipmentStatus.ASSIGNED, ShipmentStatus.RETURNED, ShipmentStatus.CANCELLED],
        ShipmentStatus.ASSIGNED: [
            ShipmentStatus.ASSIGNED, ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.RETURNED, ShipmentStatus.CANCELLED,
        ],
        ShipmentStatus.OUT_FOR_DELIVERY: [ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED, ShipmentStatus.CANCELLED],
        ShipmentStatus.DELIVERED: [],  # Final state
        ShipmentStatus.RETURNED: [],   # Final state
        ShipmentStatus.CANCELLED: [],  # Final state
    }

    @classmethod
    def validate_transition(cls, shipment: Shipment, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        if new_status not in cls.ALLOWED_TRANSITIONS.get(shipment.status, []):
            raise InvalidTransitionException(
                current_status=shipment.status,
                attempted_status=new_status,
                entity_type="Shipment"
            )


def validate_order_workflow(order: Order, new_status: str) -> None:
    """
    Validate an order transition when strict transitions are enabled.

    With ``STRICT_ORDER_TRANSITIONS`` off (the default) the caller is
    trusted to request a reachable status and nothing is checked.
    """
    if get_setting('STRICT_ORDER_TRANSITIONS'):
        OrderWorkflow.validate_transition(order, new_status)


def validate_shipment_workflow(shipment: Shipment, new_status: str) -> None:
    """
    Validate shipment workflow transition.

    Raises:
        InvalidTransitionException: If transition is not allowed
    """
    ShipmentWorkflow.validate_transition(shipment, new_status)

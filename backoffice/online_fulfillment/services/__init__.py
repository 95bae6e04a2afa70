"""
Online Order Fulfillment Services
"""

from .workflow import (
    OrderWorkflow, ShipmentWorkflow,
    validate_order_workflow, validate_shipment_workflow
)
from .address import DeliveryAddress, normalize_delivery_address
from .order_service import OrderService
from .shipping_service import ShippingService, generate_tracking_number
from .fulfillment_service import FulfillmentService, ConfirmationResult

__all__ = [
    # Workflow validators
    'OrderWorkflow', 'ShipmentWorkflow',
    'validate_order_workflow', 'validate_shipment_workflow',

    # Address normalization
    'DeliveryAddress', 'normalize_delivery_address',

    # Services
    'OrderService', 'ShippingService', 'FulfillmentService',
    'ConfirmationResult', 'generate_tracking_number',
]

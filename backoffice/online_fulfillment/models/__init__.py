"""
Online Order Fulfillment Models
"""

from .order import (
    Order, OrderStatus, DeliveryType, OrderSource, PaymentStatus, TERMINAL_ORDER_STATUSES
)
from .order_item import OrderItem, OrderItemStatus
from .sale import Sale, SaleItem, SaleStatus
from .kitchen import ProductionTicket, TicketItem, TicketStatus, TicketItemStatus
from .ledger import Tip, TipType, Coupon, CouponRedemption, DiscountType
from .fleet import Vehicle, VehicleStatus, VehicleType, Driver, DELIVERY_VEHICLE_TYPES
from .shipment import (
    Shipment, ShipmentStatus, ShipmentSourceType, TransportEvent,
    DeliveryAttempt, DeliveryAttemptStatus, ProofOfDelivery
)
from .audit import AuditLog

__all__ = [
    # Order models
    'Order', 'OrderStatus', 'DeliveryType', 'OrderSource', 'PaymentStatus',
    'TERMINAL_ORDER_STATUSES', 'OrderItem', 'OrderItemStatus',

    # Point of sale
    'Sale', 'SaleItem', 'SaleStatus',
    'ProductionTicket', 'TicketItem', 'TicketStatus', 'TicketItemStatus',

    # Ledgers
    'Tip', 'TipType', 'Coupon', 'CouponRedemption', 'DiscountType',

    # Fleet
    'Vehicle', 'VehicleStatus', 'VehicleType', 'Driver', 'DELIVERY_VEHICLE_TYPES',

    # Shipment models
    'Shipment', 'ShipmentStatus', 'ShipmentSourceType', 'TransportEvent',
    'DeliveryAttempt', 'DeliveryAttemptStatus', 'ProofOfDelivery',

    # Audit
    'AuditLog',
]

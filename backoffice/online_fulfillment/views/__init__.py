"""
Online Order Fulfillment Views
"""

from .order_views import OrderViewSet
from .shipment_views import ShipmentViewSet
from .fleet_views import VehicleViewSet, DriverViewSet

__all__ = [
    'OrderViewSet',
    'ShipmentViewSet',
    'VehicleViewSet',
    'DriverViewSet',
]

"""
URL configuration for Online Order Fulfillment.

Provides API endpoints for order confirmation, order status and self-delivery tracking.
"""

from rest_framework.routers import DefaultRouter

from .views import OrderViewSet, ShipmentViewSet, VehicleViewSet, DriverViewSet

router = DefaultRouter()
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'shipments', ShipmentViewSet, basename='shipment')
router.register(r'vehicles', VehicleViewSet, basename='vehicle')
router.register(r'drivers', DriverViewSet, basename='driver')

urlpatterns = router.urls

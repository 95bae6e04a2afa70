"""
Fleet views for Online Order Fulfillment.
"""

from rest_framework import viewsets
from rest_framework.decorators import action

from ..models import Vehicle, Driver
from ..services import ShippingService
from ..serializers.fleet_serializers import VehicleSerializer, DriverSerializer
from ..permissions import IsDispatchStaff
from .base import OrganizationScopedMixin, success_response


class VehicleViewSet(OrganizationScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Delivery vehicles of the organization."""

    serializer_class = VehicleSerializer
    permission_classes = [IsDispatchStaff]

    def get_queryset(self):
        return self.filter_by_organization(Vehicle.objects.select_related('current_driver'))

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Vehicles free to take a delivery."""
        vehicles = ShippingService.get_available_vehicles(self.get_organization_id())
        return success_response(VehicleSerializer(vehicles, many=True).data)


class DriverViewSet(OrganizationScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Drivers of the organization."""

    serializer_class = DriverSerializer
    permission_classes = [IsDispatchStaff]

    def get_queryset(self):
        return self.filter_by_organization(Driver.objects.all())

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Active drivers holding a valid license."""
        drivers = ShippingService.get_available_drivers(self.get_organization_id())
        return success_response(DriverSerializer(drivers, many=True).data)

"""
Fleet Adapter for Online Order Fulfillment.

Provides the interface to vehicles and driver credentials used for self-delivery.
"""

from abc import ABC, abstractmethod
from typing import List
from django.utils import timezone

from ..models import Vehicle, VehicleStatus, Driver, DELIVERY_VEHICLE_TYPES


class FleetRegistryInterface(ABC):
    """
    Interface for the fleet registry.

    Assignment is not exclusive: the registry does not check whether a
    vehicle or driver is already busy elsewhere.
    """

    @abstractmethod
    def get_vehicle(self, vehicle_id, organization_id) -> Vehicle:
        """
        Raises:
            Vehicle.DoesNotExist: If the vehicle is unknown in the organization
        """
        pass

    @abstractmethod
    def get_driver(self, driver_id, organization_id) -> Driver:
        """
        Raises:
            Driver.DoesNotExist: If the driver is unknown in the organization
        """
        pass

    @abstractmethod
    def assign(self, vehicle_id, driver_id) -> None:
        """Mark the vehicle in use with the driver attached."""
        pass

    @abstractmethod
    def release(self, vehicle_id) -> None:
        """Make the vehicle available again and detach its driver."""
        pass

    @abstractmethod
    def available_vehicles(self, organization_id) -> List[Vehicle]:
        pass

    @abstractmethod
    def available_drivers(self, organization_id) -> List[Driver]:
        pass


class DjangoFleetRegistry(FleetRegistryInterface):

    def get_vehicle(self, vehicle_id, organization_id) -> Vehicle:
        return Vehicle.objects.select_related('current_driver').get(id=vehicle_id, organization_id=organization_id)

    def get_driver(self, driver_id, organization_id) -> Driver:
        return Driver.objects.get(id=driver_id, organization_id=organization_id)

    def assign(self, vehicle_id, driver_id) -> None:
        Vehicle.objects.filter(id=vehicle_id).update(
            status=VehicleStatus.IN_USE,
            current_driver_id=driver_id,
            updated_at=timezone.now(),
        )

    def release(self, vehicle_id) -> None:
        Vehicle.objects.filter(id=vehicle_id).update(
            status=VehicleStatus.AVAILABLE,
            current_driver=None,
            updated_at=timezone.now(),
        )

    def available_vehicles(self, organization_id) -> List[Vehicle]:
        return list(
            Vehicle.objects.select_related('current_driver').filter(
                organization_id=organization_id,
                status=VehicleStatus.AVAILABLE,
                is_active=True,
                vehicle_type__in=DELIVERY_VEHICLE_TYPES,
            )
        )

    def available_drivers(self, organization_id) -> List[Driver]:
        return list(
            Driver.objects.filter(
                organization_id=organization_id,
                is_active=True,
                license_expiry__gte=timezone.localdate(),
            )
        )

"""
Fleet registry models: delivery vehicles and driver credentials.
"""

import uuid
from django.db import models
from django.utils import timezone


class VehicleStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    IN_USE = 'in_use', 'In Use'
    MAINTENANCE = 'maintenance', 'Maintenance'
    INACTIVE = 'inactive', 'Inactive'


class VehicleType(models.TextChoices):
    MOTORCYCLE = 'motorcycle', 'Motorcycle'
    CAR = 'car', 'Car'
    VAN = 'van', 'Van'
    BICYCLE = 'bicycle', 'Bicycle'
    TRUCK = 'truck', 'Truck'


DELIVERY_VEHICLE_TYPES = (VehicleType.MOTORCYCLE, VehicleType.CAR, VehicleType.VAN, VehicleType.BICYCLE)


class Driver(models.Model):
    """Driver credential for an employee allowed to deliver."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True)
    license_number = models.CharField(max_length=50)
    license_category = models.CharField(max_length=10, blank=True)
    license_expiry = models.DateField()
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['full_name']

    def __str__(self):
        return f"{self.full_name} ({self.license_number})"

    @property
    def has_valid_license(self):
        return self.license_expiry >= timezone.localdate()


class Vehicle(models.Model):
    """Vehicle used for self-delivery."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    plate = models.CharField(max_length=20)
    vehicle_type = models.CharField(max_length=20, choices=VehicleType.choices, default=VehicleType.MOTORCYCLE)
    brand = models.CharField(max_length=50, blank=True)
    model = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=30, blank=True)
    capacity_kg = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=VehicleStatus.choices, default=VehicleStatus.AVAILABLE)
    is_active = models.BooleanField(default=True)
    current_driver = models.ForeignKey(
        Driver,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='current_vehicles'
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['plate']
        indexes = [
            models.Index(fields=['organization_id', 'status']),
        ]

    def __str__(self):
        return f"{self.plate} ({self.status})"

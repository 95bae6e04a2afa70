"""
Fleet serializers for Online Order Fulfillment.
"""

from rest_framework import serializers

from ..models import Vehicle, Driver


class DriverSerializer(serializers.ModelSerializer):

    has_valid_license = serializers.BooleanField(read_only=True)

    class Meta:
        model = Driver
        fields = [
            'id', 'organization_id', 'full_name', 'phone', 'license_number',
            'license_category', 'license_expiry', 'has_valid_license', 'is_active'
        ]
        read_only_fields = fields


class VehicleSerializer(serializers.ModelSerializer):

    current_driver_name = serializers.CharField(source='current_driver.full_name', read_only=True, default=None)

    class Meta:
        model = Vehicle
        fields = [
            'id', 'organization_id', 'plate', 'vehicle_type', 'brand', 'model', 'color',
            'capacity_kg', 'status', 'is_active', 'current_driver', 'current_driver_name'
        ]
        read_only_fields = fields

"""
Shipment serializers for Online Order Fulfillment.
"""

from rest_framework import serializers

from ..models import Shipment, TransportEvent, DeliveryAttempt, ProofOfDelivery


class ShipmentListSerializer(serializers.ModelSerializer):
    """Serializer for shipment listing."""

    order_number = serializers.SerializerMethodField()
    vehicle_plate = serializers.CharField(source='vehicle.plate', read_only=True, default=None)
    driver_name = serializers.CharField(source='driver.full_name', read_only=True, default=None)

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'tracking_number', 'order_number', 'status',
            'delivery_address', 'delivery_city', 'vehicle_plate', 'driver_name',
            'expected_delivery_date', 'created_at'
        ]

    def get_order_number(self, obj):
        return (obj.metadata or {}).get('order_number')


class DeliveryAttemptSerializer(serializers.ModelSerializer):

    class Meta:
        model = DeliveryAttempt
        fields = [
            'id', 'attempt_number', 'status', 'failure_reason_code', 'failure_reason_text',
            'reschedule_date', 'reschedule_notes', 'photo_urls', 'latitude', 'longitude',
            'driver', 'attempted_at'
        ]
        read_only_fields = fields


class ProofOfDeliverySerializer(serializers.ModelSerializer):

    class Meta:
        model = ProofOfDelivery
        fields = [
            'id', 'shipment', 'delivered_at', 'recipient_name', 'recipient_doc_type',
            'recipient_doc_number', 'recipient_relationship', 'signature_url', 'photo_urls',
            'latitude', 'longitude', 'delivery_location_type', 'driver', 'notes',
            'customer_feedback', 'customer_rating', 'created_at'
        ]
        read_only_fields = fields


class ShipmentDetailSerializer(serializers.ModelSerializer):
    """Serializer for shipment details."""

    vehicle_plate = serializers.CharField(source='vehicle.plate', read_only=True, default=None)
    driver_name = serializers.CharField(source='driver.full_name', read_only=True, default=None)
    attempts = DeliveryAttemptSerializer(many=True, read_only=True)
    delivery_minutes = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'organization_id', 'branch_id', 'source_type', 'source_id',
            'shipment_number', 'tracking_number', 'status', 'customer_id',
            'delivery_address', 'delivery_city', 'delivery_department', 'delivery_postal_code',
            'delivery_latitude', 'delivery_longitude', 'delivery_contact_name',
            'delivery_contact_phone', 'delivery_instructions',
            'vehicle', 'vehicle_plate', 'driver', 'driver_name',
            'expected_delivery_date', 'picked_at', 'dispatched_at', 'delivered_at',
            'delivery_minutes', 'notes', 'metadata', 'created_at', 'updated_at',
            'attempts'
        ]
        read_only_fields = fields

    def get_delivery_minutes(self, obj):
        return obj.delivery_minutes


class TransportEventSerializer(serializers.ModelSerializer):

    class Meta:
        model = TransportEvent
        fields = [
            'id', 'event_type', 'event_time', 'latitude', 'longitude', 'location_text',
            'actor_type', 'actor_id', 'description', 'payload', 'source'
        ]
        read_only_fields = fields


class ShipmentFromOrderSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class ShipmentAssignSerializer(serializers.Serializer):
    """Serializer for assigning a vehicle and driver."""

    vehicle_id = serializers.UUIDField()
    driver_id = serializers.UUIDField()
    estimated_delivery_time = serializers.DateTimeField(required=False)


class LocationSerializer(serializers.Serializer):
    """Optional GPS fix reported by the driver."""

    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False,
                                        min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False,
                                         min_value=-180, max_value=180)
    location_text = serializers.CharField(max_length=255, required=False, allow_blank=True)


class ShipmentPickUpSerializer(LocationSerializer):
    driver_id = serializers.UUIDField()


class ShipmentDeliverSerializer(LocationSerializer):
    """Serializer for the proof captured at delivery."""

    driver_id = serializers.UUIDField()
    recipient_name = serializers.CharField(max_length=255)
    recipient_doc_type = serializers.CharField(max_length=20, required=False, allow_blank=True)
    recipient_doc_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    recipient_relationship = serializers.CharField(max_length=50, required=False, allow_blank=True)
    signature_url = serializers.URLField(required=False, allow_blank=True)
    photo_urls = serializers.ListField(child=serializers.URLField(), required=False)
    delivery_location_type = serializers.CharField(max_length=30, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    customer_feedback = serializers.CharField(required=False, allow_blank=True)
    customer_rating = serializers.IntegerField(min_value=1, max_value=5, required=False)

    def validate_recipient_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Recipient name is required for delivery")
        return value.strip()


class ShipmentFailedAttemptSerializer(LocationSerializer):
    """Serializer for a failed delivery attempt."""

    driver_id = serializers.UUIDField()
    reason_code = serializers.CharField(max_length=50)
    reason_text = serializers.CharField()
    reschedule_date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    photo_urls = serializers.ListField(child=serializers.URLField(), required=False)


class ShipmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class ShipmentReturnSerializer(serializers.Serializer):
    driver_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=500)

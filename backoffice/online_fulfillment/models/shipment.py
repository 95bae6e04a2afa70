"""
Shipment models for Online Order Fulfillment.

Shipment, its append-only event log, delivery attempts and proof of delivery.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone


class ShipmentStatus(models.TextChoices):
    """Shipment status enumeration following the self-delivery lifecycle."""
    PENDING = 'pending', 'Pending'
    ASSIGNED = 'assigned', 'Assigned'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    RETURNED = 'returned', 'Returned'
    CANCELLED = 'cancelled', 'Cancelled'


class ShipmentSourceType(models.TextChoices):
    ORDER = 'order', 'Online Order'


class Shipment(models.Model):
    """
    Self-delivery fulfillment record, tracked from pickup to delivery.

    At most one shipment exists per source record. The vehicle/driver
    assignment is mirrored into ``metadata``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    branch_id = models.PositiveIntegerField(null=True, blank=True)

    # Source record
    source_type = models.CharField(max_length=20, choices=ShipmentSourceType.choices, default=ShipmentSourceType.ORDER)
    source_id = models.CharField(max_length=64, help_text="Identifier of the source record")

    # Identification
    shipment_number = models.CharField(max_length=60)
    tracking_number = models.CharField(max_length=40, unique=True)

    # Delivery address snapshot
    customer_id = models.UUIDField(null=True, blank=True)
    delivery_address = models.CharField(max_length=255, blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_department = models.CharField(max_length=100, blank=True)
    delivery_postal_code = models.CharField(max_length=20, blank=True)
    delivery_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    delivery_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    delivery_contact_name = models.CharField(max_length=255, blank=True)
    delivery_contact_phone = models.CharField(max_length=50, blank=True)
    delivery_instructions = models.TextField(blank=True)

    # Assignment
    vehicle = models.ForeignKey(
        'Vehicle',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shipments'
    )
    driver = models.ForeignKey(
        'Driver',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shipments'
    )

    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PENDING,
        help_text="Current shipment status"
    )

    # Timestamps
    expected_delivery_date = models.DateTimeField(null=True, blank=True)
    picked_at = models.DateTimeField(null=True, blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_shipments'
    )

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['source_type', 'source_id'], name='unique_shipment_per_source'),
        ]
        indexes = [
            models.Index(fields=['organization_id', 'status']),
            models.Index(fields=['expected_delivery_date']),
        ]

    def __str__(self):
        return f"Shipment {self.shipment_number} ({self.status})"

    @property
    def is_delivered(self):
        return self.status == ShipmentStatus.DELIVERED

    @property
    def is_terminal(self):
        return self.status in (ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED, ShipmentStatus.CANCELLED)

    @property
    def delivery_minutes(self):
        """Minutes between pickup and delivery."""
        if self.picked_at and self.delivered_at:
            return (self.delivered_at - self.picked_at).total_seconds() / 60
        return None


class TransportEvent(models.Model):
    """
    Append-only audit trail of shipment actions.

    Rows are never updated or deleted; chronological order is
    ``(event_time, id)``.
    """

    id = models.BigAutoField(primary_key=True)
    organization_id = models.PositiveIntegerField(null=True, blank=True)
    reference_type = models.CharField(max_length=30, default='shipment')
    reference_id = models.CharField(max_length=64)
    event_type = models.CharField(max_length=30)
    event_time = models.DateTimeField(default=timezone.now)

    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_text = models.CharField(max_length=255, blank=True)

    actor_type = models.CharField(max_length=20, default='system')
    actor_id = models.CharField(max_length=64, blank=True)
    description = models.TextField(blank=True)
    payload = models.JSONField(default=dict, blank=True)
    source = models.CharField(max_length=20, default='internal')

    class Meta:
        ordering = ['event_time', 'id']
        indexes = [
            models.Index(fields=['reference_type', 'reference_id', 'event_time']),
        ]

    def __str__(self):
        return f"{self.reference_type}:{self.reference_id} {self.event_type} at {self.event_time}"


class DeliveryAttemptStatus(models.TextChoices):
    FAILED = 'failed', 'Failed'


class DeliveryAttempt(models.Model):
    """Failed delivery try, numbered sequentially per shipment."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(Shipment, on_delete=models.CASCADE, related_name='attempts')
    attempt_number = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=DeliveryAttemptStatus.choices, default=DeliveryAttemptStatus.FAILED)
    failure_reason_code = models.CharField(max_length=50)
    failure_reason_text = models.TextField()
    reschedule_date = models.DateTimeField(null=True, blank=True)
    reschedule_notes = models.TextField(blank=True)
    photo_urls = models.JSONField(default=list, blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    driver = models.ForeignKey('Driver', on_delete=models.SET_NULL, null=True, blank=True, related_name='delivery_attempts')
    attempted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['shipment', 'attempt_number']
        constraints = [
            models.UniqueConstraint(fields=['shipment', 'attempt_number'], name='unique_attempt_number_per_shipment'),
        ]

    def __str__(self):
        return f"Attempt {self.attempt_number} for {self.shipment_id}"


class ProofOfDelivery(models.Model):
    """Evidence captured when a shipment is delivered."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.OneToOneField(Shipment, on_delete=models.CASCADE, related_name='proof_of_delivery')
    delivered_at = models.DateTimeField(default=timezone.now)
    recipient_name = models.CharField(max_length=255)
    recipient_doc_type = models.CharField(max_length=20, blank=True)
    recipient_doc_number = models.CharField(max_length=50, blank=True)
    recipient_relationship = models.CharField(max_length=50, blank=True)
    signature_url = models.URLField(blank=True)
    photo_urls = models.JSONField(default=list, blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    delivery_location_type = models.CharField(max_length=30, blank=True)
    driver = models.ForeignKey('Driver', on_delete=models.SET_NULL, null=True, blank=True, related_name='proofs_of_delivery')
    notes = models.TextField(blank=True)
    customer_feedback = models.TextField(blank=True)
    customer_rating = models.PositiveSmallIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"POD {self.shipment_id} - {self.recipient_name}"

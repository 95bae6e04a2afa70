"""
Online order model for Online Order Fulfillment.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone


class OrderStatus(models.TextChoices):
    """Order status enumeration with lifecycle states."""
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    IN_DELIVERY = 'in_delivery', 'In Delivery'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'
    REJECTED = 'rejected', 'Rejected'


class DeliveryType(models.TextChoices):
    """How the order reaches the customer."""
    PICKUP = 'pickup', 'Pickup'
    DELIVERY_OWN = 'delivery_own', 'Own Delivery'
    DELIVERY_THIRD_PARTY = 'delivery_third_party', 'Third-party Delivery'


class OrderSource(models.TextChoices):
    """Ordering channel the order was placed from."""
    WEBSITE = 'website', 'Website'
    MOBILE_APP = 'mobile_app', 'Mobile App'
    WHATSAPP = 'whatsapp', 'WhatsApp'
    PHONE = 'phone', 'Phone'


class PaymentStatus(models.TextChoices):
    """Payment state reported by the ordering front-end."""
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    PARTIAL = 'partial', 'Partial'
    REFUNDED = 'refunded', 'Refunded'
    FAILED = 'failed', 'Failed'


TERMINAL_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED)


class Order(models.Model):
    """
    Purchase request placed from an external ordering channel.

    Created by the ordering front-end, confirmed exactly once into a Sale,
    then driven through preparation and delivery. Orders are never deleted;
    delivered, cancelled and rejected are terminal.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField(help_text="Owning organization")
    branch_id = models.PositiveIntegerField(null=True, blank=True, help_text="Branch preparing the order")
    order_number = models.CharField(
        max_length=50,
        help_text="Human-readable order number (auto-generated)"
    )

    # Status and origin
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        help_text="Current order status"
    )
    source = models.CharField(
        max_length=20,
        choices=OrderSource.choices,
        default=OrderSource.WEBSITE
    )

    # Customer
    customer_id = models.UUIDField(null=True, blank=True)
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=50, blank=True)
    customer_notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)

    # Financial information
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tip_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    coupon_code = models.CharField(max_length=50, blank=True)

    # Delivery
    delivery_type = models.CharField(
        max_length=30,
        choices=DeliveryType.choices,
        default=DeliveryType.PICKUP
    )
    delivery_partner = models.CharField(max_length=100, blank=True)
    delivery_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Address payload as sent by the ordering channel (shape varies by origin)"
    )
    is_scheduled = models.BooleanField(default=False)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    estimated_ready_at = models.DateTimeField(null=True, blank=True)
    estimated_delivery_at = models.DateTimeField(null=True, blank=True)

    # Payment
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)

    # Sale linkage, set once on confirmation
    sale = models.OneToOneField(
        'Sale',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='source_order',
        help_text="Point-of-sale transaction created on confirmation"
    )

    # Lifecycle stamps
    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='confirmed_online_orders'
    )
    ready_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_online_orders'
    )
    cancellation_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization_id', 'order_number'],
                name='unique_order_number_per_organization'
            ),
        ]
        indexes = [
            models.Index(fields=['organization_id', 'status']),
            models.Index(fields=['organization_id', 'created_at']),
            models.Index(fields=['delivery_type', 'status']),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    def save(self, *args, **kwargs):
        """Override save to auto-generate order number if not provided."""
        if not self.order_number:
            timestamp = timezone.now().strftime('%y%m%d%H%M')
            self.order_number = f"WO-{timestamp}-{str(self.id)[:4].upper()}"
        super().save(*args, **kwargs)

    @property
    def is_terminal(self):
        """Check if order reached a final state."""
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def is_confirmable(self):
        """Check if the order can still be confirmed into a sale."""
        return self.status == OrderStatus.PENDING and self.sale_id is None

    @property
    def requires_shipment(self):
        """Self-delivered orders get a shipment on confirmation."""
        return self.delivery_type == DeliveryType.DELIVERY_OWN

    @property
    def has_tip(self):
        return (self.tip_amount or Decimal('0.00')) > 0

"""
OrderItem model for Online Order Fulfillment.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


class OrderItemStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    CANCELLED = 'cancelled', 'Cancelled'


class OrderItem(models.Model):
    """
    Line item of an online order, as priced by the ordering front-end.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Order this item belongs to"
    )

    # Product information (the catalogue lives outside this app)
    product_id = models.PositiveIntegerField(null=True, blank=True)
    product_name = models.CharField(max_length=255, help_text="Product name at time of order")
    product_sku = models.CharField(max_length=100, blank=True)

    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="quantity * unit_price + tax - discount"
    )

    modifiers = models.JSONField(default=list, blank=True, help_text="Free-form modifiers chosen by the customer")
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=OrderItemStatus.choices, default=OrderItemStatus.PENDING)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['order', 'created_at']

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def save(self, *args, **kwargs):
        """Override save to calculate the line total."""
        self.total = self.line_total()
        super().save(*args, **kwargs)

    def line_total(self) -> Decimal:
        return (
            Decimal(self.quantity) * Decimal(self.unit_price)
            + Decimal(self.tax_amount or 0)
            - Decimal(self.discount_amount or 0)
        )

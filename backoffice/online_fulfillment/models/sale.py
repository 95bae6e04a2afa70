"""
Point-of-sale ledger models: Sale and SaleItem.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone


class SaleStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    VOIDED = 'voided', 'Voided'


class Sale(models.Model):
    """
    Authoritative point-of-sale transaction.

    Derived 1:1 from a confirmed online order; never created speculatively.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    branch_id = models.PositiveIntegerField(null=True, blank=True)
    customer_id = models.UUIDField(null=True, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='online_sales',
        help_text="User who confirmed the originating order"
    )

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tip_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    status = models.CharField(max_length=20, choices=SaleStatus.choices, default=SaleStatus.PENDING)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization_id', 'created_at']),
        ]

    def __str__(self):
        return f"Sale {self.id} - {self.total} ({self.status})"


class SaleItem(models.Model):
    """
    Line item of a Sale, re-priced when the sale is created.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    product_id = models.PositiveIntegerField(null=True, blank=True)

    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    notes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Annotation: product name, originating order number, modifiers"
    )

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['sale', 'created_at']

    def __str__(self):
        return f"{self.notes.get('product_name', self.product_id)} x {self.quantity}"

    def save(self, *args, **kwargs):
        """Override save to re-price the line."""
        self.total = (
            Decimal(self.quantity) * Decimal(self.unit_price)
            + Decimal(self.tax_amount or 0)
            - Decimal(self.discount_amount or 0)
        )
        super().save(*args, **kwargs)

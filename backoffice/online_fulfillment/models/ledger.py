"""
Gratuity and coupon ledger models.

Both ledgers may hold rows speculatively written by the public ordering
front-end before the order is confirmed.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


class TipType(models.TextChoices):
    ONLINE = 'online', 'Online'
    TABLE = 'table', 'Table'
    COUNTER = 'counter', 'Counter'


class Tip(models.Model):
    """
    Gratuity record.

    Rows pre-created upstream carry no sale, the sentinel actor id and the
    order number embedded in ``notes``. ``source_order_id`` is the explicit
    correlation column filled in on reconciliation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    branch_id = models.PositiveIntegerField(null=True, blank=True)
    tip_type = models.CharField(max_length=20, choices=TipType.choices, default=TipType.ONLINE)
    sale = models.ForeignKey(
        'Sale',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tips'
    )
    source_order_id = models.UUIDField(null=True, blank=True, db_index=True)
    actor_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Staff member credited with the tip"
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization_id', 'branch_id', 'tip_type']),
        ]

    def __str__(self):
        return f"Tip {self.amount} ({self.tip_type})"


class DiscountType(models.TextChoices):
    PERCENTAGE = 'percentage', 'Percentage'
    FIXED = 'fixed', 'Fixed amount'


class Coupon(models.Model):
    """Coupon definition with its usage counter."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=255, blank=True)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']
        constraints = [
            models.UniqueConstraint(fields=['organization_id', 'code'], name='unique_coupon_code_per_organization'),
        ]

    def __str__(self):
        return self.code

    @property
    def is_redeemable(self):
        if not self.is_active:
            return False
        if self.expires_at and self.expires_at < timezone.now():
            return False
        return True


class CouponRedemption(models.Model):
    """
    Redemption of a coupon by a sale.

    The ordering front-end writes the order id into ``sale_reference`` as a
    placeholder; reconciliation replaces it with the real sale id.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name='redemptions')
    sale_reference = models.UUIDField(db_index=True)
    customer_id = models.UUIDField(null=True, blank=True)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    redeemed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-redeemed_at']

    def __str__(self):
        return f"{self.coupon.code} -> {self.sale_reference}"

"""
Kitchen queue models: production tickets and their items.
"""

import uuid
from django.db import models
from django.utils import timezone


class TicketStatus(models.TextChoices):
    NEW = 'new', 'New'
    IN_PROGRESS = 'in_progress', 'In Progress'
    DONE = 'done', 'Done'
    CANCELLED = 'cancelled', 'Cancelled'


class TicketItemStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    CANCELLED = 'cancelled', 'Cancelled'


class ProductionTicket(models.Model):
    """
    Kitchen work order for a confirmed online order.

    The ticket status is an aggregate; each item tracks its own preparation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.PositiveIntegerField()
    branch_id = models.PositiveIntegerField(null=True, blank=True)
    sale = models.ForeignKey('Sale', on_delete=models.CASCADE, related_name='production_tickets')
    order = models.ForeignKey(
        'Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_tickets'
    )

    status = models.CharField(max_length=20, choices=TicketStatus.choices, default=TicketStatus.NEW)
    priority = models.IntegerField(default=0)
    printed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-priority', 'created_at']
        indexes = [
            models.Index(fields=['organization_id', 'status']),
        ]

    def __str__(self):
        return f"Ticket {self.id} ({self.status})"

    @property
    def progress_percentage(self):
        items = list(self.items.all())
        if not items:
            return 0
        ready = sum(1 for item in items if item.status == TicketItemStatus.READY)
        return int(ready * 100 / len(items))


class TicketItem(models.Model):
    """One preparation line per sale item."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket = models.ForeignKey(ProductionTicket, on_delete=models.CASCADE, related_name='items')
    sale_item = models.ForeignKey('SaleItem', on_delete=models.CASCADE, related_name='ticket_items')
    station = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=TicketItemStatus.choices, default=TicketItemStatus.PENDING)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['ticket', 'created_at']

    def __str__(self):
        return f"{self.sale_item} [{self.status}]"

"""
Audit log model for Online Order Fulfillment.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone


def _json_safe(obj):
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(item) for item in obj]
    if isinstance(obj, (Decimal, uuid.UUID)):
        return str(obj)
    if hasattr(obj, 'isoformat'):
        return obj.isoformat()
    return obj


class AuditLog(models.Model):
    """
    Generic audit log for order status changes and confirmation steps.

    Failed confirmation steps are recorded here so back-office staff can
    reconcile orders whose auxiliary records are missing.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Entity being audited
    entity_type = models.CharField(max_length=50, help_text="Type of entity (Order, Shipment, etc.)")
    entity_id = models.CharField(max_length=64, help_text="Identifier of the entity being audited")
    organization_id = models.PositiveIntegerField(null=True, blank=True)

    action = models.CharField(
        max_length=50,
        help_text="Action performed (status_changed, confirmation_step_failed, etc.)"
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fulfillment_audit_logs'
    )

    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-timestamp']),
            models.Index(fields=['action', '-timestamp']),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id} - {self.action} at {self.timestamp}"

    @classmethod
    def log_change(cls, entity, action: str, user=None, old_values=None,
                   new_values=None, notes="", metadata=None):
        """
        Record an action on an order or shipment.

        Values are converted to JSON-safe types (decimals, UUIDs and dates
        become strings). Anonymous users are stored as no user.
        """
        return cls.objects.create(
            entity_type=entity.__class__.__name__,
            entity_id=str(entity.pk),
            organization_id=getattr(entity, 'organization_id', None),
            action=action,
            user=user if getattr(user, 'pk', None) else None,
            old_values=_json_safe(old_values or {}),
            new_values=_json_safe(new_values or {}),
            notes=notes,
            metadata=_json_safe(metadata or {})
        )

    @classmethod
    def log_status_change(cls, entity, old_status: str, new_status: str, user=None, notes=""):
        return cls.log_change(
            entity=entity,
            action='status_changed',
            user=user,
            old_values={'status': old_status},
            new_values={'status': new_status},
            notes=notes
        )

    @classmethod
    def log_step_failure(cls, order, step: str, error: Exception, user=None):
        """Record a confirmation step that failed without aborting the confirmation."""
        return cls.log_change(
            entity=order,
            action='confirmation_step_failed',
            user=user,
            notes=f"Step '{step}' failed: {error}",
            metadata={'step': step, 'error_type': error.__class__.__name__}
        )

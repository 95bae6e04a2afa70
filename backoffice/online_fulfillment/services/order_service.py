"""
Order Service for Online Order Fulfillment.

Drives the order status machine: every transition stamps its timestamp
field and is written to the audit log.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Any, Optional

from django.utils import timezone

from ..adapters import get_collaborators
from ..exceptions import ValidationException
from ..models import Order, OrderStatus, PaymentStatus, AuditLog
from .workflow import validate_order_workflow

logger = logging.getLogger(__name__)

OPEN_STATUSES = [
    OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING,
    OrderStatus.READY, OrderStatus.IN_DELIVERY,
]


def _actor(user):
    """Return the user when it is a persisted account, else None."""
    return user if getattr(user, 'pk', None) else None


class OrderService:
    """Service class for order status operations."""

    @staticmethod
    def update_order_status(order_id, organization_id, status: str, *, updated_by=None,
                            cancellation_reason: Optional[str] = None,
                            internal_notes: Optional[str] = None,
                            estimated_ready_at=None, estimated_delivery_at=None) -> Order:
        """
        Move an order to the requested status.

        Args:
            order_id: Order UUID
            organization_id: Organization owning the order
            status: Target status
            updated_by: User requesting the change
            cancellation_reason: Reason stored for cancelled/rejected orders
            internal_notes: Replaces the staff notes when given
            estimated_ready_at: Stored on confirmation when given
            estimated_delivery_at: Stored whenever given

        Returns:
            Updated Order instance

        Raises:
            ValidationException: If the status is unknown
            InvalidTransitionException: If strict transitions are enabled and the move is not allowed
        """
        if status not in OrderStatus.values:
            raise ValidationException(f"Unknown order status '{status}'", {'status': status})

        orders = get_collaborators().orders
        order = orders.get(order_id, organization_id)
        validate_order_workflow(order, status)

        now = timezone.now()
        fields: Dict[str, Any] = {'status': status}

        if status == OrderStatus.CONFIRMED:
            fields['confirmed_at'] = now
            if estimated_ready_at:
                fields['estimated_ready_at'] = estimated_ready_at
        elif status == OrderStatus.READY:
            fields['ready_at'] = now
        elif status == OrderStatus.DELIVERED:
            fields['delivered_at'] = now
        elif status in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
            fields['cancelled_at'] = now
            fields['cancelled_by'] = _actor(updated_by)
            fields['cancellation_reason'] = cancellation_reason or ''

        if internal_notes:
            fields['internal_notes'] = internal_notes
        if estimated_delivery_at:
            fields['estimated_delivery_at'] = estimated_delivery_at

        updated_order = orders.update_fields(order.id, organization_id, **fields)

        AuditLog.log_status_change(
            entity=updated_order,
            old_status=order.status,
            new_status=status,
            user=_actor(updated_by),
            notes=cancellation_reason or ""
        )

        logger.info(f"Order {order.order_number} status changed from {order.status} to {status}")
        return updated_order

    @staticmethod
    def start_preparing(order_id, organization_id, updated_by=None) -> Order:
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.PREPARING,
                                                updated_by=updated_by)

    @staticmethod
    def mark_ready(order_id, organization_id, updated_by=None) -> Order:
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.READY,
                                                updated_by=updated_by)

    @staticmethod
    def start_delivery(order_id, organization_id, estimated_minutes: Optional[int] = None,
                       updated_by=None) -> Order:
        """Mark the order on its way, optionally re-estimating arrival."""
        estimated_delivery_at = None
        if estimated_minutes:
            estimated_delivery_at = timezone.now() + timedelta(minutes=estimated_minutes)
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.IN_DELIVERY,
                                                updated_by=updated_by,
                                                estimated_delivery_at=estimated_delivery_at)

    @staticmethod
    def mark_delivered(order_id, organization_id, updated_by=None) -> Order:
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.DELIVERED,
                                                updated_by=updated_by)

    @staticmethod
    def cancel_order(order_id, organization_id, reason: str, cancelled_by=None) -> Order:
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.CANCELLED,
                                                updated_by=cancelled_by, cancellation_reason=reason)

    @staticmethod
    def reject_order(order_id, organization_id, reason: str, rejected_by=None) -> Order:
        return OrderService.update_order_status(order_id, organization_id, OrderStatus.REJECTED,
                                                updated_by=rejected_by, cancellation_reason=reason)

    @staticmethod
    def update_payment_status(order_id, organization_id, payment_status: str,
                              payment_reference: Optional[str] = None, updated_by=None) -> Order:
        """
        Record the payment state reported for an order.

        Raises:
            ValidationException: If the payment status is unknown
        """
        if payment_status not in PaymentStatus.values:
            raise ValidationException(f"Unknown payment status '{payment_status}'",
                                      {'payment_status': payment_status})

        orders = get_collaborators().orders
        order = orders.get(order_id, organization_id)
        fields = {'payment_status': payment_status}
        if payment_reference is not None:
            fields['payment_reference'] = payment_reference
        updated_order = orders.update_fields(order.id, organization_id, **fields)

        AuditLog.log_change(
            entity=updated_order,
            action='payment_updated',
            user=_actor(updated_by),
            old_values={'payment_status': order.payment_status},
            new_values=fields,
        )
        logger.info(f"Order {order.order_number} payment status set to {payment_status}")
        return updated_order

    @staticmethod
    def get_order_stats(organization_id, date_from: Optional[date] = None,
                        date_to: Optional[date] = None) -> Dict[str, Any]:
        """
        Aggregate order counts and revenue for an organization.

        Args:
            organization_id: Organization to report on
            date_from: First creation date included
            date_to: Last creation date included

        Returns:
            Totals plus breakdowns by delivery type and by source
        """
        orders = Order.objects.filter(organization_id=organization_id)
        if date_from:
            orders = orders.filter(created_at__date__gte=date_from)
        if date_to:
            orders = orders.filter(created_at__date__lte=date_to)

        stats = {
            'total_orders': 0,
            'pending_orders': 0,
            'completed_orders': 0,
            'cancelled_orders': 0,
            'total_revenue': Decimal('0.00'),
            'avg_order_value': Decimal('0.00'),
            'by_delivery_type': [],
            'by_source': [],
        }
        by_delivery_type: Dict[str, Dict[str, Any]] = {}
        by_source: Dict[str, int] = {}

        for status, total, delivery_type, source in orders.values_list('status', 'total', 'delivery_type', 'source'):
            stats['total_orders'] += 1
            delivered = status == OrderStatus.DELIVERED

            if status in OPEN_STATUSES:
                stats['pending_orders'] += 1
            elif delivered:
                stats['completed_orders'] += 1
                stats['total_revenue'] += total
            elif status in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
                stats['cancelled_orders'] += 1

            bucket = by_delivery_type.setdefault(delivery_type, {'count': 0, 'revenue': Decimal('0.00')})
            bucket['count'] += 1
            if delivered:
                bucket['revenue'] += total

            by_source[source] = by_source.get(source, 0) + 1

        if stats['completed_orders']:
            stats['avg_order_value'] = (stats['total_revenue'] / stats['completed_orders']).quantize(Decimal('0.01'))

        stats['by_delivery_type'] = [{'type': key, **value} for key, value in by_delivery_type.items()]
        stats['by_source'] = [{'source': key, 'count': value} for key, value in by_source.items()]
        return stats

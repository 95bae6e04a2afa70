"""
Fulfillment Service for Online Order Fulfillment.

Turns a pending online order into the records the store operates on: a
Sale with its items, a kitchen ticket, the tip and coupon ledger entries
and, for self-delivered orders, a shipment.

Every step commits on its own. There is no transaction around the whole
confirmation, so a failure leaves the earlier steps in place:

- hard steps (sale, sale items, ticket, finalize) stop the confirmation
  with a FulfillmentStepError listing what was already written;
- soft steps (gratuity, coupon, shipment) are logged, recorded in the
  audit log and skipped.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Dict, Any, Optional

from django.db import transaction
from django.utils import timezone

from ..adapters import get_collaborators
from ..conf import get_setting
from ..exceptions import BusinessException, FulfillmentStepError, ValidationException
from ..models import (
    Order, OrderStatus, DeliveryType, Sale, SaleItem, ProductionTicket, AuditLog
)
from .address import normalize_delivery_address
from .shipping_service import ShippingService

logger = logging.getLogger(__name__)

STEP_SALE = 'sale'
STEP_SALE_ITEMS = 'sale_items'
STEP_PRODUCTION_TICKET = 'production_ticket'
STEP_GRATUITY = 'gratuity'
STEP_COUPON = 'coupon'
STEP_SHIPMENT = 'shipment'
STEP_FINALIZE = 'finalize'


@dataclass
class ConfirmationResult:
    """Identities of the records written by a confirmation."""
    sale_id: Any
    ticket_id: Any
    tip_id: Any = None
    shipment_id: Any = None
    redemption_id: Any = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {key: str(value) if value is not None else None for key, value in asdict(self).items()}


class FulfillmentService:
    """Service class for confirming online orders."""

    @staticmethod
    def confirm_order(order_id, organization_id, estimated_minutes: int, confirmed_by=None) -> ConfirmationResult:
        """
        Confirm a pending online order.

        Args:
            order_id: Order UUID
            organization_id: Organization owning the order
            estimated_minutes: Preparation estimate, used for the ready and delivery estimates
            confirmed_by: User confirming the order

        Returns:
            ConfirmationResult with the ids of the created records; ids of
            skipped or failed optional steps are None

        Raises:
            Order.DoesNotExist: If the order is not in the organization
            BusinessException: If the order is not pending or already has a sale
            ValidationException: If the estimate is negative
            FulfillmentStepError: If a mandatory step fails
        """
        if estimated_minutes is None or estimated_minutes < 0:
            raise ValidationException("Estimated minutes must be zero or more",
                                      {'estimated_minutes': estimated_minutes})

        collaborators = get_collaborators()
        order = collaborators.orders.get(order_id, organization_id)

        if not order.is_confirmable:
            raise BusinessException(
                f"Order {order.order_number} cannot be confirmed (status {order.status})",
                "ORDER_NOT_CONFIRMABLE",
                {'status': order.status, 'sale_id': str(order.sale_id) if order.sale_id else None}
            )

        user = confirmed_by if getattr(confirmed_by, 'pk', None) else None
        committed: Dict[str, Any] = {}
        logger.info(f"Confirming order {order.order_number} ({order.delivery_type})")

        # Mandatory steps
        sale = FulfillmentService._run_hard_step(
            STEP_SALE, order, committed,
            lambda: collaborators.sales.create_sale(order, created_by=user)
        )
        committed['sale_id'] = sale.id

        sale_items = FulfillmentService._run_hard_step(
            STEP_SALE_ITEMS, order, committed,
            lambda: collaborators.sales.create_sale_items(sale, order)
        )
        committed['sale_item_ids'] = [ref.id for ref in sale_items] or None

        ticket = FulfillmentService._run_hard_step(
            STEP_PRODUCTION_TICKET, order, committed,
            lambda: collaborators.kitchen.create_ticket(sale, order, sale_items)
        )
        committed['ticket_id'] = ticket.id

        result = ConfirmationResult(sale_id=sale.id, ticket_id=ticket.id)

        # Optional steps
        if order.has_tip:
            actor_id = str(user.pk) if user else ''
            tip = FulfillmentService._run_soft_step(
                STEP_GRATUITY, order, user,
                lambda: collaborators.gratuities.reconcile_or_create(order, sale, actor_id)
            )
            result.tip_id = tip.id if tip else None

        if order.coupon_code:
            redemption = FulfillmentService._run_soft_step(
                STEP_COUPON, order, user,
                lambda: FulfillmentService._redeem_coupon(order, sale)
            )
            result.redemption_id = redemption.id if redemption else None

        # Estimates; the shipment copies the delivery estimate
        now = timezone.now()
        estimated_ready_at = now + timedelta(minutes=estimated_minutes)
        estimated_delivery_at = None
        if order.delivery_type != DeliveryType.PICKUP:
            estimated_delivery_at = estimated_ready_at + timedelta(minutes=get_setting('DELIVERY_BUFFER_MINUTES'))

        if order.requires_shipment:
            address = normalize_delivery_address(order.delivery_address, order.customer_notes)
            shipment = FulfillmentService._run_soft_step(
                STEP_SHIPMENT, order, user,
                lambda: ShippingService.create_from_order(
                    order, address=address, created_by=user, expected_delivery_at=estimated_delivery_at
                )
            )
            result.shipment_id = shipment.id if shipment else None

        committed.update(tip_id=result.tip_id, redemption_id=result.redemption_id, shipment_id=result.shipment_id)
        confirmed_order = FulfillmentService._run_hard_step(
            STEP_FINALIZE, order, committed,
            lambda: collaborators.orders.finalize(
                order,
                sale=sale,
                confirmed_at=now,
                confirmed_by=user,
                estimated_ready_at=estimated_ready_at,
                estimated_delivery_at=estimated_delivery_at,
            )
        )

        AuditLog.log_change(
            entity=confirmed_order,
            action='confirmed',
            user=user,
            old_values={'status': order.status},
            new_values={'status': OrderStatus.CONFIRMED, **result.to_dict()},
        )

        logger.info(f"Order {order.order_number} confirmed: sale {sale.id}, ticket {ticket.id}")
        return result

    @staticmethod
    def reconciliation_report(order_id, organization_id) -> Dict[str, Any]:
        """
        Compare the records a confirmed order should have with those that exist.

        Used by back-office staff to repair orders whose confirmation was
        interrupted.

        Returns:
            Dict with the linked record ids, ``issues`` (human readable) and
            the recorded ``step_failures``
        """
        order = get_collaborators().orders.get(order_id, organization_id)
        issues = []

        sale = order.sale
        if sale is None:
            # A sale may exist without the link when finalize failed
            sale = Sale.objects.filter(
                organization_id=order.organization_id,
                notes=f"Online order: {order.order_number}",
            ).order_by('-created_at').first()
            if sale is not None:
                issues.append(f"Sale {sale.id} exists but is not linked to the order")
            elif order.status != OrderStatus.PENDING:
                issues.append("Order has left pending without a sale")

        sale_item_count = SaleItem.objects.filter(sale=sale).count() if sale else 0
        order_item_count = order.items.count()
        if sale is not None and sale_item_count != order_item_count:
            issues.append(f"Sale has {sale_item_count} items, order has {order_item_count}")

        ticket = ProductionTicket.objects.filter(sale=sale).first() if sale else None
        if sale is not None and ticket is None:
            issues.append("No production ticket for the sale")

        tip = None
        if order.has_tip:
            tip = get_collaborators().gratuities.find_for_order(order)
            if tip is None:
                issues.append(f"No tip record for tip amount {order.tip_amount}")
            elif sale is not None and tip.sale_id != sale.id:
                issues.append(f"Tip {tip.id} is not linked to the sale")
            elif tip.actor_id == get_setting('UPSTREAM_ACTOR_ID'):
                issues.append(f"Tip {tip.id} is still credited to the ordering front-end")

        redemption = None
        if order.coupon_code and sale is not None:
            coupons = get_collaborators().coupons
            coupon = coupons.find_active(order.coupon_code, order.organization_id)
            if coupon is not None:
                redemption = coupons.find_redemption(coupon, order, sale)
                if redemption is None:
                    issues.append(f"No redemption for coupon {coupon.code}")
                elif redemption.sale_reference != sale.id:
                    issues.append(f"Redemption {redemption.id} still references the order")

        shipment = None
        if order.requires_shipment:
            shipment = ShippingService.get_shipment_by_order(order.id)
            if shipment is None and sale is not None:
                issues.append("Self-delivered order has no shipment")

        step_failures = [
            {'step': log.metadata.get('step'), 'notes': log.notes, 'timestamp': log.timestamp.isoformat()}
            for log in AuditLog.objects.filter(
                entity_type='Order', entity_id=str(order.id), action='confirmation_step_failed'
            )
        ]

        return {
            'order_id': str(order.id),
            'order_number': order.order_number,
            'status': order.status,
            'sale_id': str(sale.id) if sale else None,
            'sale_linked': order.sale_id is not None,
            'order_items': order_item_count,
            'sale_items': sale_item_count,
            'ticket_id': str(ticket.id) if ticket else None,
            'tip_id': str(tip.id) if tip else None,
            'redemption_id': str(redemption.id) if redemption else None,
            'shipment_id': str(shipment.id) if shipment else None,
            'issues': issues,
            'step_failures': step_failures,
        }

    @staticmethod
    def _redeem_coupon(order: Order, sale: Sale):
        coupons = get_collaborators().coupons
        coupon = coupons.find_active(order.coupon_code, order.organization_id)
        if coupon is None:
            logger.info(f"Coupon {order.coupon_code} of order {order.order_number} not found or inactive")
            return None

        redemption, created = coupons.reconcile_or_create(coupon, order, sale)
        if created:
            logger.info(f"Coupon {coupon.code} redeemed for order {order.order_number}")
        else:
            logger.info(f"Coupon {coupon.code} redemption {redemption.id} linked to sale {sale.id}")
        return redemption

    @staticmethod
    def _run_hard_step(step: str, order: Order, committed: Dict[str, Any], action):
        try:
            with transaction.atomic():
                value = action()
        except Exception as exc:
            logger.error(f"Order {order.order_number}: step '{step}' failed, committed {list(committed)}: {exc}")
            raise FulfillmentStepError(step, order.order_number, committed, reason=str(exc)) from exc
        logger.debug(f"Order {order.order_number}: step '{step}' done")
        return value

    @staticmethod
    def _run_soft_step(step: str, order: Order, user, action):
        try:
            with transaction.atomic():
                value = action()
        except Exception as exc:
            logger.exception(f"Order {order.order_number}: optional step '{step}' failed")
            AuditLog.log_step_failure(order, step, exc, user=user)
            return None
        logger.debug(f"Order {order.order_number}: step '{step}' done")
        return value

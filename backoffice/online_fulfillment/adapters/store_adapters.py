"""
Store adapters for Online Order Fulfillment.

Interfaces to the records the orchestrator writes but does not own (orders,
point-of-sale ledger, kitchen queue, gratuity and coupon ledgers), with
default implementations backed by the Django ORM.
"""

import re
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import List, Optional, Tuple
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import BusinessException
from ..models import (
    Order, OrderStatus, PaymentStatus, Sale, SaleItem, SaleStatus,
    ProductionTicket, TicketItem, Tip, TipType, Coupon, CouponRedemption
)


SaleItemRef = namedtuple('SaleItemRef', ['id', 'product_id', 'notes'])


def order_number_pattern(order_number: str) -> str:
    """Regex matching an order number as a whole token inside free text."""
    return rf'(^|[^0-9A-Za-z-]){re.escape(order_number)}([^0-9A-Za-z-]|$)'


class OrderStoreInterface(ABC):
    """Read and partially update placed orders, always scoped by organization."""

    @abstractmethod
    def get(self, order_id, organization_id) -> Order:
        """
        Fetch an order with its items.

        Raises:
            Order.DoesNotExist: If the order is not in the organization
        """
        pass

    @abstractmethod
    def update_fields(self, order_id, organization_id, **fields) -> Order:
        """Update only the given fields; every other field is left unchanged."""
        pass

    @abstractmethod
    def finalize(self, order: Order, *, sale: Sale, confirmed_at, confirmed_by,
                 estimated_ready_at, estimated_delivery_at=None) -> Order:
        """
        Mark the order confirmed and link it to its sale.

        Raises:
            BusinessException: If the order is already linked to a sale
        """
        pass


class SaleLedgerInterface(ABC):
    """Point-of-sale transaction ledger."""

    @abstractmethod
    def create_sale(self, order: Order, created_by=None) -> Sale:
        pass

    @abstractmethod
    def create_sale_items(self, sale: Sale, order: Order) -> List[SaleItemRef]:
        """
        Create one sale item per order item.

        Returns:
            References (id, product_id, notes) of the inserted items, in order item order
        """
        pass

    @abstractmethod
    def count_items(self, sale: Sale) -> int:
        pass


class KitchenQueueInterface(ABC):
    """Production tickets for the kitchen."""

    @abstractmethod
    def create_ticket(self, sale: Sale, order: Order, sale_items: List[SaleItemRef]) -> ProductionTicket:
        """
        Create a ticket with one item per sale item.

        Raises:
            BusinessException: If there are no sale items to prepare
        """
        pass


class GratuityLedgerInterface(ABC):
    """Tip records, possibly pre-created by the ordering front-end."""

    @abstractmethod
    def find_for_order(self, order: Order) -> Optional[Tip]:
        pass

    @abstractmethod
    def reconcile_or_create(self, order: Order, sale: Sale, actor_id: str) -> Tip:
        pass


class CouponLedgerInterface(ABC):
    """Coupon definitions and redemptions."""

    @abstractmethod
    def find_active(self, code: str, organization_id) -> Optional[Coupon]:
        """Return the redeemable coupon for a code, or None when missing or inactive."""
        pass

    @abstractmethod
    def find_redemption(self, coupon: Coupon, order: Order, sale: Sale) -> Optional[CouponRedemption]:
        pass

    @abstractmethod
    def reconcile_or_create(self, coupon: Coupon, order: Order, sale: Sale) -> Tuple[CouponRedemption, bool]:
        """
        Link an existing redemption to the sale, or create one.

        Returns:
            (redemption, created) - usage is counted only when created is True
        """
        pass


class DjangoOrderStore(OrderStoreInterface):

    def get(self, order_id, organization_id) -> Order:
        return Order.objects.prefetch_related('items').get(id=order_id, organization_id=organization_id)

    def update_fields(self, order_id, organization_id, **fields) -> Order:
        updated = Order.objects.filter(
            id=order_id, organization_id=organization_id
        ).update(updated_at=timezone.now(), **fields)
        if not updated:
            raise Order.DoesNotExist(f"Order {order_id} not found in organization {organization_id}")
        return self.get(order_id, organization_id)

    def finalize(self, order: Order, *, sale: Sale, confirmed_at, confirmed_by,
                 estimated_ready_at, estimated_delivery_at=None) -> Order:
        fields = {
            'sale': sale,
            'status': OrderStatus.CONFIRMED,
            'confirmed_at': confirmed_at,
            'confirmed_by': confirmed_by,
            'estimated_ready_at': estimated_ready_at,
            'updated_at': timezone.now(),
        }
        if estimated_delivery_at is not None:
            fields['estimated_delivery_at'] = estimated_delivery_at

        # The sale link is written once; a linked order is never re-linked.
        updated = Order.objects.filter(
            id=order.id, organization_id=order.organization_id, sale__isnull=True
        ).update(**fields)
        if not updated:
            raise BusinessException(
                f"Order {order.order_number} is already linked to a sale",
                "SALE_ALREADY_LINKED",
                {'order_id': str(order.id)}
            )
        return self.get(order.id, order.organization_id)


class DjangoSaleLedger(SaleLedgerInterface):

    def create_sale(self, order: Order, created_by=None) -> Sale:
        paid = order.payment_status == PaymentStatus.PAID
        return Sale.objects.create(
            organization_id=order.organization_id,
            branch_id=order.branch_id,
            customer_id=order.customer_id,
            user=created_by,
            subtotal=order.subtotal,
            tax_total=order.tax_total,
            discount_total=order.discount_total,
            delivery_fee=order.delivery_fee,
            tip_amount=order.tip_amount,
            total=order.total,
            balance=0 if paid else order.total,
            status=SaleStatus.PAID if paid else SaleStatus.PENDING,
            notes=f"Online order: {order.order_number}",
        )

    def create_sale_items(self, sale: Sale, order: Order) -> List[SaleItemRef]:
        refs = []
        with transaction.atomic():
            for item in order.items.all():
                annotation = {
                    'product_name': item.product_name,
                    'from_order': order.order_number,
                    'modifiers': item.modifiers or [],
                }
                if item.notes:
                    annotation['item_notes'] = item.notes
                sale_item = SaleItem.objects.create(
                    sale=sale,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tax_amount=item.tax_amount,
                    discount_amount=item.discount_amount,
                    notes=annotation,
                )
                refs.append(SaleItemRef(sale_item.id, sale_item.product_id, item.notes))
        return refs

    def count_items(self, sale: Sale) -> int:
        return SaleItem.objects.filter(sale=sale).count()


class DjangoKitchenQueue(KitchenQueueInterface):

    def create_ticket(self, sale: Sale, order: Order, sale_items: List[SaleItemRef]) -> ProductionTicket:
        if not sale_items:
            raise BusinessException(
                f"No sale items to send to the kitchen for order {order.order_number}",
                "NO_SALE_ITEMS"
            )

        with transaction.atomic():
            ticket = ProductionTicket.objects.create(
                organization_id=order.organization_id,
                branch_id=order.branch_id,
                sale=sale,
                order=order,
            )
            for ref in sale_items:
                TicketItem.objects.create(
                    ticket=ticket,
                    sale_item_id=ref.id,
                    notes=ref.notes or '',
                )
        return ticket


class DjangoGratuityLedger(GratuityLedgerInterface):

    def find_for_order(self, order: Order) -> Optional[Tip]:
        tip = Tip.objects.filter(source_order_id=order.id).order_by('created_at').first()
        if tip is not None:
            return tip

        # Fallback for rows written by front-ends that only embed the order number in the notes.
        # The number must stand alone (WO-100 is not WO-1001) and the amount must agree.
        return Tip.objects.filter(
            organization_id=order.organization_id,
            branch_id=order.branch_id,
            tip_type=TipType.ONLINE,
            source_order_id__isnull=True,
            sale__isnull=True,
            amount=order.tip_amount,
            notes__regex=order_number_pattern(order.order_number),
        ).order_by('created_at').first()

    def reconcile_or_create(self, order: Order, sale: Sale, actor_id: str) -> Tip:
        tip = self.find_for_order(order)
        if tip is not None:
            tip.sale = sale
            tip.actor_id = actor_id
            tip.source_order_id = order.id
            tip.save(update_fields=['sale', 'actor_id', 'source_order_id', 'updated_at'])
            return tip

        return Tip.objects.create(
            organization_id=order.organization_id,
            branch_id=order.branch_id,
            tip_type=TipType.ONLINE,
            sale=sale,
            source_order_id=order.id,
            actor_id=actor_id,
            amount=order.tip_amount,
            notes=f"Online order tip {order.order_number}",
        )


class DjangoCouponLedger(CouponLedgerInterface):

    def find_active(self, code: str, organization_id) -> Optional[Coupon]:
        code = (code or '').strip()
        if not code:
            return None
        coupon = Coupon.objects.filter(organization_id=organization_id, code__iexact=code).first()
        if coupon is None or not coupon.is_redeemable:
            return None
        return coupon

    def find_redemption(self, coupon: Coupon, order: Order, sale: Sale) -> Optional[CouponRedemption]:
        # Placeholder carries the order id until reconciled, the sale id afterwards
        return CouponRedemption.objects.filter(
            coupon=coupon,
            sale_reference__in=[order.id, sale.id],
        ).order_by('redeemed_at').first()

    def reconcile_or_create(self, coupon: Coupon, order: Order, sale: Sale) -> Tuple[CouponRedemption, bool]:
        redemption = self.find_redemption(coupon, order, sale)
        if redemption is not None:
            if redemption.sale_reference != sale.id:
                redemption.sale_reference = sale.id
                redemption.save(update_fields=['sale_reference'])
            return redemption, False

        with transaction.atomic():
            redemption = CouponRedemption.objects.create(
                organization_id=order.organization_id,
                coupon=coupon,
                sale_reference=sale.id,
                customer_id=order.customer_id,
                discount_amount=order.discount_total,
            )
            Coupon.objects.filter(pk=coupon.pk).update(usage_count=F('usage_count') + 1)
        return redemption, True

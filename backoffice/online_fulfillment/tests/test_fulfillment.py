"""
Tests for online order confirmation.
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings

from ..adapters import (
    switch_collaborators, reset_collaborators, DjangoGratuityLedger, DjangoOrderStore, DjangoSaleLedger
)
from ..exceptions import BusinessException, FulfillmentStepError, ValidationException
from ..models import (
    Order, OrderStatus, Sale, SaleItem, SaleStatus, ProductionTicket, TicketItem, Tip, TipType,
    Coupon, CouponRedemption, Shipment, ShipmentStatus, AuditLog
)
from ..services import FulfillmentService, ShippingService
from .fixtures import ORG_ID, BRANCH_ID, create_user, create_order, create_delivery_order, create_coupon

UPSTREAM_ACTOR = '00000000-0000-0000-0000-000000000000'


class FailingGratuityLedger(DjangoGratuityLedger):

    def reconcile_or_create(self, order, sale, actor_id):
        raise RuntimeError("gratuity ledger unavailable")


class ConfirmPickupOrderTest(TestCase):
    """A pickup order with no tip and no coupon."""

    def setUp(self):
        self.user = create_user()
        self.order = create_order('WO-1001')

    def test_confirm_creates_sale_items_and_ticket(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 15, self.user)

        sale = Sale.objects.get(id=result.sale_id)
        self.assertEqual(sale.total, self.order.total)
        self.assertEqual(sale.status, SaleStatus.PAID)
        self.assertEqual(sale.items.count(), 2)

        ticket = ProductionTicket.objects.get(id=result.ticket_id)
        self.assertEqual(ticket.sale_id, sale.id)
        self.assertEqual(
            set(TicketItem.objects.filter(ticket=ticket).values_list('sale_item_id', flat=True)),
            set(sale.items.values_list('id', flat=True))
        )

        self.assertIsNone(result.tip_id)
        self.assertIsNone(result.shipment_id)
        self.assertIsNone(result.redemption_id)
        self.assertFalse(Shipment.objects.exists())
        self.assertFalse(Tip.objects.exists())

    def test_confirm_sets_status_link_and_estimates(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 15, self.user)

        order = Order.objects.get(id=self.order.id)
        self.assertEqual(order.status, OrderStatus.CONFIRMED)
        self.assertEqual(order.sale_id, result.sale_id)
        self.assertEqual(order.confirmed_by, self.user)
        self.assertIsNotNone(order.confirmed_at)
        self.assertEqual(order.estimated_ready_at - order.confirmed_at, timedelta(minutes=15))
        self.assertIsNone(order.estimated_delivery_at)

    def test_sale_items_carry_order_annotation(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 10, self.user)

        notes = [item.notes for item in SaleItem.objects.filter(sale_id=result.sale_id)]
        self.assertEqual({note['product_name'] for note in notes}, {'Burger', 'Fries'})
        self.assertTrue(all(note['from_order'] == 'WO-1001' for note in notes))

    def test_unpaid_order_leaves_sale_balance_open(self):
        order = create_order('WO-1003', payment_status='pending')

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        sale = Sale.objects.get(id=result.sale_id)
        self.assertEqual(sale.status, SaleStatus.PENDING)
        self.assertEqual(sale.balance, order.total)

    def test_confirm_twice_is_rejected(self):
        FulfillmentService.confirm_order(self.order.id, ORG_ID, 15, self.user)

        with self.assertRaises(BusinessException) as ctx:
            FulfillmentService.confirm_order(self.order.id, ORG_ID, 15, self.user)

        self.assertEqual(ctx.exception.code, 'ORDER_NOT_CONFIRMABLE')
        self.assertEqual(Sale.objects.count(), 1)
        self.assertEqual(ProductionTicket.objects.count(), 1)

    def test_cancelled_order_cannot_be_confirmed(self):
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.CANCELLED)

        with self.assertRaises(BusinessException):
            FulfillmentService.confirm_order(self.order.id, ORG_ID, 15, self.user)
        self.assertFalse(Sale.objects.exists())

    def test_order_of_other_organization_is_not_found(self):
        with self.assertRaises(Order.DoesNotExist):
            FulfillmentService.confirm_order(self.order.id, ORG_ID + 1, 15, self.user)

    def test_negative_estimate_is_rejected(self):
        with self.assertRaises(ValidationException):
            FulfillmentService.confirm_order(self.order.id, ORG_ID, -5, self.user)
        self.assertFalse(Sale.objects.exists())


class ConfirmDeliveryOrderTest(TestCase):
    """A self-delivered order with a tip and a coupon pre-created by the ordering front-end."""

    def setUp(self):
        self.user = create_user()
        self.coupon = create_coupon('SAVE10', usage_count=3)
        self.order = create_delivery_order(
            'WO-1002',
            tip_amount=Decimal('5000.00'),
            coupon_code='SAVE10',
            discount_total=Decimal('3600.00'),
        )
        self.upstream_tip = Tip.objects.create(
            organization_id=ORG_ID,
            branch_id=BRANCH_ID,
            tip_type=TipType.ONLINE,
            actor_id=UPSTREAM_ACTOR,
            amount=Decimal('5000.00'),
            notes='Tip for online order WO-1002',
        )
        self.placeholder = CouponRedemption.objects.create(
            organization_id=ORG_ID,
            coupon=self.coupon,
            sale_reference=self.order.id,
            discount_amount=Decimal('3600.00'),
        )

    def test_reconciles_upstream_tip(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        self.assertEqual(Tip.objects.count(), 1)
        tip = Tip.objects.get()
        self.assertEqual(result.tip_id, self.upstream_tip.id)
        self.assertEqual(tip.sale_id, result.sale_id)
        self.assertEqual(tip.actor_id, str(self.user.pk))
        self.assertEqual(tip.source_order_id, self.order.id)

    def test_reconciles_coupon_placeholder_without_counting_usage(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        self.assertEqual(CouponRedemption.objects.count(), 1)
        redemption = CouponRedemption.objects.get()
        self.assertEqual(result.redemption_id, self.placeholder.id)
        self.assertEqual(redemption.sale_reference, result.sale_id)
        self.coupon.refresh_from_db()
        self.assertEqual(self.coupon.usage_count, 3)

    def test_creates_shipment_from_normalized_address(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        shipment = Shipment.objects.get(id=result.shipment_id)
        self.assertEqual(shipment.status, ShipmentStatus.PENDING)
        self.assertEqual(shipment.source_id, str(self.order.id))
        self.assertTrue(shipment.tracking_number.startswith('TRK'))
        self.assertEqual(shipment.shipment_number, 'DEL-WO-1002')
        self.assertEqual(shipment.delivery_address, 'Calle 10 # 5-20')
        self.assertEqual(shipment.delivery_department, 'Chapinero')
        self.assertEqual(shipment.delivery_latitude, Decimal('4.648600'))
        self.assertEqual(shipment.delivery_longitude, Decimal('-74.062800'))
        self.assertEqual(shipment.metadata['order_number'], 'WO-1002')
        self.assertEqual(shipment.metadata['items_count'], 2)

    def test_delivery_estimate_includes_buffer(self):
        FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        order = Order.objects.get(id=self.order.id)
        self.assertEqual(order.estimated_ready_at - order.confirmed_at, timedelta(minutes=20))
        self.assertEqual(order.estimated_delivery_at - order.estimated_ready_at, timedelta(minutes=20))

    def test_shipment_carries_delivery_estimate(self):
        result = FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        order = Order.objects.get(id=self.order.id)
        shipment = Shipment.objects.get(id=result.shipment_id)
        self.assertIsNotNone(shipment.expected_delivery_date)
        self.assertEqual(shipment.expected_delivery_date, order.estimated_delivery_at)

    @override_settings(ONLINE_FULFILLMENT={'DELIVERY_BUFFER_MINUTES': 45})
    def test_delivery_buffer_is_configurable(self):
        FulfillmentService.confirm_order(self.order.id, ORG_ID, 20, self.user)

        order = Order.objects.get(id=self.order.id)
        self.assertEqual(order.estimated_delivery_at - order.estimated_ready_at, timedelta(minutes=45))


class ConfirmWithoutUpstreamRecordsTest(TestCase):

    def setUp(self):
        self.user = create_user()
        self.coupon = create_coupon('SAVE10', usage_count=3)

    def test_creates_tip_and_counts_coupon_usage(self):
        order = create_order('WO-2001', tip_amount=Decimal('2000.00'), coupon_code='save10')

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        tip = Tip.objects.get(id=result.tip_id)
        self.assertEqual(tip.amount, Decimal('2000.00'))
        self.assertEqual(tip.sale_id, result.sale_id)
        self.assertEqual(tip.source_order_id, order.id)
        self.assertIn('WO-2001', tip.notes)

        redemption = CouponRedemption.objects.get(id=result.redemption_id)
        self.assertEqual(redemption.sale_reference, result.sale_id)
        self.coupon.refresh_from_db()
        self.assertEqual(self.coupon.usage_count, 4)

    def test_tip_of_another_branch_is_not_reconciled(self):
        Tip.objects.create(
            organization_id=ORG_ID,
            branch_id=BRANCH_ID + 1,
            tip_type=TipType.ONLINE,
            actor_id=UPSTREAM_ACTOR,
            amount=Decimal('2000.00'),
            notes='Tip for online order WO-2002',
        )
        order = create_order('WO-2002', tip_amount=Decimal('2000.00'))

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertEqual(Tip.objects.count(), 2)
        self.assertEqual(Tip.objects.get(id=result.tip_id).branch_id, BRANCH_ID)

    def test_tip_of_longer_order_number_is_not_reconciled(self):
        longer = Tip.objects.create(
            organization_id=ORG_ID,
            branch_id=BRANCH_ID,
            tip_type=TipType.ONLINE,
            actor_id=UPSTREAM_ACTOR,
            amount=Decimal('9000.00'),
            notes='Tip for online order WO-1001',
        )
        short = create_order('WO-100', tip_amount=Decimal('100.00'))
        other = create_order('WO-1001', tip_amount=Decimal('9000.00'))

        short_result = FulfillmentService.confirm_order(short.id, ORG_ID, 10, self.user)
        other_result = FulfillmentService.confirm_order(other.id, ORG_ID, 10, self.user)

        self.assertNotEqual(short_result.tip_id, longer.id)
        self.assertEqual(Tip.objects.get(id=short_result.tip_id).amount, Decimal('100.00'))
        self.assertEqual(other_result.tip_id, longer.id)
        self.assertEqual(Tip.objects.get(id=longer.id).source_order_id, other.id)
        self.assertEqual(Tip.objects.count(), 2)

    def test_tip_with_different_amount_is_not_reconciled(self):
        Tip.objects.create(
            organization_id=ORG_ID,
            branch_id=BRANCH_ID,
            tip_type=TipType.ONLINE,
            actor_id=UPSTREAM_ACTOR,
            amount=Decimal('700.00'),
            notes='Tip for online order WO-2004.',
        )
        order = create_order('WO-2004', tip_amount=Decimal('1500.00'))

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertEqual(Tip.objects.count(), 2)
        self.assertEqual(Tip.objects.get(id=result.tip_id).amount, Decimal('1500.00'))

    def test_inactive_coupon_is_skipped_silently(self):
        Coupon.objects.filter(id=self.coupon.id).update(is_active=False)
        order = create_order('WO-2003', coupon_code='SAVE10')

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertIsNone(result.redemption_id)
        self.assertFalse(CouponRedemption.objects.exists())
        self.assertFalse(AuditLog.objects.filter(action='confirmation_step_failed').exists())
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.CONFIRMED)

    def test_unknown_coupon_is_skipped_silently(self):
        order = create_order('WO-2004', coupon_code='NOPE')

        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertIsNone(result.redemption_id)
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.CONFIRMED)


class ConfirmationFailureTest(TestCase):
    """Step failures: optional steps are skipped, mandatory steps stop the confirmation."""

    def setUp(self):
        self.user = create_user()

    def tearDown(self):
        reset_collaborators()

    def test_gratuity_failure_does_not_abort_confirmation(self):
        switch_collaborators(gratuities=FailingGratuityLedger())
        order = create_order('WO-3001', tip_amount=Decimal('1000.00'))

        with self.assertLogs('online_fulfillment.services.fulfillment_service', level='ERROR') as logs:
            result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertIsNone(result.tip_id)
        self.assertTrue(any("'gratuity'" in line for line in logs.output))
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.CONFIRMED)

        failure = AuditLog.objects.get(action='confirmation_step_failed')
        self.assertEqual(failure.entity_id, str(order.id))
        self.assertEqual(failure.metadata['step'], 'gratuity')

    def test_shipment_failure_does_not_abort_confirmation(self):
        order = create_delivery_order('WO-3002')

        with mock.patch.object(ShippingService, 'create_from_order', side_effect=RuntimeError('boom')):
            with self.assertLogs('online_fulfillment.services.fulfillment_service', level='ERROR'):
                result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertIsNone(result.shipment_id)
        self.assertFalse(Shipment.objects.exists())
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.CONFIRMED)
        self.assertEqual(
            AuditLog.objects.get(action='confirmation_step_failed').metadata['step'], 'shipment'
        )

    def test_order_without_items_fails_at_ticket_and_keeps_sale(self):
        order = create_order('WO-3003', items=[])

        with self.assertRaises(FulfillmentStepError) as ctx:
            FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        error = ctx.exception
        self.assertEqual(error.step, 'production_ticket')
        self.assertTrue(error.needs_reconciliation)
        self.assertTrue(Sale.objects.filter(id=error.committed['sale_id']).exists())
        self.assertFalse(ProductionTicket.objects.exists())

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertIsNone(order.sale_id)

    def test_sale_failure_writes_nothing(self):
        order = create_order('WO-3004')

        with mock.patch.object(DjangoSaleLedger, 'create_sale', side_effect=RuntimeError('ledger down')):
            with self.assertRaises(FulfillmentStepError) as ctx:
                FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        self.assertEqual(ctx.exception.step, 'sale')
        self.assertFalse(ctx.exception.needs_reconciliation)
        self.assertFalse(Sale.objects.exists())

    def test_finalize_failure_reports_committed_records(self):
        order = create_delivery_order('WO-3005', tip_amount=Decimal('1500.00'))

        with mock.patch.object(DjangoOrderStore, 'finalize', side_effect=RuntimeError('store down')):
            with self.assertRaises(FulfillmentStepError) as ctx:
                FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        error = ctx.exception
        self.assertEqual(error.step, 'finalize')
        for key in ('sale_id', 'ticket_id', 'tip_id', 'shipment_id'):
            self.assertIn(key, error.committed)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertIsNone(order.sale_id)

        report = FulfillmentService.reconciliation_report(order.id, ORG_ID)
        self.assertEqual(report['sale_id'], str(error.committed['sale_id']))
        self.assertFalse(report['sale_linked'])
        self.assertTrue(any('not linked' in issue for issue in report['issues']))


class ReconciliationReportTest(TestCase):

    def setUp(self):
        self.user = create_user()

    def test_clean_confirmation_has_no_issues(self):
        order = create_delivery_order('WO-4001', tip_amount=Decimal('1000.00'))
        result = FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        report = FulfillmentService.reconciliation_report(order.id, ORG_ID)

        self.assertEqual(report['issues'], [])
        self.assertEqual(report['sale_id'], str(result.sale_id))
        self.assertEqual(report['shipment_id'], str(result.shipment_id))
        self.assertEqual(report['order_items'], report['sale_items'])
        self.assertEqual(report['step_failures'], [])

    def test_pending_order_has_no_issues(self):
        order = create_order('WO-4002')

        report = FulfillmentService.reconciliation_report(order.id, ORG_ID)

        self.assertIsNone(report['sale_id'])
        self.assertEqual(report['issues'], [])

    def test_recorded_step_failures_are_listed(self):
        switch_collaborators(gratuities=FailingGratuityLedger())
        self.addCleanup(reset_collaborators)
        order = create_order('WO-4003', tip_amount=Decimal('1000.00'))
        with self.assertLogs('online_fulfillment.services.fulfillment_service', level='ERROR'):
            FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.user)

        report = FulfillmentService.reconciliation_report(order.id, ORG_ID)

        self.assertEqual([failure['step'] for failure in report['step_failures']], ['gratuity'])
        self.assertTrue(any('No tip record' in issue for issue in report['issues']))

"""
Tests for the order status machine.
"""

from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings

from ..exceptions import InvalidTransitionException, ValidationException
from ..models import Order, OrderStatus, PaymentStatus, DeliveryType, Shipment, ShipmentStatus, AuditLog
from ..services import OrderService, OrderWorkflow, ShipmentWorkflow
from .fixtures import ORG_ID, create_user, create_order


class OrderStatusUpdateTest(TestCase):

    def setUp(self):
        self.user = create_user()
        self.order = create_order('WO-9001', customer_notes='No onions')

    def test_ready_stamps_ready_at(self):
        order = OrderService.mark_ready(self.order.id, ORG_ID, self.user)

        self.assertEqual(order.status, OrderStatus.READY)
        self.assertIsNotNone(order.ready_at)

    def test_delivered_stamps_delivered_at(self):
        order = OrderService.mark_delivered(self.order.id, ORG_ID, self.user)

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertIsNotNone(order.delivered_at)

    def test_cancel_records_reason_and_actor(self):
        order = OrderService.cancel_order(self.order.id, ORG_ID, 'Out of stock', self.user)

        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        self.assertEqual(order.cancelled_by, self.user)
        self.assertEqual(order.cancellation_reason, 'Out of stock')

    def test_reject(self):
        order = OrderService.reject_order(self.order.id, ORG_ID, 'Store closed', self.user)

        self.assertEqual(order.status, OrderStatus.REJECTED)
        self.assertEqual(order.cancellation_reason, 'Store closed')

    def test_update_leaves_other_fields_unchanged(self):
        OrderService.start_preparing(self.order.id, ORG_ID, self.user)

        order = Order.objects.get(id=self.order.id)
        self.assertEqual(order.status, OrderStatus.PREPARING)
        self.assertEqual(order.customer_notes, 'No onions')
        self.assertEqual(order.total, self.order.total)
        self.assertIsNone(order.confirmed_at)
        self.assertIsNone(order.sale_id)

    def test_start_delivery_estimates_arrival(self):
        order = OrderService.start_delivery(self.order.id, ORG_ID, estimated_minutes=25, updated_by=self.user)

        self.assertEqual(order.status, OrderStatus.IN_DELIVERY)
        self.assertIsNotNone(order.estimated_delivery_at)

    def test_status_change_is_audited(self):
        OrderService.mark_ready(self.order.id, ORG_ID, self.user)

        entry = AuditLog.objects.get(entity_id=str(self.order.id), action='status_changed')
        self.assertEqual(entry.old_values, {'status': OrderStatus.PENDING})
        self.assertEqual(entry.new_values, {'status': OrderStatus.READY})
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.organization_id, ORG_ID)

    def test_any_target_is_accepted_by_default(self):
        OrderService.mark_delivered(self.order.id, ORG_ID)

        order = OrderService.start_preparing(self.order.id, ORG_ID)

        self.assertEqual(order.status, OrderStatus.PREPARING)

    @override_settings(ONLINE_FULFILLMENT={'STRICT_ORDER_TRANSITIONS': True})
    def test_strict_mode_rejects_invalid_transition(self):
        with self.assertRaises(InvalidTransitionException):
            OrderService.mark_ready(self.order.id, ORG_ID)

        self.assertEqual(Order.objects.get(id=self.order.id).status, OrderStatus.PENDING)

    @override_settings(ONLINE_FULFILLMENT={'STRICT_ORDER_TRANSITIONS': True})
    def test_strict_mode_allows_listed_transition(self):
        order = OrderService.cancel_order(self.order.id, ORG_ID, 'Customer request')

        self.assertEqual(order.status, OrderStatus.CANCELLED)

    def test_unknown_status_is_rejected(self):
        with self.assertRaises(ValidationException):
            OrderService.update_order_status(self.order.id, ORG_ID, 'lost')

    def test_other_organization_is_not_found(self):
        with self.assertRaises(Order.DoesNotExist):
            OrderService.mark_ready(self.order.id, ORG_ID + 1)

    def test_payment_status(self):
        order = OrderService.update_payment_status(
            self.order.id, ORG_ID, PaymentStatus.REFUNDED, 'RF-1', self.user
        )

        self.assertEqual(order.payment_status, PaymentStatus.REFUNDED)
        self.assertEqual(order.payment_reference, 'RF-1')
        self.assertTrue(AuditLog.objects.filter(action='payment_updated').exists())

    def test_unknown_payment_status_is_rejected(self):
        with self.assertRaises(ValidationException):
            OrderService.update_payment_status(self.order.id, ORG_ID, 'stolen')


class OrderStatsTest(TestCase):

    def test_stats(self):
        delivered = create_order('WO-9101', delivery_type=DeliveryType.DELIVERY_OWN)
        create_order('WO-9102')
        cancelled = create_order('WO-9103')
        create_order('WO-9104', organization_id=ORG_ID + 1)
        OrderService.mark_delivered(delivered.id, ORG_ID)
        OrderService.cancel_order(cancelled.id, ORG_ID, 'Duplicate')

        stats = OrderService.get_order_stats(ORG_ID)

        self.assertEqual(stats['total_orders'], 3)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['completed_orders'], 1)
        self.assertEqual(stats['cancelled_orders'], 1)
        self.assertEqual(stats['total_revenue'], delivered.total)
        self.assertEqual(stats['avg_order_value'], delivered.total.quantize(Decimal('0.01')))

        by_type = {row['type']: row for row in stats['by_delivery_type']}
        self.assertEqual(by_type[DeliveryType.PICKUP]['count'], 2)
        self.assertEqual(by_type[DeliveryType.DELIVERY_OWN]['revenue'], delivered.total)
        self.assertEqual(stats['by_source'], [{'source': 'website', 'count': 3}])

    def test_empty_stats(self):
        stats = OrderService.get_order_stats(ORG_ID)

        self.assertEqual(stats['total_orders'], 0)
        self.assertEqual(stats['avg_order_value'], Decimal('0.00'))


class WorkflowTableTest(SimpleTestCase):

    def test_order_transitions(self):
        order = Order(status=OrderStatus.PENDING)

        self.assertTrue(OrderWorkflow.can_transition_to(order, OrderStatus.CONFIRMED))
        self.assertTrue(OrderWorkflow.can_transition_to(order, OrderStatus.REJECTED))
        self.assertFalse(OrderWorkflow.can_transition_to(order, OrderStatus.DELIVERED))

        order.status = OrderStatus.READY
        self.assertTrue(OrderWorkflow.can_transition_to(order, OrderStatus.DELIVERED))
        self.assertFalse(OrderWorkflow.can_transition_to(order, OrderStatus.REJECTED))

        for terminal in (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED):
            order.status = terminal
            self.assertFalse(OrderWorkflow.can_transition_to(order, OrderStatus.PENDING))

    def test_shipment_moves_forward_only(self):
        shipment = Shipment(status=ShipmentStatus.OUT_FOR_DELIVERY)

        with self.assertRaises(InvalidTransitionException):
            ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.ASSIGNED)
        with self.assertRaises(InvalidTransitionException):
            ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.PENDING)
        ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.DELIVERED)

    def test_shipment_reassignment_allowed(self):
        shipment = Shipment(status=ShipmentStatus.ASSIGNED)

        ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.ASSIGNED)

    def test_shipment_side_branches(self):
        for status in (ShipmentStatus.PENDING, ShipmentStatus.ASSIGNED, ShipmentStatus.OUT_FOR_DELIVERY):
            shipment = Shipment(status=status)
            ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.CANCELLED)
            ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.RETURNED)

        for terminal in (ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED, ShipmentStatus.CANCELLED):
            shipment = Shipment(status=terminal)
            with self.assertRaises(InvalidTransitionException):
                ShipmentWorkflow.validate_transition(shipment, ShipmentStatus.CANCELLED)

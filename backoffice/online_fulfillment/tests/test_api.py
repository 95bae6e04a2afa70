"""
Tests for the online fulfillment REST API.
"""

from decimal import Decimal

from django.contrib.auth.models import Group
from rest_framework import status
from rest_framework.test import APITestCase

from ..models import Order, OrderStatus, ShipmentStatus, Vehicle, VehicleStatus
from ..services import FulfillmentService
from .fixtures import ORG_ID, create_user, create_order, create_delivery_order, create_driver, create_vehicle

API = '/api/fulfillment'


class FulfillmentAPITestCase(APITestCase):

    def setUp(self):
        self.staff = create_user('staff', is_staff=True)
        self.client.force_authenticate(self.staff)
        self.client.credentials(HTTP_X_ORGANIZATION_ID=str(ORG_ID))


class OrderAPITest(FulfillmentAPITestCase):

    def test_confirm(self):
        order = create_order('WO-1001')

        response = self.client.post(f'{API}/orders/{order.id}/confirm/', {'estimated_minutes': 15}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertIsNotNone(response.data['data']['sale_id'])
        self.assertIsNone(response.data['data']['shipment_id'])
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.CONFIRMED)

    def test_confirm_twice_returns_error_envelope(self):
        order = create_order('WO-1001')
        self.client.post(f'{API}/orders/{order.id}/confirm/', {'estimated_minutes': 15}, format='json')

        response = self.client.post(f'{API}/orders/{order.id}/confirm/', {'estimated_minutes': 15}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'ORDER_NOT_CONFIRMABLE')

    def test_confirm_requires_estimate(self):
        order = create_order('WO-1001')

        response = self.client.post(f'{API}/orders/{order.id}/confirm/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.get(id=order.id).status, OrderStatus.PENDING)

    def test_mandatory_step_failure_is_reported(self):
        order = create_order('WO-1005', items=[])

        response = self.client.post(f'{API}/orders/{order.id}/confirm/', {'estimated_minutes': 5}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'FULFILLMENT_STEP_FAILED')
        self.assertEqual(response.data['error']['details']['step'], 'production_ticket')
        self.assertIn('sale_id', response.data['error']['details']['committed'])

    def test_orders_of_other_organizations_are_hidden(self):
        order = create_order('WO-1001', organization_id=ORG_ID + 1)

        detail = self.client.get(f'{API}/orders/{order.id}/')
        listing = self.client.get(f'{API}/orders/')

        self.assertEqual(detail.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(listing.data['count'], 0)

    def test_organization_header_is_required(self):
        self.client.credentials()

        response = self.client.get(f'{API}/orders/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_actions(self):
        order = create_order('WO-1001')

        self.client.post(f'{API}/orders/{order.id}/start_preparing/')
        response = self.client.post(f'{API}/orders/{order.id}/mark_ready/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], OrderStatus.READY)
        self.assertIsNotNone(response.data['data']['ready_at'])

    def test_cancel(self):
        order = create_order('WO-1001')

        response = self.client.post(f'{API}/orders/{order.id}/cancel/', {'reason': 'Closed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], OrderStatus.CANCELLED)
        self.assertEqual(response.data['data']['cancellation_reason'], 'Closed')

    def test_reconciliation(self):
        order = create_delivery_order('WO-1002', tip_amount=Decimal('5000.00'))
        FulfillmentService.confirm_order(order.id, ORG_ID, 10, self.staff)

        response = self.client.get(f'{API}/orders/{order.id}/reconciliation/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['issues'], [])

    def test_stats(self):
        create_order('WO-1001')

        response = self.client.get(f'{API}/orders/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total_orders'], 1)


class PermissionTest(APITestCase):

    def setUp(self):
        self.order = create_order('WO-1001')

    def _confirm(self):
        return self.client.post(f'{API}/orders/{self.order.id}/confirm/', {'estimated_minutes': 5},
                                format='json', HTTP_X_ORGANIZATION_ID=str(ORG_ID))

    def test_anonymous_is_rejected(self):
        self.assertIn(self._confirm().status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_regular_user_is_forbidden(self):
        self.client.force_authenticate(create_user('customer'))

        self.assertEqual(self._confirm().status_code, status.HTTP_403_FORBIDDEN)

    def test_dispatch_group_member_is_allowed(self):
        user = create_user('dispatcher')
        user.groups.add(Group.objects.create(name='dispatch_staff'))
        self.client.force_authenticate(user)

        self.assertEqual(self._confirm().status_code, status.HTTP_200_OK)

    def test_only_managers_cancel(self):
        user = create_user('dispatcher')
        user.groups.add(Group.objects.create(name='dispatch_staff'))
        self.client.force_authenticate(user)

        response = self.client.post(f'{API}/orders/{self.order.id}/cancel/', {'reason': 'x'},
                                    format='json', HTTP_X_ORGANIZATION_ID=str(ORG_ID))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ShipmentAPITest(FulfillmentAPITestCase):

    def setUp(self):
        super().setUp()
        self.order = create_delivery_order('WO-1002')
        self.driver = create_driver('D1')
        self.vehicle = create_vehicle('V1')

    def _create_shipment(self):
        response = self.client.post(f'{API}/shipments/from_order/', {'order_id': str(self.order.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data['data']['id']

    def test_delivery_flow(self):
        shipment_id = self._create_shipment()

        assign = self.client.post(f'{API}/shipments/{shipment_id}/assign/', {
            'vehicle_id': str(self.vehicle.id), 'driver_id': str(self.driver.id),
        }, format='json')
        pick_up = self.client.post(f'{API}/shipments/{shipment_id}/pick_up/', {
            'driver_id': str(self.driver.id), 'latitude': '4.65', 'longitude': '-74.06',
        }, format='json')
        deliver = self.client.post(f'{API}/shipments/{shipment_id}/deliver/', {
            'driver_id': str(self.driver.id), 'recipient_name': 'Jane Doe', 'customer_rating': 5,
        }, format='json')

        self.assertEqual(assign.data['data']['status'], ShipmentStatus.ASSIGNED)
        self.assertEqual(pick_up.data['data']['status'], ShipmentStatus.OUT_FOR_DELIVERY)
        self.assertEqual(deliver.status_code, status.HTTP_200_OK)
        self.assertEqual(deliver.data['data']['shipment']['status'], ShipmentStatus.DELIVERED)
        self.assertEqual(deliver.data['data']['proof_of_delivery']['recipient_name'], 'Jane Doe')

        events = self.client.get(f'{API}/shipments/{shipment_id}/events/')
        self.assertEqual(
            [event['event_type'] for event in events.data['data']],
            ['created', 'assigned', 'picked_up', 'delivered']
        )

        proof = self.client.get(f'{API}/shipments/{shipment_id}/proof/')
        self.assertEqual(proof.data['data']['recipient_name'], 'Jane Doe')

    def test_invalid_transition_returns_error_envelope(self):
        shipment_id = self._create_shipment()

        response = self.client.post(f'{API}/shipments/{shipment_id}/pick_up/', {
            'driver_id': str(self.driver.id),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'INVALID_TRANSITION')

    def test_assign_vehicle_of_other_organization(self):
        shipment_id = self._create_shipment()
        foreign_vehicle = create_vehicle('V9', organization_id=ORG_ID + 1)

        response = self.client.post(f'{API}/shipments/{shipment_id}/assign/', {
            'vehicle_id': str(foreign_vehicle.id), 'driver_id': str(self.driver.id),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')
        self.assertEqual(Vehicle.objects.get(id=foreign_vehicle.id).status, VehicleStatus.AVAILABLE)

    def test_failed_attempt(self):
        shipment_id = self._create_shipment()

        response = self.client.post(f'{API}/shipments/{shipment_id}/failed_attempt/', {
            'driver_id': str(self.driver.id), 'reason_code': 'NO_ANSWER', 'reason_text': 'Nobody home',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['attempt_number'], 1)

    def test_proof_missing(self):
        shipment_id = self._create_shipment()

        response = self.client.get(f'{API}/shipments/{shipment_id}/proof/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_order(self):
        other = create_delivery_order('WO-1003', organization_id=ORG_ID + 1)

        response = self.client.post(f'{API}/shipments/from_order/', {'order_id': str(other.id)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_driver_queue_and_available_fleet(self):
        shipment_id = self._create_shipment()
        self.client.post(f'{API}/shipments/{shipment_id}/assign/', {
            'vehicle_id': str(self.vehicle.id), 'driver_id': str(self.driver.id),
        }, format='json')

        queue = self.client.get(f'{API}/shipments/driver/{self.driver.id}/')
        vehicles = self.client.get(f'{API}/vehicles/available/')
        drivers = self.client.get(f'{API}/drivers/available/')

        self.assertEqual([row['id'] for row in queue.data['data']], [shipment_id])
        self.assertEqual(vehicles.data['data'], [])
        self.assertEqual([row['full_name'] for row in drivers.data['data']], ['D1'])

"""
Shipment views for Online Order Fulfillment.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action

from ..adapters import get_collaborators
from ..models import Shipment
from ..services import ShippingService
from ..serializers.order_serializers import StatsFilterSerializer
from ..serializers.shipment_serializers import (
    ShipmentListSerializer, ShipmentDetailSerializer, TransportEventSerializer,
    ProofOfDeliverySerializer, DeliveryAttemptSerializer, ShipmentFromOrderSerializer,
    ShipmentAssignSerializer, ShipmentPickUpSerializer, ShipmentDeliverSerializer,
    ShipmentFailedAttemptSerializer, ShipmentCancelSerializer, ShipmentReturnSerializer
)
from ..permissions import IsDispatchStaff
from .base import OrganizationScopedMixin, handle_service_errors, success_response, error_response

LOCATION_FIELDS = ('latitude', 'longitude', 'location_text')


def _location(data):
    return {field: data[field] for field in LOCATION_FIELDS if field in data}


class ShipmentViewSet(OrganizationScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for self-delivery shipments.

    Status changes go through the dedicated actions; there is no generic
    status update.
    """

    permission_classes = [IsDispatchStaff]

    def get_queryset(self):
        queryset = self.filter_by_organization(
            Shipment.objects.select_related('vehicle', 'driver').prefetch_related('attempts')
        )
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        serializers_by_action = {
            'list': ShipmentListSerializer,
            'from_order': ShipmentFromOrderSerializer,
            'assign': ShipmentAssignSerializer,
            'pick_up': ShipmentPickUpSerializer,
            'deliver': ShipmentDeliverSerializer,
            'failed_attempt': ShipmentFailedAttemptSerializer,
            'cancel': ShipmentCancelSerializer,
            'return_shipment': ShipmentReturnSerializer,
            'stats': StatsFilterSerializer,
        }
        return serializers_by_action.get(self.action, ShipmentDetailSerializer)

    def _validated(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def _shipment_response(self, shipment, status_code=status.HTTP_200_OK):
        return success_response(ShipmentDetailSerializer(shipment).data, status_code)

    @action(detail=False, methods=['post'])
    @handle_service_errors
    def from_order(self, request):
        """Create (or return) the shipment of a self-delivered order."""
        data = self._validated(request)
        order = get_collaborators().orders.get(data['order_id'], self.get_organization_id())
        shipment = ShippingService.create_from_order(order, created_by=request.user)
        return self._shipment_response(shipment, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def assign(self, request, pk=None):
        """Assign a vehicle and driver."""
        shipment = self.get_object()
        data = self._validated(request)
        updated = ShippingService.assign_vehicle_and_driver(
            shipment.id, data['vehicle_id'], data['driver_id'], data.get('estimated_delivery_time')
        )
        return self._shipment_response(updated)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def pick_up(self, request, pk=None):
        shipment = self.get_object()
        data = self._validated(request)
        updated = ShippingService.mark_picked_up(shipment.id, data['driver_id'], _location(data))
        return self._shipment_response(updated)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def deliver(self, request, pk=None):
        """Record delivery with its proof."""
        shipment = self.get_object()
        proof = dict(self._validated(request))
        driver_id = proof.pop('driver_id')
        updated, proof_of_delivery = ShippingService.mark_delivered(shipment.id, driver_id, proof)
        return success_response({
            'shipment': ShipmentDetailSerializer(updated).data,
            'proof_of_delivery': ProofOfDeliverySerializer(proof_of_delivery).data,
        })

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def failed_attempt(self, request, pk=None):
        shipment = self.get_object()
        failure = dict(self._validated(request))
        driver_id = failure.pop('driver_id')
        attempt = ShippingService.register_failed_attempt(shipment.id, driver_id, failure)
        return success_response(DeliveryAttemptSerializer(attempt).data, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def cancel(self, request, pk=None):
        shipment = self.get_object()
        data = self._validated(request)
        updated = ShippingService.cancel_shipment(shipment.id, data['reason'], actor_id=request.user.pk)
        return self._shipment_response(updated)

    @action(detail=True, methods=['post'], url_path='return')
    @handle_service_errors
    def return_shipment(self, request, pk=None):
        shipment = self.get_object()
        data = self._validated(request)
        updated = ShippingService.mark_returned(shipment.id, data['driver_id'], data['reason'])
        return self._shipment_response(updated)

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """Chronological event log of the shipment."""
        shipment = self.get_object()
        events = ShippingService.get_shipment_events(shipment.id)
        return success_response(TransportEventSerializer(events, many=True).data)

    @action(detail=True, methods=['get'])
    def proof(self, request, pk=None):
        shipment = self.get_object()
        proof_of_delivery = ShippingService.get_proof_of_delivery(shipment.id)
        if proof_of_delivery is None:
            return error_response('NOT_FOUND', 'Shipment has no proof of delivery',
                                  status_code=status.HTTP_404_NOT_FOUND)
        return success_response(ProofOfDeliverySerializer(proof_of_delivery).data)

    @action(detail=False, methods=['get'], url_path=r'driver/(?P<driver_id>[0-9a-f-]+)')
    def driver_queue(self, request, driver_id=None):
        """Shipments assigned to a driver and not yet delivered."""
        organization_id = self.get_organization_id()
        shipments = [
            shipment for shipment in ShippingService.get_pending_deliveries_for_driver(driver_id)
            if shipment.organization_id == organization_id
        ]
        return success_response(ShipmentListSerializer(shipments, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        serializer = self.get_serializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        stats = ShippingService.get_delivery_stats(
            self.get_organization_id(),
            serializer.validated_data.get('date_from'),
            serializer.validated_data.get('date_to'),
        )
        return success_response(stats)

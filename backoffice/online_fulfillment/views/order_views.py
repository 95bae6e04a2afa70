"""
Order views for Online Order Fulfillment.
"""

from rest_framework import viewsets
from rest_framework.decorators import action

from ..models import Order
from ..services import OrderService, FulfillmentService
from ..serializers.order_serializers import (
    OrderListSerializer, OrderDetailSerializer, OrderConfirmSerializer,
    OrderStartDeliverySerializer, OrderReasonSerializer, OrderPaymentSerializer,
    OrderStatusSerializer, StatsFilterSerializer
)
from ..permissions import IsDispatchStaff, CanManageOrders
from .base import OrganizationScopedMixin, handle_service_errors, success_response


class OrderViewSet(OrganizationScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for online orders.

    Orders are placed by the ordering front-end; this API confirms them and
    drives them through preparation and delivery.
    """

    permission_classes = [IsDispatchStaff]

    def get_queryset(self):
        queryset = self.filter_by_organization(Order.objects.prefetch_related('items'))

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        delivery_type = self.request.query_params.get('delivery_type')
        if delivery_type:
            queryset = queryset.filter(delivery_type=delivery_type)
        return queryset

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return OrderListSerializer
        elif self.action == 'confirm':
            return OrderConfirmSerializer
        elif self.action == 'start_delivery':
            return OrderStartDeliverySerializer
        elif self.action in ['cancel', 'reject']:
            return OrderReasonSerializer
        elif self.action == 'payment':
            return OrderPaymentSerializer
        elif self.action == 'set_status':
            return OrderStatusSerializer
        elif self.action == 'stats':
            return StatsFilterSerializer
        else:
            return OrderDetailSerializer

    def _order_response(self, order):
        return success_response(OrderDetailSerializer(order).data)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def confirm(self, request, pk=None):
        """Confirm a pending order into a sale, kitchen ticket and shipment."""
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = FulfillmentService.confirm_order(
            order.id, order.organization_id,
            serializer.validated_data['estimated_minutes'], request.user
        )
        return success_response(result.to_dict())

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def start_preparing(self, request, pk=None):
        order = self.get_object()
        return self._order_response(OrderService.start_preparing(order.id, order.organization_id, request.user))

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def mark_ready(self, request, pk=None):
        order = self.get_object()
        return self._order_response(OrderService.mark_ready(order.id, order.organization_id, request.user))

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def start_delivery(self, request, pk=None):
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated_order = OrderService.start_delivery(
            order.id, order.organization_id,
            serializer.validated_data.get('estimated_minutes'), request.user
        )
        return self._order_response(updated_order)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def mark_delivered(self, request, pk=None):
        order = self.get_object()
        return self._order_response(OrderService.mark_delivered(order.id, order.organization_id, request.user))

    @action(detail=True, methods=['post'], permission_classes=[CanManageOrders])
    @handle_service_errors
    def cancel(self, request, pk=None):
        """Cancel an order."""
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated_order = OrderService.cancel_order(
            order.id, order.organization_id, serializer.validated_data['reason'], request.user
        )
        return self._order_response(updated_order)

    @action(detail=True, methods=['post'], permission_classes=[CanManageOrders])
    @handle_service_errors
    def reject(self, request, pk=None):
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated_order = OrderService.reject_order(
            order.id, order.organization_id, serializer.validated_data['reason'], request.user
        )
        return self._order_response(updated_order)

    @action(detail=True, methods=['post'], url_path='status')
    @handle_service_errors
    def set_status(self, request, pk=None):
        """Move the order to any status (checked only in strict mode)."""
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        updated_order = OrderService.update_order_status(
            order.id, order.organization_id, data['status'],
            updated_by=request.user,
            cancellation_reason=data.get('cancellation_reason'),
            internal_notes=data.get('internal_notes'),
        )
        return self._order_response(updated_order)

    @action(detail=True, methods=['post'])
    @handle_service_errors
    def payment(self, request, pk=None):
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated_order = OrderService.update_payment_status(
            order.id, order.organization_id,
            serializer.validated_data['payment_status'],
            serializer.validated_data.get('payment_reference'),
            request.user
        )
        return self._order_response(updated_order)

    @action(detail=True, methods=['get'])
    @handle_service_errors
    def reconciliation(self, request, pk=None):
        """List the records missing after an interrupted confirmation."""
        order = self.get_object()
        return success_response(FulfillmentService.reconciliation_report(order.id, order.organization_id))

    @action(detail=False, methods=['get'])
    @handle_service_errors
    def stats(self, request):
        serializer = self.get_serializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        stats = OrderService.get_order_stats(
            self.get_organization_id(),
            serializer.validated_data.get('date_from'),
            serializer.validated_data.get('date_to'),
        )
        return success_response(stats)

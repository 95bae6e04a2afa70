"""
Order serializers for Online Order Fulfillment.
"""

from rest_framework import serializers

from ..models import Order, OrderItem, OrderStatus, PaymentStatus


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product_id', 'product_sku', 'product_name',
            'quantity', 'unit_price', 'tax_amount', 'discount_amount',
            'total', 'modifiers', 'notes', 'status', 'created_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Serializer for order listing."""

    items_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'source', 'delivery_type',
            'customer_name', 'total', 'payment_status', 'items_count',
            'estimated_ready_at', 'created_at'
        ]

    def get_items_count(self, obj):
        return obj.items.count()


class OrderDetailSerializer(serializers.ModelSerializer):
    """Serializer for order details."""

    items = OrderItemSerializer(many=True, read_only=True)
    confirmed_by_name = serializers.CharField(source='confirmed_by.username', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'organization_id', 'branch_id', 'order_number', 'status', 'source',
            'customer_id', 'customer_name', 'customer_email', 'customer_phone',
            'customer_notes', 'internal_notes',
            'subtotal', 'tax_total', 'discount_total', 'delivery_fee', 'tip_amount', 'total',
            'coupon_code', 'delivery_type', 'delivery_partner', 'delivery_address',
            'is_scheduled', 'scheduled_at', 'estimated_ready_at', 'estimated_delivery_at',
            'payment_status', 'payment_method', 'payment_reference',
            'sale', 'confirmed_at', 'confirmed_by_name', 'ready_at', 'delivered_at',
            'cancelled_at', 'cancellation_reason', 'created_at', 'updated_at',
            'items'
        ]
        read_only_fields = fields


class OrderConfirmSerializer(serializers.Serializer):
    """Serializer for confirming an order."""

    estimated_minutes = serializers.IntegerField(min_value=0)


class OrderStartDeliverySerializer(serializers.Serializer):
    estimated_minutes = serializers.IntegerField(min_value=0, required=False)


class OrderReasonSerializer(serializers.Serializer):
    """Serializer for cancelling or rejecting an order."""

    reason = serializers.CharField(max_length=500)


class OrderPaymentSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices)
    payment_reference = serializers.CharField(max_length=100, required=False, allow_blank=True)


class OrderStatusSerializer(serializers.Serializer):
    """Serializer for a direct status update."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)


class StatsFilterSerializer(serializers.Serializer):
    """Optional creation date range for statistics."""

    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError("date_from must not be after date_to")
        return attrs

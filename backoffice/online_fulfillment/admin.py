"""
Django admin configuration for Online Order Fulfillment.
"""

from django.contrib import admin
from .models import (
    Order, OrderItem, Sale, SaleItem, ProductionTicket, TicketItem, Tip, Coupon,
    CouponRedemption, Driver, Vehicle, Shipment, TransportEvent, DeliveryAttempt,
    ProofOfDelivery, AuditLog
)


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['total']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'organization_id', 'status', 'delivery_type', 'total', 'payment_status', 'created_at']
    list_filter = ['status', 'delivery_type', 'source', 'payment_status', 'created_at']
    search_fields = ['order_number', 'customer_name', 'customer_phone']
    readonly_fields = ['id', 'order_number', 'sale', 'confirmed_at', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['id', 'organization_id', 'branch_id', 'status', 'total', 'balance', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['notes']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [SaleItemInline]


class TicketItemInline(admin.TabularInline):
    model = TicketItem
    extra = 0


@admin.register(ProductionTicket)
class ProductionTicketAdmin(admin.ModelAdmin):
    list_display = ['id', 'sale', 'order', 'status', 'priority', 'progress_percentage', 'created_at']
    list_filter = ['status', 'created_at']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [TicketItemInline]


@admin.register(Tip)
class TipAdmin(admin.ModelAdmin):
    list_display = ['id', 'organization_id', 'tip_type', 'amount', 'sale', 'source_order_id', 'created_at']
    list_filter = ['tip_type', 'created_at']
    search_fields = ['notes', 'actor_id']


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'organization_id', 'discount_type', 'discount_value', 'is_active', 'usage_count']
    list_filter = ['is_active', 'discount_type']
    search_fields = ['code', 'name']
    readonly_fields = ['usage_count']


@admin.register(CouponRedemption)
class CouponRedemptionAdmin(admin.ModelAdmin):
    list_display = ['coupon', 'sale_reference', 'discount_amount', 'redeemed_at']
    search_fields = ['coupon__code', 'sale_reference']


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'organization_id', 'license_number', 'license_expiry', 'is_active']
    list_filter = ['is_active']
    search_fields = ['full_name', 'license_number']


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ['plate', 'organization_id', 'vehicle_type', 'status', 'current_driver', 'is_active']
    list_filter = ['status', 'vehicle_type', 'is_active']
    search_fields = ['plate']


class DeliveryAttemptInline(admin.TabularInline):
    model = DeliveryAttempt
    extra = 0


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['shipment_number', 'tracking_number', 'status', 'vehicle', 'driver', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['shipment_number', 'tracking_number', 'source_id']
    readonly_fields = ['id', 'tracking_number', 'created_at', 'updated_at']
    inlines = [DeliveryAttemptInline]


@admin.register(TransportEvent)
class TransportEventAdmin(admin.ModelAdmin):
    list_display = ['reference_id', 'event_type', 'event_time', 'actor_type', 'actor_id']
    list_filter = ['event_type', 'actor_type']
    search_fields = ['reference_id']

    # Append-only log
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ProofOfDelivery)
class ProofOfDeliveryAdmin(admin.ModelAdmin):
    list_display = ['shipment', 'recipient_name', 'delivered_at', 'customer_rating']
    search_fields = ['recipient_name', 'shipment__shipment_number']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_id', 'action', 'user', 'timestamp']
    list_filter = ['entity_type', 'action', 'timestamp']
    search_fields = ['entity_type', 'entity_id', 'user__username']
    readonly_fields = ['id', 'timestamp']

"""
Shared test data builders.
"""

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from ..models import (
    Order, OrderItem, DeliveryType, PaymentStatus, Driver, Vehicle, VehicleType, Coupon
)

ORG_ID = 1
BRANCH_ID = 1

DEFAULT_ITEMS = [
    {'product_id': 101, 'product_name': 'Burger', 'quantity': Decimal('2'), 'unit_price': Decimal('15000.00')},
    {'product_id': 102, 'product_name': 'Fries', 'quantity': Decimal('1'), 'unit_price': Decimal('6000.00')},
]


def create_user(username='dispatcher', **extra):
    return get_user_model().objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='testpass123',
        **extra
    )


def create_order(order_number='WO-1001', delivery_type=DeliveryType.PICKUP, items=None,
                 organization_id=ORG_ID, branch_id=BRANCH_ID, **fields):
    items = DEFAULT_ITEMS if items is None else items
    subtotal = sum((item['quantity'] * item['unit_price'] for item in items), Decimal('0.00'))
    tip_amount = fields.pop('tip_amount', Decimal('0.00'))
    discount_total = fields.pop('discount_total', Decimal('0.00'))
    delivery_fee = fields.pop('delivery_fee', Decimal('0.00'))

    order = Order.objects.create(
        organization_id=organization_id,
        branch_id=branch_id,
        order_number=order_number,
        delivery_type=delivery_type,
        customer_name=fields.pop('customer_name', 'Jane Doe'),
        customer_phone=fields.pop('customer_phone', '+57 300 000 0000'),
        subtotal=subtotal,
        discount_total=discount_total,
        delivery_fee=delivery_fee,
        tip_amount=tip_amount,
        total=subtotal - discount_total + delivery_fee + tip_amount,
        payment_status=fields.pop('payment_status', PaymentStatus.PAID),
        **fields
    )
    for item in items:
        OrderItem.objects.create(order=order, **item)
    return order


def create_delivery_order(order_number='WO-1002', **fields):
    fields.setdefault('delivery_address', {
        'street': 'Calle 10 # 5-20',
        'city': 'Bogota',
        'neighborhood': 'Chapinero',
        'lat': '4.6486',
        'lng': '-74.0628',
    })
    return create_order(order_number=order_number, delivery_type=DeliveryType.DELIVERY_OWN, **fields)


def create_driver(full_name='Driver One', organization_id=ORG_ID, expires_in_days=365, **fields):
    return Driver.objects.create(
        organization_id=organization_id,
        full_name=full_name,
        license_number=fields.pop('license_number', f'LIC-{full_name[:3].upper()}'),
        license_expiry=timezone.localdate() + timedelta(days=expires_in_days),
        **fields
    )


def create_vehicle(plate='V1', organization_id=ORG_ID, vehicle_type=VehicleType.MOTORCYCLE, **fields):
    return Vehicle.objects.create(
        organization_id=organization_id,
        plate=plate,
        vehicle_type=vehicle_type,
        **fields
    )


def create_coupon(code='SAVE10', organization_id=ORG_ID, **fields):
    return Coupon.objects.create(
        organization_id=organization_id,
        code=code,
        name=fields.pop('name', '10% off'),
        discount_value=fields.pop('discount_value', Decimal('10.00')),
        **fields
    )

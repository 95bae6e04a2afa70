"""
Settings for Online Order Fulfillment.

Values come from the ``ONLINE_FULFILLMENT`` dict in Django settings,
falling back to the defaults below.
"""

from django.conf import settings

DEFAULTS = {
    # Extra minutes added on top of the preparation estimate for deliveries
    'DELIVERY_BUFFER_MINUTES': 20,
    'TRACKING_PREFIX': 'TRK',
    'SHIPMENT_NUMBER_PREFIX': 'DEL-',
    # When False any requested order status is accepted
    'STRICT_ORDER_TRANSITIONS': False,
    # Actor id the ordering front-end writes on records it pre-creates
    'UPSTREAM_ACTOR_ID': '00000000-0000-0000-0000-000000000000',
    'COLLABORATORS': {
        'orders': 'online_fulfillment.adapters.store_adapters.DjangoOrderStore',
        'sales': 'online_fulfillment.adapters.store_adapters.DjangoSaleLedger',
        'kitchen': 'online_fulfillment.adapters.store_adapters.DjangoKitchenQueue',
        'gratuities': 'online_fulfillment.adapters.store_adapters.DjangoGratuityLedger',
        'coupons': 'online_fulfillment.adapters.store_adapters.DjangoCouponLedger',
        'fleet': 'online_fulfillment.adapters.fleet_adapter.DjangoFleetRegistry',
    },
}


def get_setting(name: str):
    """Return an app setting, reading Django settings on every call so overrides apply."""
    user_settings = getattr(settings, 'ONLINE_FULFILLMENT', {}) or {}
    if name == 'COLLABORATORS':
        return {**DEFAULTS['COLLABORATORS'], **user_settings.get('COLLABORATORS', {})}
    if name in user_settings:
        return user_settings[name]
    return DEFAULTS[name]

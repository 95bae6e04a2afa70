"""
Collaborator adapters for Online Order Fulfillment.

Implementations are configured through ``ONLINE_FULFILLMENT['COLLABORATORS']``
and can be swapped at runtime, e.g. to inject failures in tests.
"""

from dataclasses import dataclass, replace
from django.utils.module_loading import import_string

from ..conf import get_setting
from .store_adapters import (
    SaleItemRef,
    OrderStoreInterface, SaleLedgerInterface, KitchenQueueInterface,
    GratuityLedgerInterface, CouponLedgerInterface,
    DjangoOrderStore, DjangoSaleLedger, DjangoKitchenQueue,
    DjangoGratuityLedger, DjangoCouponLedger,
)
from .fleet_adapter import FleetRegistryInterface, DjangoFleetRegistry


@dataclass(frozen=True)
class Collaborators:
    """The external records the fulfillment services talk to."""
    orders: OrderStoreInterface
    sales: SaleLedgerInterface
    kitchen: KitchenQueueInterface
    gratuities: GratuityLedgerInterface
    coupons: CouponLedgerInterface
    fleet: FleetRegistryInterface


_collaborators = None


def _build_from_settings() -> Collaborators:
    paths = get_setting('COLLABORATORS')
    return Collaborators(**{name: import_string(path)() for name, path in paths.items()})


def get_collaborators() -> Collaborators:
    """Factory function returning the configured collaborators."""
    global _collaborators
    if _collaborators is None:
        _collaborators = _build_from_settings()
    return _collaborators


def switch_collaborators(**overrides) -> Collaborators:
    """
    Replace some collaborators, keeping the others.

    Args:
        **overrides: Collaborator name -> implementation instance
    """
    global _collaborators
    _collaborators = replace(get_collaborators(), **overrides)
    return _collaborators


def reset_collaborators() -> None:
    """Go back to the implementations configured in settings."""
    global _collaborators
    _collaborators = None


__all__ = [
    'Collaborators', 'SaleItemRef',
    'get_collaborators', 'switch_collaborators', 'reset_collaborators',
    'OrderStoreInterface', 'SaleLedgerInterface', 'KitchenQueueInterface',
    'GratuityLedgerInterface', 'CouponLedgerInterface', 'FleetRegistryInterface',
    'DjangoOrderStore', 'DjangoSaleLedger', 'DjangoKitchenQueue',
    'DjangoGratuityLedger', 'DjangoCouponLedger', 'DjangoFleetRegistry',
]

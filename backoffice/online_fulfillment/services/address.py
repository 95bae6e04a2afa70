"""
Delivery address normalization.

Ordering channels send the delivery address as a loose key/value payload
whose field names vary by origin system. It is flattened once into a
DeliveryAddress before a shipment is created.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

COORDINATE_PLACES = Decimal('0.000001')

# Target field -> accepted payload keys, first non-empty wins
FIELD_ALIASES = {
    'address': ('address', 'street', 'address_line', 'line1'),
    'city': ('city',),
    'department': ('department', 'state', 'neighborhood'),
    'postal_code': ('postal_code', 'zip', 'zip_code'),
    'latitude': ('lat', 'latitude'),
    'longitude': ('lng', 'longitude', 'lon'),
    'instructions': ('instructions', 'notes'),
}


@dataclass(frozen=True)
class DeliveryAddress:
    address: str = ''
    city: str = ''
    department: str = ''
    postal_code: str = ''
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    instructions: str = ''

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _first_present(payload: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _as_text(value) -> str:
    return '' if value is None else str(value).strip()


def parse_coordinate(value, limit: int) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or abs(number) > limit:
        return None
    return number.quantize(COORDINATE_PLACES)


def normalize_delivery_address(payload: Optional[Dict[str, Any]], fallback_instructions: str = '') -> DeliveryAddress:
    """
    Map a loosely-typed address payload to a DeliveryAddress.

    Args:
        payload: Address as sent by the ordering channel (may be None)
        fallback_instructions: Used when the payload carries no instructions
            (typically the customer's order notes)

    Returns:
        DeliveryAddress with empty strings / None for missing parts.
        Coordinates that are not numbers or out of range are dropped.
    """
    if not isinstance(payload, dict):
        payload = {}

    values = {field: _first_present(payload, keys) for field, keys in FIELD_ALIASES.items()}

    return DeliveryAddress(
        address=_as_text(values['address']),
        city=_as_text(values['city']),
        department=_as_text(values['department']),
        postal_code=_as_text(values['postal_code']),
        latitude=parse_coordinate(values['latitude'], 90),
        longitude=parse_coordinate(values['longitude'], 180),
        instructions=_as_text(values['instructions']) or _as_text(fallback_instructions),
    )

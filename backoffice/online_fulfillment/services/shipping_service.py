"""
Shipping Service for Online Order Fulfillment.

Tracks self-delivered orders: shipment creation, vehicle/driver assignment,
pickup, delivery with proof, failed attempts, and the transport event log.

Each operation is a sequence of independent writes. When a later write
fails the earlier ones stay committed.
"""

import logging
import secrets
import time
from datetime import date
from typing import Dict, Any, List, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..adapters import get_collaborators
from ..conf import get_setting
from ..exceptions import BusinessException, ValidationException
from ..models import (
    Order, OrderStatus, DeliveryType, Shipment, ShipmentStatus, ShipmentSourceType,
    TransportEvent, DeliveryAttempt, ProofOfDelivery, AuditLog, Vehicle, Driver
)
from .address import DeliveryAddress, normalize_delivery_address, parse_coordinate
from .workflow import validate_shipment_workflow

logger = logging.getLogger(__name__)

BASE36_ALPHABET = '0123456789abcdefghijklmnopqrstuvwxyz'


def to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def generate_tracking_number(prefix: Optional[str] = None) -> str:
    """
    Build a tracking number: prefix + base36 millisecond timestamp + 4 random base36 chars.

    Uniqueness rests on the timestamp and the random suffix; the store's
    unique constraint rejects the rare collision.
    """
    if prefix is None:
        prefix = get_setting('TRACKING_PREFIX')
    timestamp = to_base36(int(time.time() * 1000))
    suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"{prefix}{timestamp}{suffix}".upper()


def _text(data: Dict[str, Any], field: str) -> str:
    """Stripped text value of ``field``; empty when missing."""
    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationException(f"{field} must be text", {field: 'invalid'})
    return value.strip()


class ShippingService:
    """Service class for shipment tracking operations."""

    @staticmethod
    def create_from_order(order: Order, address: Optional[DeliveryAddress] = None, created_by=None,
                          expected_delivery_at=None) -> Shipment:
        """
        Create the shipment for a self-delivered order.

        Idempotent: when the order already has a shipment it is returned unchanged.

        Args:
            order: Order instance with delivery type delivery_own
            address: Normalized delivery address; derived from the order when omitted
            created_by: User creating the shipment
            expected_delivery_at: Delivery estimate; the order's estimate when omitted

        Returns:
            The order's Shipment

        Raises:
            ValidationException: If the order is not self-delivered
        """
        if order.delivery_type != DeliveryType.DELIVERY_OWN:
            raise ValidationException(
                f"Order {order.order_number} is not self-delivered; no shipment is created",
                {'delivery_type': order.delivery_type}
            )

        existing = ShippingService.get_shipment_by_order(order.id)
        if existing is not None:
            logger.info(f"Shipment {existing.shipment_number} already exists for order {order.order_number}")
            return existing

        if address is None:
            address = normalize_delivery_address(order.delivery_address, order.customer_notes)

        try:
            with transaction.atomic():
                shipment = Shipment.objects.create(
                    organization_id=order.organization_id,
                    branch_id=order.branch_id,
                    source_type=ShipmentSourceType.ORDER,
                    source_id=str(order.id),
                    shipment_number=f"{get_setting('SHIPMENT_NUMBER_PREFIX')}{order.order_number}",
                    tracking_number=generate_tracking_number(),
                    customer_id=order.customer_id,
                    delivery_address=address.address,
                    delivery_city=address.city,
                    delivery_department=address.department,
                    delivery_postal_code=address.postal_code,
                    delivery_latitude=address.latitude,
                    delivery_longitude=address.longitude,
                    delivery_contact_name=order.customer_name,
                    delivery_contact_phone=order.customer_phone,
                    delivery_instructions=address.instructions,
                    expected_delivery_date=expected_delivery_at or order.estimated_delivery_at,
                    status=ShipmentStatus.PENDING,
                    notes=f"Online order: {order.order_number}",
                    metadata={
                        'order_number': order.order_number,
                        'order_total': str(order.total),
                        'items_count': order.items.count(),
                    },
                    created_by=created_by if getattr(created_by, 'pk', None) else None,
                )
        except IntegrityError:
            # Lost a race with a concurrent creation for the same order
            existing = ShippingService.get_shipment_by_order(order.id)
            if existing is None:
                raise
            return existing

        ShippingService._record_event(
            shipment,
            'created',
            description=f"Shipment created from online order {order.order_number}",
        )

        logger.info(f"Shipment {shipment.shipment_number} ({shipment.tracking_number}) created for order {order.order_number}")
        return shipment

    @staticmethod
    def assign_vehicle_and_driver(shipment_id, vehicle_id, driver_id, estimated_delivery_time=None) -> Shipment:
        """
        Assign a vehicle and driver to a shipment.

        The vehicle is marked in use with the driver attached. Whether the
        vehicle or driver is already busy elsewhere is the caller's concern.

        Raises:
            Vehicle.DoesNotExist: If the vehicle is not in the shipment's organization
            Driver.DoesNotExist: If the driver is not in the shipment's organization
            InvalidTransitionException: If the shipment can no longer be assigned
        """
        organization_id = ShippingService._organization_of(shipment_id)
        fleet = get_collaborators().fleet
        vehicle = fleet.get_vehicle(vehicle_id, organization_id)
        driver = fleet.get_driver(driver_id, organization_id)

        with transaction.atomic():
            shipment = Shipment.objects.select_for_update().get(id=shipment_id)
            validate_shipment_workflow(shipment, ShipmentStatus.ASSIGNED)

            previous_vehicle_id = shipment.vehicle_id
            shipment.status = ShipmentStatus.ASSIGNED
            shipment.vehicle = vehicle
            shipment.driver = driver
            shipment.metadata = {
                **(shipment.metadata or {}),
                'vehicle_id': str(vehicle.id),
                'driver_id': str(driver.id),
                'assigned_at': timezone.now().isoformat(),
            }
            if estimated_delivery_time:
                shipment.expected_delivery_date = estimated_delivery_time
            shipment.save()

        if previous_vehicle_id and previous_vehicle_id != vehicle.id:
            fleet.release(previous_vehicle_id)
        fleet.assign(vehicle.id, driver.id)

        ShippingService._record_event(
            shipment,
            'assigned',
            actor_type='driver',
            actor_id=driver.id,
            description=f"Vehicle {vehicle.plate} and driver {driver.full_name} assigned",
            payload={'vehicle_id': str(vehicle.id), 'driver_id': str(driver.id)},
        )

        logger.info(f"Shipment {shipment.shipment_number} assigned to vehicle {vehicle.plate}, driver {driver.id}")
        return shipment

    @staticmethod
    def mark_picked_up(shipment_id, driver_id, location: Optional[Dict[str, Any]] = None) -> Shipment:
        """
        Record that the driver collected the order and left for delivery.

        Args:
            shipment_id: Shipment UUID
            driver_id: Driver picking up
            location: Optional GPS fix {'latitude', 'longitude', 'location_text'}
        """
        driver = get_collaborators().fleet.get_driver(driver_id, ShippingService._organization_of(shipment_id))

        with transaction.atomic():
            shipment = Shipment.objects.select_for_update().get(id=shipment_id)
            validate_shipment_workflow(shipment, ShipmentStatus.OUT_FOR_DELIVERY)

            now = timezone.now()
            shipment.status = ShipmentStatus.OUT_FOR_DELIVERY
            shipment.picked_at = now
            shipment.dispatched_at = now
            shipment.save()

        ShippingService._propagate_to_order(shipment, OrderStatus.IN_DELIVERY)

        ShippingService._record_event(
            shipment,
            'picked_up',
            actor_type='driver',
            actor_id=driver.id,
            location=location,
            description="Order picked up, on the way to the customer",
        )

        logger.info(f"Shipment {shipment.shipment_number} picked up by driver {driver.id}")
        return shipment

    @staticmethod
    def mark_delivered(shipment_id, driver_id, proof: Dict[str, Any]) -> Tuple[Shipment, ProofOfDelivery]:
        """
        Record a successful delivery.

        Creates the proof of delivery, closes the source order and frees the
        assigned vehicle.

        Args:
            shipment_id: Shipment UUID
            driver_id: Driver delivering
            proof: Proof data; ``recipient_name`` is required

        Returns:
            (shipment, proof_of_delivery)

        Raises:
            ValidationException: If no recipient name is given
            InvalidTransitionException: If the shipment is not out for delivery
        """
        recipient_name = _text(proof, 'recipient_name')
        if not recipient_name:
            raise ValidationException("Recipient name is required for delivery",
                                      {'recipient_name': 'required'})

        driver = get_collaborators().fleet.get_driver(driver_id, ShippingService._organization_of(shipment_id))

        with transaction.atomic():
            shipment = Shipment.objects.select_for_update().get(id=shipment_id)
            validate_shipment_workflow(shipment, ShipmentStatus.DELIVERED)

            now = timezone.now()
            shipment.status = ShipmentStatus.DELIVERED
            shipment.delivered_at = now
            shipment.save()

        latitude = parse_coordinate(proof.get('latitude'), 90)
        longitude = parse_coordinate(proof.get('longitude'), 180)
        proof_of_delivery = ProofOfDelivery.objects.create(
            shipment=shipment,
            delivered_at=now,
            recipient_name=recipient_name,
            recipient_doc_type=proof.get('recipient_doc_type', ''),
            recipient_doc_number=proof.get('recipient_doc_number', ''),
            recipient_relationship=proof.get('recipient_relationship', ''),
            signature_url=proof.get('signature_url', ''),
            photo_urls=proof.get('photo_urls') or [],
            latitude=latitude,
            longitude=longitude,
            delivery_location_type=proof.get('delivery_location_type', ''),
            driver=driver,
            notes=proof.get('notes', ''),
            customer_feedback=proof.get('customer_feedback', ''),
            customer_rating=proof.get('customer_rating'),
        )

        ShippingService._propagate_to_order(shipment, OrderStatus.DELIVERED, delivered_at=now)
        ShippingService._release_vehicle(shipment)

        ShippingService._record_event(
            shipment,
            'delivered',
            actor_type='driver',
            actor_id=driver.id,
            location={'latitude': latitude, 'longitude': longitude},
            description=f"Delivered to {recipient_name}",
            payload={'proof_id': str(proof_of_delivery.id)},
        )

        logger.info(f"Shipment {shipment.shipment_number} delivered to {recipient_name}")
        return shipment, proof_of_delivery

    @staticmethod
    def register_failed_attempt(shipment_id, driver_id, failure: Dict[str, Any]) -> DeliveryAttempt:
        """
        Append a failed delivery attempt. The shipment status does not change.

        The attempt number is the count of earlier attempts plus one.

        Args:
            shipment_id: Shipment UUID
            driver_id: Driver reporting the failure
            failure: ``reason_code`` and ``reason_text`` required; optional
                ``reschedule_date``, ``notes``, ``photo_urls``, ``latitude``, ``longitude``

        Raises:
            ValidationException: If the reason is missing
            BusinessException: If the shipment is already closed
        """
        reason_code = _text(failure, 'reason_code')
        reason_text = _text(failure, 'reason_text')
        if not reason_code or not reason_text:
            raise ValidationException("Failure reason code and text are required",
                                      {'reason_code': reason_code, 'reason_text': reason_text})

        shipment = Shipment.objects.get(id=shipment_id)
        driver = get_collaborators().fleet.get_driver(driver_id, shipment.organization_id)
        if shipment.is_terminal:
            raise BusinessException(
                f"Shipment {shipment.shipment_number} is {shipment.status}; attempts can no longer be registered",
                "SHIPMENT_CLOSED"
            )

        attempt_number = DeliveryAttempt.objects.filter(shipment=shipment).count() + 1
        latitude = parse_coordinate(failure.get('latitude'), 90)
        longitude = parse_coordinate(failure.get('longitude'), 180)

        attempt = DeliveryAttempt.objects.create(
            shipment=shipment,
            attempt_number=attempt_number,
            failure_reason_code=reason_code,
            failure_reason_text=reason_text,
            reschedule_date=failure.get('reschedule_date'),
            reschedule_notes=failure.get('notes', ''),
            photo_urls=failure.get('photo_urls') or [],
            latitude=latitude,
            longitude=longitude,
            driver=driver,
        )

        ShippingService._record_event(
            shipment,
            'delivery_failed',
            actor_type='driver',
            actor_id=driver.id,
            location={'latitude': latitude, 'longitude': longitude},
            description=f"Attempt {attempt_number} failed: {reason_text}",
            payload={'attempt_number': attempt_number, 'reason_code': reason_code},
        )

        logger.warning(f"Delivery attempt {attempt_number} failed for shipment {shipment.shipment_number}: {reason_code}")
        return attempt

    @staticmethod
    def cancel_shipment(shipment_id, reason: str, actor_id=None) -> Shipment:
        """Cancel a shipment that has not been delivered, freeing its vehicle."""
        return ShippingService._close(shipment_id, ShipmentStatus.CANCELLED, 'cancelled', reason,
                                      actor_type='user', actor_id=actor_id)

    @staticmethod
    def mark_returned(shipment_id, driver_id, reason: str) -> Shipment:
        """Record that the package came back undelivered, freeing its vehicle."""
        driver = get_collaborators().fleet.get_driver(driver_id, ShippingService._organization_of(shipment_id))
        return ShippingService._close(shipment_id, ShipmentStatus.RETURNED, 'returned', reason,
                                      actor_type='driver', actor_id=driver.id)

    @staticmethod
    def get_shipment_by_order(order_id) -> Optional[Shipment]:
        return Shipment.objects.filter(
            source_type=ShipmentSourceType.ORDER,
            source_id=str(order_id),
        ).first()

    @staticmethod
    def get_shipment_events(shipment_id) -> List[TransportEvent]:
        return list(TransportEvent.objects.filter(
            reference_type='shipment',
            reference_id=str(shipment_id),
        ).order_by('event_time', 'id'))

    @staticmethod
    def get_proof_of_delivery(shipment_id) -> Optional[ProofOfDelivery]:
        return ProofOfDelivery.objects.filter(shipment_id=shipment_id).first()

    @staticmethod
    def get_pending_deliveries_for_driver(driver_id) -> List[Shipment]:
        return list(Shipment.objects.filter(
            driver_id=driver_id,
            status__in=[ShipmentStatus.ASSIGNED, ShipmentStatus.OUT_FOR_DELIVERY],
        ).order_by('expected_delivery_date', 'created_at'))

    @staticmethod
    def get_available_vehicles(organization_id) -> List[Vehicle]:
        return get_collaborators().fleet.available_vehicles(organization_id)

    @staticmethod
    def get_available_drivers(organization_id) -> List[Driver]:
        return get_collaborators().fleet.available_drivers(organization_id)

    @staticmethod
    def get_delivery_stats(organization_id, date_from: Optional[date] = None,
                           date_to: Optional[date] = None) -> Dict[str, Any]:
        """
        Delivery counts by status and the average pickup-to-delivery time in minutes.
        """
        shipments = Shipment.objects.filter(
            organization_id=organization_id,
            source_type=ShipmentSourceType.ORDER,
        )
        if date_from:
            shipments = shipments.filter(created_at__date__gte=date_from)
        if date_to:
            shipments = shipments.filter(created_at__date__lte=date_to)

        counts = {status: 0 for status in ShipmentStatus.values}
        delivery_minutes = []
        for shipment in shipments.only('status', 'picked_at', 'delivered_at'):
            counts[shipment.status] += 1
            if shipment.status == ShipmentStatus.DELIVERED and shipment.delivery_minutes is not None:
                delivery_minutes.append(shipment.delivery_minutes)

        return {
            'total': sum(counts.values()),
            'pending': counts[ShipmentStatus.PENDING],
            'assigned': counts[ShipmentStatus.ASSIGNED],
            'in_transit': counts[ShipmentStatus.OUT_FOR_DELIVERY],
            'delivered': counts[ShipmentStatus.DELIVERED],
            'failed': counts[ShipmentStatus.RETURNED],
            'cancelled': counts[ShipmentStatus.CANCELLED],
            'avg_delivery_minutes': round(sum(delivery_minutes) / len(delivery_minutes)) if delivery_minutes else 0,
        }

    @staticmethod
    def _close(shipment_id, status: str, event_type: str, reason: str, actor_type: str, actor_id=None) -> Shipment:
        with transaction.atomic():
            shipment = Shipment.objects.select_for_update().get(id=shipment_id)
            validate_shipment_workflow(shipment, status)

            shipment.status = status
            if reason:
                shipment.internal_notes = f"{shipment.internal_notes}\n{reason}".strip()
            shipment.save()

        ShippingService._release_vehicle(shipment)

        ShippingService._record_event(
            shipment,
            event_type,
            actor_type=actor_type,
            actor_id=actor_id,
            description=reason or '',
            payload={'reason': reason or ''},
        )

        logger.info(f"Shipment {shipment.shipment_number} {event_type}: {reason}")
        return shipment

    @staticmethod
    def _organization_of(shipment_id):
        """Organization owning the shipment; fleet lookups are scoped to it."""
        return Shipment.objects.values_list('organization_id', flat=True).get(id=shipment_id)

    @staticmethod
    def _propagate_to_order(shipment: Shipment, status: str, **fields) -> Optional[Order]:
        """Carry a shipment milestone over to the source order."""
        if shipment.source_type != ShipmentSourceType.ORDER or not shipment.source_id:
            return None

        orders = get_collaborators().orders
        order = orders.get(shipment.source_id, shipment.organization_id)
        updated_order = orders.update_fields(order.id, shipment.organization_id, status=status, **fields)

        AuditLog.log_status_change(
            entity=updated_order,
            old_status=order.status,
            new_status=status,
            notes=f"Set by shipment {shipment.shipment_number}"
        )
        return updated_order

    @staticmethod
    def _release_vehicle(shipment: Shipment) -> None:
        vehicle_id = (shipment.metadata or {}).get('vehicle_id') or shipment.vehicle_id
        if vehicle_id:
            get_collaborators().fleet.release(vehicle_id)

    @staticmethod
    def _record_event(shipment: Shipment, event_type: str, actor_type: str = 'system', actor_id=None,
                      location: Optional[Dict[str, Any]] = None, description: str = '',
                      payload: Optional[Dict[str, Any]] = None) -> TransportEvent:
        location = location or {}
        return TransportEvent.objects.create(
            organization_id=shipment.organization_id,
            reference_type='shipment',
            reference_id=str(shipment.id),
            event_type=event_type,
            latitude=parse_coordinate(location.get('latitude'), 90),
            longitude=parse_coordinate(location.get('longitude'), 180),
            location_text=location.get('location_text', ''),
            actor_type=actor_type,
            actor_id=str(actor_id) if actor_id else '',
            description=description,
            payload=payload or {},
        )

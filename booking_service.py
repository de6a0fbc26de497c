"""
Booking lifecycle.

A booking starts as Booked and moves through the front-desk actions below.
Checked-Out and Cancelled are terminal. Each action also keeps the room's
status in step with the bookings that hold it.

Service usage belongs to the booking and can only be recorded once the
guest has checked in, and only until the final bill is issued.
"""
import logging

from api_utils import get_or_404
from errors import Conflict, NotFound, ValidationFailed
from extensions import db
from models import Booking, Branch, ChargeableService, Guest, Room, ServiceUsage, User
from utils import hotel_now, to_hotel_time

logger = logging.getLogger(__name__)

# action -> (required status, resulting status)
TRANSITIONS = {
    'check-in': ('Booked', 'Checked-In'),
    'cancel': ('Booked', 'Cancelled'),
    'check-out': ('Checked-In', 'Checked-Out'),
}

ACTIVE_STATUSES = ('Booked', 'Checked-In')
TERMINAL_STATUSES = ('Checked-Out', 'Cancelled')
SERVICE_USAGE_STATUSES = ('Checked-In', 'Checked-Out')


def action_for(current, target):
    """Name of the action that moves a booking from ``current`` to ``target``"""
    for action, (source, result) in TRANSITIONS.items():
        if source == current and result == target:
            return action
    raise ValidationFailed(f'Cannot change booking status from {current} to {target}')


def next_status(current, action):
    source, target = TRANSITIONS[action]
    if current != source:
        raise ValidationFailed(f'Cannot change booking status from {current} to {target}')
    return target


# ============================================
# LOCKING & AVAILABILITY
# ============================================

def lock_room(room_id):
    room = db.session.query(Room).filter_by(id=room_id).with_for_update().first()
    if room is None:
        raise NotFound.for_id('room', room_id)
    return room


def lock_booking(booking_id):
    booking = db.session.query(Booking).filter_by(id=booking_id).with_for_update().first()
    if booking is None:
        raise NotFound.for_id('booking', booking_id)
    return booking


def overlapping_bookings(check_in, check_out, room_id=None, exclude_id=None):
    """Active bookings whose stay intersects [check_in, check_out)"""
    query = Booking.query.filter(
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in < check_out,
        Booking.check_out > check_in,
    )
    if room_id is not None:
        query = query.filter(Booking.room_id == room_id)
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query


def ensure_room_free(room, check_in, check_out, exclude_id=None):
    if overlapping_bookings(check_in, check_out, room.id, exclude_id).count():
        logger.warning('Booking conflict on room %s for %s - %s', room.room_number, check_in, check_out)
        raise Conflict(f'Room {room.room_number} is already booked for the selected dates')


def availability(query):
    """Rooms that are free for the requested window"""
    check_in = to_hotel_time(query.check_in)
    check_out = to_hotel_time(query.check_out)
    result = {'checkIn': check_in.isoformat(), 'checkOut': check_out.isoformat()}

    if query.room_id:
        room = get_or_404(Room, query.room_id, 'room')
        conflicts = overlapping_bookings(check_in, check_out, room.id).order_by(Booking.check_in).all()
        available = not conflicts and room.room_status != 'Maintenance'
        result.update({
            'available': available,
            'rooms': [room.to_dict()] if available else [],
            'conflicts': [booking.to_dict() for booking in conflicts],
        })
        return result

    if not query.branch_id:
        raise ValidationFailed('Either roomId or branchId is required')

    get_or_404(Branch, query.branch_id, 'branch')
    busy = {row.room_id for row in overlapping_bookings(check_in, check_out).with_entities(Booking.room_id)}
    rooms = (Room.query.filter(Room.branch_id == query.branch_id, Room.room_status != 'Maintenance')
             .order_by(Room.room_number).all())
    free = [room.to_dict() for room in rooms if room.id not in busy]
    result.update({'available': bool(free), 'rooms': free})
    return result


def refresh_room_status(room, exclude_id=None):
    """Derive the room status from the active bookings still holding it"""
    if room is None or room.room_status == 'Maintenance':
        return
    holders = Booking.query.filter(Booking.room_id == room.id, Booking.status.in_(ACTIVE_STATUSES))
    if exclude_id is not None:
        holders = holders.filter(Booking.id != exclude_id)
    statuses = {booking.status for booking in holders}
    if 'Checked-In' in statuses:
        room.room_status = 'Occupied'
    elif 'Booked' in statuses:
        room.room_status = 'Reserved'
    else:
        room.room_status = 'Available'


# ============================================
# BOOKINGS
# ============================================

def create_booking(data, current_user):
    get_or_404(Guest, data.guest_id, 'guest')
    user_id = data.user_id or current_user.id
    get_or_404(User, user_id, 'user')

    room = lock_room(data.room_id)
    if room.room_status == 'Maintenance':
        raise ValidationFailed(f'Room {room.room_number} is under maintenance')

    check_in = to_hotel_time(data.check_in)
    check_out = to_hotel_time(data.check_out)
    ensure_room_free(room, check_in, check_out)

    booking = Booking(
        guest_id=data.guest_id,
        room_id=room.id,
        user_id=user_id,
        status='Booked',
        check_in=check_in,
        check_out=check_out,
        date_time=hotel_now(),
    )
    db.session.add(booking)
    if room.room_status == 'Available':
        room.room_status = 'Reserved'
    db.session.commit()

    logger.info('Booking %s created for guest %s in room %s', booking.id, booking.guest_id, room.room_number)
    return booking


def update_booking(booking_id, data):
    booking = lock_booking(booking_id)
    changes = data.changes()
    if not changes:
        raise ValidationFailed('No fields provided to update')
    if booking.status in TERMINAL_STATUSES:
        raise ValidationFailed(f'Booking in status {booking.status} cannot be modified')

    target_status = changes.pop('status', None)
    if 'guest_id' in changes:
        get_or_404(Guest, changes['guest_id'], 'guest')
    if 'user_id' in changes:
        get_or_404(User, changes['user_id'], 'user')

    check_in = to_hotel_time(changes.get('check_in', booking.check_in))
    check_out = to_hotel_time(changes.get('check_out', booking.check_out))
    if check_in >= check_out:
        raise ValidationFailed('checkOut must be after checkIn')

    room_id = changes.get('room_id', booking.room_id)
    room_changed = room_id != booking.room_id
    if room_changed and booking.status != 'Booked':
        raise ValidationFailed('The room can only be changed before check-in')

    previous_room = room = booking.room
    if room_changed or check_in != booking.check_in or check_out != booking.check_out:
        room = lock_room(room_id)
        if room_changed and room.room_status == 'Maintenance':
            raise ValidationFailed(f'Room {room.room_number} is under maintenance')
        ensure_room_free(room, check_in, check_out, exclude_id=booking.id)

    for attr in ('guest_id', 'user_id'):
        if attr in changes:
            setattr(booking, attr, changes[attr])
    booking.check_in = check_in
    booking.check_out = check_out

    if room_changed:
        booking.room = room
        db.session.flush()
        refresh_room_status(previous_room)
        refresh_room_status(room)

    if target_status and target_status != booking.status:
        apply_action(booking, action_for(booking.status, target_status))

    db.session.commit()
    logger.info('Booking %s updated', booking.id)
    return booking


def apply_action(booking, action, at=None):
    """Run a front-desk action against a locked booking; the caller commits"""
    current = booking.status
    try:
        target = next_status(current, action)
    except ValidationFailed:
        logger.warning('Rejected %s for booking %s in status %s', action, booking.id, current)
        raise

    now = to_hotel_time(at) or hotel_now()
    if action == 'check-in':
        booking.actual_check_in = now
    elif action == 'check-out':
        if booking.actual_check_in and now < booking.actual_check_in:
            raise ValidationFailed('checkedOutAt cannot be before the actual check-in time')
        booking.actual_check_out = now

    booking.status = target
    db.session.flush()
    refresh_room_status(booking.room)
    logger.info('Booking %s: %s -> %s', booking.id, current, target)
    return booking


def perform_action(booking_id, action, at=None):
    booking = lock_booking(booking_id)
    apply_action(booking, action, at)
    db.session.commit()
    return booking


def delete_booking(booking_id):
    booking = lock_booking(booking_id)
    room = booking.room
    was_active = booking.status in ACTIVE_STATUSES
    db.session.delete(booking)
    db.session.flush()
    if was_active:
        refresh_room_status(room, exclude_id=booking_id)
    db.session.commit()
    logger.info('Booking %s deleted', booking_id)


# ============================================
# SERVICE USAGE
# ============================================

def ensure_service_usage_allowed(booking):
    if booking.status not in SERVICE_USAGE_STATUSES:
        logger.warning('Service usage rejected for booking %s in status %s', booking.id, booking.status)
        raise ValidationFailed(f'Service management not available for bookings in status {booking.status}')
    if booking.final_bill is not None:
        raise ValidationFailed('Service usage cannot change after the final bill has been issued')


def ensure_checked_out(booking, what):
    if booking.status != 'Checked-Out':
        raise ValidationFailed(f'{what} is only available for checked-out bookings')


def _service_for(booking, service_id):
    service = get_or_404(ChargeableService, service_id, 'service')
    if service.branch_id != booking.room.branch_id:
        raise ValidationFailed(f"Service {service.name} is not offered at this booking's branch")
    return service


def create_service_usage(data):
    booking = lock_booking(data.booking_id)
    ensure_service_usage_allowed(booking)
    service = _service_for(booking, data.service_id)

    usage = ServiceUsage(
        booking_id=booking.id,
        service_id=service.id,
        quantity=data.quantity,
        unit_price=service.unit_price,
        date_time=to_hotel_time(data.date_time) or hotel_now(),
    )
    usage.reprice()
    db.session.add(usage)
    db.session.commit()

    logger.info('Recorded %s x %s for booking %s', usage.quantity, service.name, booking.id)
    return usage


def update_service_usage(usage_id, data):
    usage = get_or_404(ServiceUsage, usage_id, 'service usage')
    booking = lock_booking(usage.booking_id)
    ensure_service_usage_allowed(booking)

    changes = data.changes()
    if not changes:
        raise ValidationFailed('No fields provided to update')
    if 'service_id' in changes:
        service = _service_for(booking, changes['service_id'])
        usage.service_id = service.id
        usage.unit_price = service.unit_price
    if 'quantity' in changes:
        usage.quantity = changes['quantity']
    if 'date_time' in changes:
        usage.date_time = to_hotel_time(changes['date_time'])
    usage.reprice()
    db.session.commit()
    return usage


def delete_service_usage(usage_id):
    usage = get_or_404(ServiceUsage, usage_id, 'service usage')
    ensure_service_usage_allowed(lock_booking(usage.booking_id))
    db.session.delete(usage)
    db.session.commit()
    logger.info('Service usage %s deleted', usage_id)

"""
Bookings, front-desk actions and the service usage recorded against them.
"""
from flask import Blueprint, request
from flask_login import current_user

import booking_service
from api_utils import get_or_404, parse_body, parse_query, success_response
from models import Booking, Room, ServiceUsage
from query_filters import FilterSpec, apply_filters
from schemas import (AvailabilityQuery, BookingCreate, BookingFilters, BookingUpdate, CheckInRequest,
                     CheckOutRequest, ServiceUsageCreate, ServiceUsageFilters, ServiceUsageUpdate)

booking_bp = Blueprint('booking', __name__, url_prefix='/api/booking')
service_usage_bp = Blueprint('service_usage', __name__, url_prefix='/api/service-usage')

BOOKING_FILTERS = (
    FilterSpec('guest_id', Booking.guest_id),
    FilterSpec('room_id', Booking.room_id),
    FilterSpec('branch_id', Room.branch_id),
    FilterSpec('status', Booking.status),
)

USAGE_FILTERS = (
    FilterSpec('booking_id', ServiceUsage.booking_id),
    FilterSpec('service_id', ServiceUsage.service_id),
)


# ============================================
# BOOKINGS
# ============================================

@booking_bp.route('', methods=['GET'])
def list_bookings():
    """List bookings with optional filters"""
    filters = parse_query(BookingFilters)
    query = Booking.query.join(Room, Booking.room_id == Room.id)
    query = apply_filters(query, BOOKING_FILTERS, filters.model_dump())
    bookings = query.order_by(Booking.check_in.desc(), Booking.id.desc()).all()
    return success_response([booking.to_dict() for booking in bookings])


@booking_bp.route('/availability', methods=['GET'])
def check_availability():
    """Check which rooms are free for a date window"""
    return success_response(booking_service.availability(parse_query(AvailabilityQuery)))


@booking_bp.route('/<int:booking_id>', methods=['GET'])
def get_booking(booking_id):
    """Get a single booking"""
    return success_response(get_or_404(Booking, booking_id, 'booking').to_dict())


@booking_bp.route('', methods=['POST'])
def create_booking():
    """Book a room for a guest"""
    booking = booking_service.create_booking(parse_body(BookingCreate), current_user)
    return success_response(booking.to_dict(), 'Booking created successfully', 201)


@booking_bp.route('/<int:booking_id>', methods=['PUT'])
def update_booking(booking_id):
    """Partially update a booking"""
    booking = booking_service.update_booking(booking_id, parse_body(BookingUpdate))
    return success_response(booking.to_dict(), 'Booking updated successfully')


@booking_bp.route('/<int:booking_id>', methods=['DELETE'])
def delete_booking(booking_id):
    """Delete a booking with its usage, bill and payments"""
    booking_service.delete_booking(booking_id)
    return success_response(message='Booking deleted successfully')


@booking_bp.route('/<int:booking_id>/check-in', methods=['POST'])
def check_in(booking_id):
    """Check a guest in"""
    data = CheckInRequest.model_validate(request.get_json(silent=True) or {})
    booking = booking_service.perform_action(booking_id, 'check-in', data.checked_in_at)
    return success_response(booking.to_dict(), 'Guest checked in')


@booking_bp.route('/<int:booking_id>/check-out', methods=['POST'])
def check_out(booking_id):
    """Check a guest out"""
    data = CheckOutRequest.model_validate(request.get_json(silent=True) or {})
    booking = booking_service.perform_action(booking_id, 'check-out', data.checked_out_at)
    return success_response(booking.to_dict(), 'Guest checked out')


@booking_bp.route('/<int:booking_id>/cancel', methods=['POST'])
def cancel(booking_id):
    """Cancel a booking"""
    booking = booking_service.perform_action(booking_id, 'cancel')
    return success_response(booking.to_dict(), 'Booking cancelled')


# ============================================
# SERVICE USAGE
# ============================================

@service_usage_bp.route('', methods=['GET'])
def list_service_usage():
    """List service usage records"""
    filters = parse_query(ServiceUsageFilters)
    query = apply_filters(ServiceUsage.query, USAGE_FILTERS, filters.model_dump())
    usages = query.order_by(ServiceUsage.date_time.desc(), ServiceUsage.id.desc()).all()
    return success_response([usage.to_dict() for usage in usages])


@service_usage_bp.route('/booking/<int:booking_id>', methods=['GET'])
def list_service_usage_by_booking(booking_id):
    """List service usage for a booking"""
    booking = get_or_404(Booking, booking_id, 'booking')
    return success_response([usage.to_dict() for usage in booking.service_usages])


@service_usage_bp.route('/<int:usage_id>', methods=['GET'])
def get_service_usage(usage_id):
    """Get a single service usage record"""
    return success_response(get_or_404(ServiceUsage, usage_id, 'service usage').to_dict())


@service_usage_bp.route('', methods=['POST'])
def create_service_usage():
    """Record a service used during a stay"""
    usage = booking_service.create_service_usage(parse_body(ServiceUsageCreate))
    return success_response(usage.to_dict(), 'Service usage recorded', 201)


@service_usage_bp.route('/<int:usage_id>', methods=['PUT'])
def update_service_usage(usage_id):
    """Update a service usage record"""
    usage = booking_service.update_service_usage(usage_id, parse_body(ServiceUsageUpdate))
    return success_response(usage.to_dict(), 'Service usage updated')


@service_usage_bp.route('/<int:usage_id>', methods=['DELETE'])
def delete_service_usage(usage_id):
    """Delete a service usage record"""
    booking_service.delete_service_usage(usage_id)
    return success_response(message='Service usage deleted')

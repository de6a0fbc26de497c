"""
Rooms and room types.
"""
import logging

from flask import Blueprint

from api_utils import apply_changes, get_or_404, parse_body, parse_query, success_response
from auth import admin_required
from booking_service import refresh_room_status
from errors import ValidationFailed
from extensions import db
from models import Branch, Room, RoomType
from query_filters import FilterSpec, apply_filters
from schemas import RoomCreate, RoomFilters, RoomTypeCreate, RoomTypeUpdate, RoomUpdate

logger = logging.getLogger(__name__)

room_type_bp = Blueprint('room_types', __name__, url_prefix='/api/room-types')
room_bp = Blueprint('rooms', __name__, url_prefix='/api/rooms')

ROOM_FILTERS = (
    FilterSpec('branch_id', Room.branch_id),
    FilterSpec('room_type_id', Room.room_type_id),
    FilterSpec('status', Room.room_status),
)


def _ensure_unique_type_name(branch_id, name, exclude_id=None):
    query = RoomType.query.filter(RoomType.branch_id == branch_id, RoomType.name == name)
    if exclude_id is not None:
        query = query.filter(RoomType.id != exclude_id)
    if query.first():
        raise ValidationFailed(f'Room type {name} already exists in this branch')


def _ensure_unique_room_number(branch_id, room_number, exclude_id=None):
    query = Room.query.filter(Room.branch_id == branch_id, Room.room_number == room_number)
    if exclude_id is not None:
        query = query.filter(Room.id != exclude_id)
    if query.first():
        raise ValidationFailed(f'Room {room_number} already exists in this branch')


# ============================================
# ROOM TYPES
# ============================================

@room_type_bp.route('', methods=['GET'])
def list_room_types():
    """List all room types"""
    room_types = RoomType.query.order_by(RoomType.branch_id, RoomType.name).all()
    return success_response([room_type.to_dict() for room_type in room_types])


@room_type_bp.route('/<int:room_type_id>', methods=['GET'])
def get_room_type(room_type_id):
    """Get a single room type"""
    return success_response(get_or_404(RoomType, room_type_id, 'room type').to_dict())


@room_type_bp.route('/branch/<int:branch_id>', methods=['GET'])
def list_room_types_by_branch(branch_id):
    """List room types of a branch"""
    get_or_404(Branch, branch_id, 'branch')
    room_types = RoomType.query.filter_by(branch_id=branch_id).order_by(RoomType.name).all()
    return success_response([room_type.to_dict() for room_type in room_types])


@room_type_bp.route('', methods=['POST'])
def create_room_type():
    """Create a room type"""
    data = parse_body(RoomTypeCreate)
    get_or_404(Branch, data.branch_id, 'branch')
    _ensure_unique_type_name(data.branch_id, data.name)
    room_type = RoomType(**data.model_dump())
    db.session.add(room_type)
    db.session.commit()
    logger.info('Room type %s created in branch %s', room_type.name, room_type.branch_id)
    return success_response(room_type.to_dict(), 'Room type created successfully', 201)


@room_type_bp.route('/<int:room_type_id>', methods=['PUT'])
def update_room_type(room_type_id):
    """Partially update a room type"""
    room_type = get_or_404(RoomType, room_type_id, 'room type')
    changes = parse_body(RoomTypeUpdate).changes()
    if 'name' in changes:
        _ensure_unique_type_name(room_type.branch_id, changes['name'], exclude_id=room_type.id)
    apply_changes(room_type, changes)
    db.session.commit()
    return success_response(room_type.to_dict(), 'Room type updated successfully')


@room_type_bp.route('/<int:room_type_id>', methods=['DELETE'])
@admin_required
def delete_room_type(room_type_id):
    """Delete an unused room type (admin only)"""
    room_type = get_or_404(RoomType, room_type_id, 'room type')
    if room_type.rooms.count():
        raise ValidationFailed('Room type is assigned to rooms and cannot be deleted')
    db.session.delete(room_type)
    db.session.commit()
    logger.info('Room type %s deleted', room_type_id)
    return success_response(message='Room type deleted successfully')


# ============================================
# ROOMS
# ============================================

@room_bp.route('', methods=['GET'])
def list_rooms():
    """List rooms with optional filters"""
    filters = parse_query(RoomFilters)
    query = apply_filters(Room.query, ROOM_FILTERS, filters.model_dump())
    rooms = query.order_by(Room.branch_id, Room.room_number).all()
    return success_response([room.to_dict() for room in rooms])


@room_bp.route('/<int:room_id>', methods=['GET'])
def get_room(room_id):
    """Get a single room"""
    return success_response(get_or_404(Room, room_id, 'room').to_dict())


@room_bp.route('/branch/<int:branch_id>', methods=['GET'])
def list_rooms_by_branch(branch_id):
    """List rooms of a branch"""
    get_or_404(Branch, branch_id, 'branch')
    rooms = Room.query.filter_by(branch_id=branch_id).order_by(Room.room_number).all()
    return success_response([room.to_dict() for room in rooms])


@room_bp.route('', methods=['POST'])
def create_room():
    """Create a room"""
    data = parse_body(RoomCreate)
    get_or_404(Branch, data.branch_id, 'branch')
    room_type = get_or_404(RoomType, data.room_type_id, 'room type')
    if room_type.branch_id != data.branch_id:
        raise ValidationFailed('Room type belongs to a different branch')
    _ensure_unique_room_number(data.branch_id, data.room_number)

    room = Room(**data.model_dump())
    db.session.add(room)
    db.session.commit()
    logger.info('Room %s created in branch %s', room.room_number, room.branch_id)
    return success_response(room.to_dict(), 'Room created successfully', 201)


@room_bp.route('/<int:room_id>', methods=['PUT'])
def update_room(room_id):
    """Update a room; Occupied and Reserved follow its bookings"""
    room = get_or_404(Room, room_id, 'room')
    changes = parse_body(RoomUpdate).changes()
    if 'room_type_id' in changes:
        room_type = get_or_404(RoomType, changes['room_type_id'], 'room type')
        if room_type.branch_id != room.branch_id:
            raise ValidationFailed('Room type belongs to a different branch')
    if 'room_number' in changes:
        _ensure_unique_room_number(room.branch_id, changes['room_number'], exclude_id=room.id)
    apply_changes(room, changes)
    if 'room_status' in changes:
        refresh_room_status(room)
    db.session.commit()
    return success_response(room.to_dict(), 'Room updated successfully')


@room_bp.route('/<int:room_id>', methods=['DELETE'])
def delete_room(room_id):
    """Delete a room without bookings"""
    room = get_or_404(Room, room_id, 'room')
    if room.bookings.count():
        raise ValidationFailed('Room has bookings and cannot be deleted')
    db.session.delete(room)
    db.session.commit()
    logger.info('Room %s deleted', room_id)
    return success_response(message='Room deleted successfully')

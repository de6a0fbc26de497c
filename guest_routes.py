import logging

from flask import Blueprint, request
from sqlalchemy import or_

from api_utils import apply_changes, get_or_404, parse_body, parse_query, success_response
from errors import ValidationFailed
from extensions import db
from models import Guest
from query_filters import OPERATORS, FilterSpec, apply_filters
from schemas import GuestCreate, GuestFilters, GuestUpdate

logger = logging.getLogger(__name__)

guest_bp = Blueprint('guests', __name__, url_prefix='/api/guests')

GUEST_FILTERS = (
    FilterSpec('name', Guest.name, 'contains'),
    FilterSpec('nic', Guest.nic, 'iexact'),
    FilterSpec('email', Guest.email, 'iexact'),
    FilterSpec('contact_no', Guest.contact_no, 'contains'),
)


def _ensure_unique_nic(nic, exclude_id=None):
    if not nic:
        return
    query = Guest.query.filter(Guest.nic == nic)
    if exclude_id is not None:
        query = query.filter(Guest.id != exclude_id)
    if query.first():
        raise ValidationFailed(f'A guest with NIC {nic} already exists')


@guest_bp.route('', methods=['GET'])
def list_guests():
    """List guests with optional filters"""
    filters = parse_query(GuestFilters)
    query = apply_filters(Guest.query, GUEST_FILTERS, filters.model_dump())
    guests = query.order_by(Guest.name, Guest.id).all()
    return success_response([guest.to_dict() for guest in guests])


@guest_bp.route('/search', methods=['GET'])
def search_guests():
    """Free-text search over name, NIC, email and contact number"""
    term = request.args.get('q', '').strip()
    if not term:
        raise ValidationFailed('Search term q is required')
    contains = OPERATORS['contains']
    guests = (Guest.query
              .filter(or_(contains(Guest.name, term), contains(Guest.nic, term),
                          contains(Guest.email, term), contains(Guest.contact_no, term)))
              .order_by(Guest.name, Guest.id)
              .all())
    return success_response([guest.to_dict() for guest in guests])


@guest_bp.route('/<int:guest_id>', methods=['GET'])
def get_guest(guest_id):
    """Get a single guest"""
    return success_response(get_or_404(Guest, guest_id, 'guest').to_dict())


@guest_bp.route('', methods=['POST'])
def create_guest():
    """Register a guest"""
    data = parse_body(GuestCreate)
    _ensure_unique_nic(data.nic)
    guest = Guest(**data.model_dump())
    db.session.add(guest)
    db.session.commit()
    logger.info('Guest %s created', guest.id)
    return success_response(guest.to_dict(), 'Guest created successfully', 201)


@guest_bp.route('/<int:guest_id>', methods=['PUT'])
def update_guest(guest_id):
    """Partially update a guest"""
    guest = get_or_404(Guest, guest_id, 'guest')
    changes = parse_body(GuestUpdate).changes()
    if changes.get('nic'):
        _ensure_unique_nic(changes['nic'], exclude_id=guest.id)
    apply_changes(guest, changes)
    db.session.commit()
    return success_response(guest.to_dict(), 'Guest updated successfully')


@guest_bp.route('/<int:guest_id>', methods=['DELETE'])
def delete_guest(guest_id):
    """Delete a guest without bookings"""
    guest = get_or_404(Guest, guest_id, 'guest')
    if guest.bookings.count():
        raise ValidationFailed('Guest has bookings and cannot be deleted')
    db.session.delete(guest)
    db.session.commit()
    logger.info('Guest %s deleted', guest_id)
    return success_response(message='Guest deleted successfully')

import logging

from flask import Blueprint
from flask_login import current_user

from api_utils import apply_changes, get_or_404, parse_body, parse_query, success_response
from auth import admin_required
from errors import ValidationFailed
from extensions import db
from models import Booking, Branch, FinalBill, Staff
from query_filters import FilterSpec, apply_filters
from schemas import StaffCreate, StaffFilters, StaffUpdate

logger = logging.getLogger(__name__)

staff_bp = Blueprint('staff', __name__, url_prefix='/api/staff')

STAFF_FILTERS = (
    FilterSpec('branch_id', Staff.branch_id),
    FilterSpec('job_title', Staff.job_title, 'iexact'),
    FilterSpec('name', Staff.name, 'contains'),
)


def _ensure_unique_email(email, exclude_id=None):
    if not email:
        return
    query = Staff.query.filter(Staff.email == email)
    if exclude_id is not None:
        query = query.filter(Staff.id != exclude_id)
    if query.first():
        raise ValidationFailed(f'A staff member with email {email} already exists')


@staff_bp.route('', methods=['GET'])
def list_staff():
    """List staff with optional filters"""
    filters = parse_query(StaffFilters)
    query = apply_filters(Staff.query, STAFF_FILTERS, filters.model_dump())
    members = query.order_by(Staff.name, Staff.id).all()
    return success_response([member.to_dict() for member in members])


@staff_bp.route('/<int:staff_id>', methods=['GET'])
def get_staff(staff_id):
    """Get a single staff member"""
    return success_response(get_or_404(Staff, staff_id, 'staff').to_dict())


@staff_bp.route('', methods=['POST'])
def create_staff():
    """Add a staff member"""
    data = parse_body(StaffCreate)
    get_or_404(Branch, data.branch_id, 'branch')
    _ensure_unique_email(data.email)
    member = Staff(**data.model_dump())
    db.session.add(member)
    db.session.commit()
    logger.info('Staff member %s created in branch %s', member.id, member.branch_id)
    return success_response(member.to_dict(), 'Staff member created successfully', 201)


@staff_bp.route('/<int:staff_id>', methods=['PUT'])
def update_staff(staff_id):
    """Partially update a staff member"""
    member = get_or_404(Staff, staff_id, 'staff')
    changes = parse_body(StaffUpdate).changes()
    if 'branch_id' in changes:
        get_or_404(Branch, changes['branch_id'], 'branch')
    if changes.get('email'):
        _ensure_unique_email(changes['email'], exclude_id=member.id)
    apply_changes(member, changes)
    db.session.commit()
    return success_response(member.to_dict(), 'Staff member updated successfully')


@staff_bp.route('/<int:staff_id>', methods=['DELETE'])
@admin_required
def delete_staff(staff_id):
    """Delete a staff member (admin only)"""
    member = get_or_404(Staff, staff_id, 'staff')
    user = member.user
    if user is not None:
        if user.id == current_user.id:
            raise ValidationFailed('You cannot delete your own staff record')
        if (Booking.query.filter_by(user_id=user.id).count()
                or FinalBill.query.filter_by(user_id=user.id).count()):
            raise ValidationFailed('Staff member has recorded bookings or bills and cannot be deleted')
    db.session.delete(member)
    db.session.commit()
    logger.info('Staff member %s deleted', staff_id)
    return success_response(message='Staff member deleted successfully')

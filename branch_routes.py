import logging

from flask import Blueprint

from api_utils import apply_changes, get_or_404, parse_body, success_response
from auth import admin_required
from errors import ValidationFailed
from extensions import db
from models import Branch
from schemas import BranchCreate, BranchUpdate

logger = logging.getLogger(__name__)

branch_bp = Blueprint('branch', __name__, url_prefix='/api/branch')


@branch_bp.route('', methods=['GET'])
def list_branches():
    """List all branches"""
    branches = Branch.query.order_by(Branch.name).all()
    return success_response([branch.to_dict() for branch in branches])


@branch_bp.route('/<int:branch_id>', methods=['GET'])
def get_branch(branch_id):
    """Get a single branch"""
    return success_response(get_or_404(Branch, branch_id, 'branch').to_dict())


@branch_bp.route('', methods=['POST'])
def create_branch():
    """Create a branch"""
    data = parse_body(BranchCreate)
    branch = Branch(**data.model_dump())
    db.session.add(branch)
    db.session.commit()
    logger.info('Branch %s created', branch.name)
    return success_response(branch.to_dict(), 'Branch created successfully', 201)


@branch_bp.route('/<int:branch_id>', methods=['PUT'])
def update_branch(branch_id):
    """Partially update a branch"""
    branch = get_or_404(Branch, branch_id, 'branch')
    apply_changes(branch, parse_body(BranchUpdate).changes())
    db.session.commit()
    return success_response(branch.to_dict(), 'Branch updated successfully')


@branch_bp.route('/<int:branch_id>', methods=['DELETE'])
@admin_required
def delete_branch(branch_id):
    """Delete an unused branch (admin only)"""
    branch = get_or_404(Branch, branch_id, 'branch')
    dependents = (branch.rooms, branch.room_types, branch.staff, branch.services, branch.discounts)
    if any(relation.count() for relation in dependents):
        raise ValidationFailed('Branch still has records attached and cannot be deleted')
    db.session.delete(branch)
    db.session.commit()
    logger.info('Branch %s deleted', branch_id)
    return success_response(message='Branch deleted successfully')

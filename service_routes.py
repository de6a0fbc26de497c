"""
Chargeable services offered by a branch.
"""
import logging

from flask import Blueprint

from api_utils import apply_changes, get_or_404, parse_body, success_response
from errors import ValidationFailed
from extensions import db
from models import Branch, ChargeableService
from schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)

service_bp = Blueprint('services', __name__, url_prefix='/api/services')


@service_bp.route('', methods=['GET'])
def list_services():
    """List all chargeable services"""
    services = ChargeableService.query.order_by(ChargeableService.branch_id, ChargeableService.name).all()
    return success_response([service.to_dict() for service in services])


@service_bp.route('/<int:service_id>', methods=['GET'])
def get_service(service_id):
    """Get a single service"""
    return success_response(get_or_404(ChargeableService, service_id, 'service').to_dict())


@service_bp.route('/branch/<int:branch_id>', methods=['GET'])
def list_services_by_branch(branch_id):
    """List services of a branch"""
    get_or_404(Branch, branch_id, 'branch')
    services = ChargeableService.query.filter_by(branch_id=branch_id).order_by(ChargeableService.name).all()
    return success_response([service.to_dict() for service in services])


@service_bp.route('', methods=['POST'])
def create_service():
    """Create a chargeable service"""
    data = parse_body(ServiceCreate)
    get_or_404(Branch, data.branch_id, 'branch')
    service = ChargeableService(**data.model_dump())
    db.session.add(service)
    db.session.commit()
    logger.info('Service %s created in branch %s', service.name, service.branch_id)
    return success_response(service.to_dict(), 'Service created successfully', 201)


@service_bp.route('/<int:service_id>', methods=['PUT'])
def update_service(service_id):
    """Partially update a service"""
    # Price changes apply to new usage only; recorded usage keeps its copied unit price
    service = get_or_404(ChargeableService, service_id, 'service')
    apply_changes(service, parse_body(ServiceUpdate).changes())
    db.session.commit()
    return success_response(service.to_dict(), 'Service updated successfully')


@service_bp.route('/<int:service_id>', methods=['DELETE'])
def delete_service(service_id):
    """Delete a service that was never used"""
    service = get_or_404(ChargeableService, service_id, 'service')
    if service.usages.count():
        raise ValidationFailed('Service has recorded usage and cannot be deleted')
    db.session.delete(service)
    db.session.commit()
    logger.info('Service %s deleted', service_id)
    return success_response(message='Service deleted successfully')

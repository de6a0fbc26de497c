import logging

from flask import Blueprint

from api_utils import apply_changes, get_or_404, parse_body, parse_query, success_response
from billing_service import discount_options
from errors import ValidationFailed
from extensions import db
from models import Booking, Branch, Discount, FinalBill
from schemas import ApplicableDiscountQuery, DiscountCreate, DiscountUpdate, check_discount_rules
from utils import hotel_now

logger = logging.getLogger(__name__)

discount_bp = Blueprint('discount', __name__, url_prefix='/api/discount')


@discount_bp.route('', methods=['GET'])
def list_discounts():
    """List all discounts"""
    discounts = Discount.query.order_by(Discount.valid_from.desc(), Discount.id).all()
    return success_response([discount.to_dict() for discount in discounts])


@discount_bp.route('/<int:discount_id>', methods=['GET'])
def get_discount(discount_id):
    """Get a single discount"""
    return success_response(get_or_404(Discount, discount_id, 'discount').to_dict())


@discount_bp.route('/branch/<int:branch_id>', methods=['GET'])
def list_discounts_by_branch(branch_id):
    """List discounts of a branch"""
    get_or_404(Branch, branch_id, 'branch')
    discounts = (Discount.query.filter_by(branch_id=branch_id)
                 .order_by(Discount.valid_from.desc(), Discount.id).all())
    return success_response([discount.to_dict() for discount in discounts])


@discount_bp.route('/applicable', methods=['GET'])
def list_applicable_discounts():
    """Discounts a bill for the booking would accept today, best first"""
    query = parse_query(ApplicableDiscountQuery)
    booking = get_or_404(Booking, query.booking_id, 'booking')
    subtotal, options, best = discount_options(booking, hotel_now().date())
    options.sort(key=lambda option: (-option[1], option[0].id))
    return success_response({
        'bookingId': booking.id,
        'subtotal': float(subtotal),
        'bestDiscountId': best.id if best else None,
        'discounts': [dict(discount.to_dict(), discountAmount=float(amount))
                      for discount, amount in options],
    })


@discount_bp.route('', methods=['POST'])
def create_discount():
    """Create a discount"""
    data = parse_body(DiscountCreate)
    get_or_404(Branch, data.branch_id, 'branch')
    discount = Discount(**data.model_dump())
    db.session.add(discount)
    db.session.commit()
    logger.info('Discount %s created for branch %s', discount.name, discount.branch_id)
    return success_response(discount.to_dict(), 'Discount created successfully', 201)


@discount_bp.route('/<int:discount_id>', methods=['PUT'])
def update_discount(discount_id):
    """Partially update a discount"""
    discount = get_or_404(Discount, discount_id, 'discount')
    changes = parse_body(DiscountUpdate).changes()
    if 'branch_id' in changes:
        get_or_404(Branch, changes['branch_id'], 'branch')

    merged = {attr: changes.get(attr, getattr(discount, attr))
              for attr in ('discount_type', 'value', 'valid_from', 'valid_to')}
    try:
        check_discount_rules(**merged)
    except ValueError as e:
        raise ValidationFailed(str(e))

    apply_changes(discount, changes)
    db.session.commit()
    return success_response(discount.to_dict(), 'Discount updated successfully')


@discount_bp.route('/<int:discount_id>', methods=['DELETE'])
def delete_discount(discount_id):
    """Delete a discount no bill uses"""
    discount = get_or_404(Discount, discount_id, 'discount')
    if FinalBill.query.filter_by(discount_id=discount.id).count():
        raise ValidationFailed('Discount has been applied to bills and cannot be deleted')
    db.session.delete(discount)
    db.session.commit()
    logger.info('Discount %s deleted', discount_id)
    return success_response(message='Discount deleted successfully')

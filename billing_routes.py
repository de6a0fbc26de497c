"""
Final bills and the payments recorded against them.
"""
from flask import Blueprint
from flask_login import current_user

import billing_service
from api_utils import get_or_404, parse_body, success_response
from booking_service import ensure_checked_out
from errors import NotFound
from models import Booking, FinalBill, Payment
from schemas import FinalBillCreate, FinalBillUpdate, PaymentCreate, PaymentUpdate

final_bill_bp = Blueprint('final_bill', __name__, url_prefix='/api/final-bill')
payment_bp = Blueprint('payment', __name__, url_prefix='/api/payment')


def bill_details(bill):
    """Bill with its payments in the order they were recorded"""
    details = bill.to_dict()
    details['payments'] = [payment.to_dict() for payment in bill.payments]
    return details


# ============================================
# FINAL BILLS
# ============================================

@final_bill_bp.route('', methods=['GET'])
def list_final_bills():
    """List final bills, newest first"""
    bills = FinalBill.query.order_by(FinalBill.created_at.desc(), FinalBill.id.desc()).all()
    return success_response([bill.to_dict() for bill in bills])


@final_bill_bp.route('/<int:bill_id>', methods=['GET'])
def get_final_bill(bill_id):
    """Get a final bill with its payments"""
    return success_response(bill_details(get_or_404(FinalBill, bill_id, 'final bill')))


@final_bill_bp.route('/booking/<int:booking_id>', methods=['GET'])
def get_final_bill_by_booking(booking_id):
    """Get the final bill of a checked-out booking"""
    booking = get_or_404(Booking, booking_id, 'booking')
    ensure_checked_out(booking, 'Final bill')
    if booking.final_bill is None:
        raise NotFound(f'No final bill found for booking ID {booking_id}')
    return success_response(bill_details(booking.final_bill))


@final_bill_bp.route('', methods=['POST'])
def create_final_bill():
    """Issue the final bill for a checked-out booking"""
    data = parse_body(FinalBillCreate)
    bill = billing_service.create_final_bill(data.booking_id, data.user_id or current_user.id, data.discount_id)
    return success_response(bill_details(bill), 'Final bill created successfully', 201)


@final_bill_bp.route('/<int:bill_id>', methods=['PUT'])
def recalculate_final_bill(bill_id):
    """Recalculate charges and discount, keeping payments"""
    data = parse_body(FinalBillUpdate)
    bill = billing_service.recalculate_final_bill(bill_id, data.discount_id)
    return success_response(bill_details(bill), 'Final bill recalculated')


@final_bill_bp.route('/<int:bill_id>', methods=['DELETE'])
def delete_final_bill(bill_id):
    """Delete a final bill and its payments"""
    billing_service.delete_final_bill(bill_id)
    return success_response(message='Final bill deleted successfully')


# ============================================
# PAYMENTS
# ============================================

@payment_bp.route('', methods=['GET'])
def list_payments():
    """List payments, newest first"""
    payments = Payment.query.order_by(Payment.date_time.desc(), Payment.id.desc()).all()
    return success_response([payment.to_dict() for payment in payments])


@payment_bp.route('/<int:payment_id>', methods=['GET'])
def get_payment(payment_id):
    """Get a single payment"""
    return success_response(get_or_404(Payment, payment_id, 'payment').to_dict())


@payment_bp.route('/bill/<int:bill_id>', methods=['GET'])
def list_payments_by_bill(bill_id):
    """List payments recorded against a bill"""
    bill = get_or_404(FinalBill, bill_id, 'final bill')
    return success_response([payment.to_dict() for payment in bill.payments])


@payment_bp.route('', methods=['POST'])
def create_payment():
    """Record a payment and reconcile the bill"""
    payment = billing_service.record_payment(parse_body(PaymentCreate))
    return success_response({'payment': payment.to_dict(), 'bill': payment.bill.to_dict()},
                            'Payment recorded successfully', 201)


@payment_bp.route('/<int:payment_id>', methods=['PUT'])
def update_payment(payment_id):
    """Update a payment and reconcile the bill"""
    payment = billing_service.update_payment(payment_id, parse_body(PaymentUpdate))
    return success_response({'payment': payment.to_dict(), 'bill': payment.bill.to_dict()},
                            'Payment updated successfully')


@payment_bp.route('/<int:payment_id>', methods=['DELETE'])
def delete_payment(payment_id):
    """Delete a payment and reconcile the bill"""
    billing_service.delete_payment(payment_id)
    return success_response(message='Payment deleted successfully')

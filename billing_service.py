"""
Final bills, discounts and payments.

A bill is derived once from a checked-out booking:

    room_charges         daily rate x nights
    service_charges      sum of the booking's service usage totals
    tax_amount           TAX_RATE x (room_charges + service_charges)
    late_checkout_charge room type's late rate when the guest left after the cutoff
    discount_amount      best applicable discount, never more than the gross total
    total_amount         room + service + tax + late - discount

Payments are reconciled against the bill inside the same transaction:
paid_amount is always the sum of the payments and outstanding_amount the
remainder, which can never go below zero.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from api_utils import get_or_404
from booking_service import ensure_checked_out, lock_booking
from errors import NotFound, ValidationFailed
from extensions import db
from models import Discount, FinalBill, Payment, User
from utils import ZERO, hotel_now, money, to_hotel_time

logger = logging.getLogger(__name__)

BILL_EXISTS = 'Final bill for this booking already exists'
OVERPAID = 'Paid amount is larger than outstanding amount'


@dataclass(frozen=True)
class BillBreakdown:
    nights: int
    room_charges: Decimal
    service_charges: Decimal
    tax_amount: Decimal
    late_checkout_charge: Decimal
    discount_amount: Decimal = ZERO

    @property
    def subtotal(self):
        return self.room_charges + self.service_charges

    @property
    def total_amount(self):
        return money(self.subtotal + self.tax_amount + self.late_checkout_charge - self.discount_amount)


def discount_value(discount, subtotal):
    """Amount a discount takes off a bill with the given subtotal"""
    if discount.discount_type == 'percentage':
        return money(money(subtotal) * Decimal(str(discount.value)) / 100)
    return money(discount.value)


def compute_bill(daily_rate, nights, service_totals, tax_rate, late_checkout_charge=ZERO, discount=None):
    room_charges = money(money(daily_rate) * nights)
    service_charges = money(sum((money(total) for total in service_totals), ZERO))
    tax_amount = money((room_charges + service_charges) * Decimal(str(tax_rate)))
    late_checkout_charge = money(late_checkout_charge)

    discount_amount = ZERO
    if discount is not None:
        gross = room_charges + service_charges + tax_amount + late_checkout_charge
        discount_amount = min(discount_value(discount, room_charges + service_charges), gross)

    return BillBreakdown(
        nights=nights,
        room_charges=room_charges,
        service_charges=service_charges,
        tax_amount=tax_amount,
        late_checkout_charge=late_checkout_charge,
        discount_amount=discount_amount,
    )


def is_late_checkout(scheduled_check_out, actual_check_out, cutoff):
    """True when the guest left after the cutoff time on the scheduled check-out day"""
    if actual_check_out is None:
        return False
    return actual_check_out > datetime.combine(scheduled_check_out.date(), cutoff)


class DiscountEvaluator:
    """
    Picks the discount for a bill.

    A discount applies when it belongs to the booking's branch, ``as_of`` lies
    inside its validity window, and the subtotal reaches its minimum bill
    amount. Discounts never stack: the one worth the most wins, the oldest on
    a tie.
    """

    def __init__(self, branch_id, subtotal, as_of):
        self.branch_id = branch_id
        self.subtotal = money(subtotal)
        self.as_of = as_of

    def is_applicable(self, discount):
        if discount.branch_id != self.branch_id:
            return False
        if not discount.valid_from <= self.as_of <= discount.valid_to:
            return False
        return money(discount.min_bill_amount) <= self.subtotal

    def amount_for(self, discount):
        return discount_value(discount, self.subtotal)

    def applicable(self):
        candidates = (Discount.query
                      .filter(Discount.branch_id == self.branch_id,
                              Discount.valid_from <= self.as_of,
                              Discount.valid_to >= self.as_of)
                      .order_by(Discount.id)
                      .all())
        return [discount for discount in candidates if self.is_applicable(discount)]

    def best(self):
        candidates = self.applicable()
        if not candidates:
            return None
        return max(candidates, key=self.amount_for)

    def resolve(self, discount_id=None):
        """The requested discount if it applies, otherwise the best one"""
        if discount_id is None:
            return self.best()
        discount = get_or_404(Discount, discount_id, 'discount')
        if not self.is_applicable(discount):
            logger.warning('Discount %s rejected for branch %s, subtotal %s on %s',
                           discount.id, self.branch_id, self.subtotal, self.as_of)
            raise ValidationFailed(f'Discount {discount.name} is not applicable to this booking')
        return discount


# ============================================
# FINAL BILLS
# ============================================

def price_booking(booking, as_of, discount_id=None):
    """Breakdown and chosen discount for a checked-out booking"""
    room_type = booking.room.room_type
    config = current_app.config
    late_charge = ZERO
    if is_late_checkout(booking.check_out, booking.actual_check_out, config['LATE_CHECKOUT_CUTOFF']):
        late_charge = room_type.late_checkout_rate

    args = (room_type.daily_rate, booking.nights,
            [usage.total_price for usage in booking.service_usages],
            config['TAX_RATE'], late_charge)
    charges = compute_bill(*args)
    discount = DiscountEvaluator(booking.room.branch_id, charges.subtotal, as_of).resolve(discount_id)
    if discount is not None:
        charges = compute_bill(*args, discount=discount)
    return charges, discount


def _apply_charges(bill, charges, discount):
    bill.room_charges = charges.room_charges
    bill.service_charges = charges.service_charges
    bill.tax_amount = charges.tax_amount
    bill.late_checkout_charge = charges.late_checkout_charge
    bill.discount_amount = charges.discount_amount
    bill.discount_id = discount.id if discount else None
    bill.total_amount = charges.total_amount


def create_final_bill(booking_id, user_id, discount_id=None):
    booking = lock_booking(booking_id)
    get_or_404(User, user_id, 'user')
    ensure_checked_out(booking, 'Final bill')
    if booking.final_bill is not None:
        raise ValidationFailed(BILL_EXISTS)

    now = hotel_now()
    charges, discount = price_booking(booking, now.date(), discount_id)
    bill = FinalBill(booking_id=booking.id, user_id=user_id, created_at=now, updated_at=now)
    _apply_charges(bill, charges, discount)
    bill.paid_amount = ZERO
    bill.outstanding_amount = bill.total_amount
    db.session.add(bill)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning('Concurrent final bill creation for booking %s', booking_id)
        raise ValidationFailed(BILL_EXISTS)

    logger.info('Final bill %s issued for booking %s: total %s', bill.id, booking.id, bill.total_amount)
    return bill


def lock_bill(bill_id):
    bill = db.session.query(FinalBill).filter_by(id=bill_id).with_for_update().first()
    if bill is None:
        raise NotFound.for_id('final bill', bill_id)
    return bill


def recalculate_final_bill(bill_id, discount_id=None):
    bill = lock_bill(bill_id)
    booking = bill.booking
    as_of = bill.created_at.date() if bill.created_at else hotel_now().date()
    charges, discount = price_booking(booking, as_of, discount_id)
    if charges.total_amount < money(bill.paid_amount):
        raise ValidationFailed('Recalculated total is less than the amount already paid')

    _apply_charges(bill, charges, discount)
    reconcile(bill)
    db.session.commit()
    logger.info('Final bill %s recalculated: total %s', bill.id, bill.total_amount)
    return bill


def delete_final_bill(bill_id):
    bill = lock_bill(bill_id)
    db.session.delete(bill)
    db.session.commit()
    logger.info('Final bill %s deleted', bill_id)


# ============================================
# PAYMENTS
# ============================================

def reconcile(bill):
    """Recompute paid and outstanding amounts from the bill's payments"""
    paid = money(sum((money(payment.paid_amount) for payment in bill.payments), ZERO))
    bill.paid_amount = paid
    bill.outstanding_amount = money(bill.total_amount) - paid
    bill.updated_at = hotel_now()


def _ensure_within_total(bill, other_payments, amount):
    if other_payments + amount > money(bill.total_amount):
        logger.warning('Overpayment rejected on bill %s: %s', bill.id, amount)
        raise ValidationFailed(OVERPAID)


def record_payment(data):
    bill = lock_bill(data.bill_id)
    ensure_checked_out(bill.booking, 'Payment')
    amount = money(data.paid_amount)
    _ensure_within_total(bill, money(bill.paid_amount), amount)

    payment = Payment(
        paid_method=data.paid_method,
        paid_amount=amount,
        date_time=to_hotel_time(data.date_time) or hotel_now(),
    )
    bill.payments.append(payment)
    reconcile(bill)
    db.session.commit()

    logger.info('Payment %s of %s recorded on bill %s, outstanding %s',
                payment.id, amount, bill.id, bill.outstanding_amount)
    return payment


def update_payment(payment_id, data):
    payment = get_or_404(Payment, payment_id, 'payment')
    bill = lock_bill(payment.bill_id)
    changes = data.changes()
    if not changes:
        raise ValidationFailed('No fields provided to update')

    if 'paid_amount' in changes:
        amount = money(changes['paid_amount'])
        others = money(bill.paid_amount) - money(payment.paid_amount)
        _ensure_within_total(bill, others, amount)
        payment.paid_amount = amount
    if 'paid_method' in changes:
        payment.paid_method = changes['paid_method']
    if 'date_time' in changes:
        payment.date_time = to_hotel_time(changes['date_time'])

    reconcile(bill)
    db.session.commit()
    logger.info('Payment %s updated on bill %s, outstanding %s', payment.id, bill.id, bill.outstanding_amount)
    return payment


def delete_payment(payment_id):
    payment = get_or_404(Payment, payment_id, 'payment')
    bill = lock_bill(payment.bill_id)
    bill.payments.remove(payment)
    reconcile(bill)
    db.session.commit()
    logger.info('Payment %s removed from bill %s, outstanding %s', payment_id, bill.id, bill.outstanding_amount)


def discount_options(booking, as_of):
    """Subtotal, every applicable discount with its amount, and the one a bill would use"""
    charges, best = price_booking(booking, as_of)
    evaluator = DiscountEvaluator(booking.room.branch_id, charges.subtotal, as_of)
    options = [(discount, evaluator.amount_for(discount)) for discount in evaluator.applicable()]
    return charges.subtotal, options, best

from datetime import date, datetime, time
from decimal import Decimal
from types import SimpleNamespace

import pytest

from billing_service import DiscountEvaluator, compute_bill, discount_value, is_late_checkout
from extensions import db
from models import Discount
from utils import count_nights, money


def make_discount(discount_type, value, branch_id=1, min_bill_amount=None,
                  valid_from=date(2025, 1, 1), valid_to=date(2025, 12, 31), discount_id=1):
    return SimpleNamespace(id=discount_id, branch_id=branch_id, discount_type=discount_type,
                           value=Decimal(value), min_bill_amount=min_bill_amount,
                           valid_from=valid_from, valid_to=valid_to)


def test_money_rounds_half_up():
    assert money('2.345') == Decimal('2.35')
    assert money(None) == Decimal('0.00')
    assert money(15) == Decimal('15.00')


@pytest.mark.parametrize('check_in, check_out, nights', [
    (datetime(2025, 1, 10, 14), datetime(2025, 1, 12, 11), 2),
    (datetime(2025, 1, 10, 14), datetime(2025, 1, 12, 15), 3),
    (datetime(2025, 1, 10, 14), datetime(2025, 1, 10, 18), 1),
    (datetime(2025, 1, 10), datetime(2025, 1, 13), 3),
])
def test_count_nights_rounds_partial_days_up(check_in, check_out, nights):
    assert count_nights(check_in, check_out) == nights


def test_compute_bill_without_discount():
    charges = compute_bill(Decimal('100.00'), 2, [Decimal('30.00')], 0.10)

    assert charges.room_charges == Decimal('200.00')
    assert charges.service_charges == Decimal('30.00')
    assert charges.tax_amount == Decimal('23.00')
    assert charges.late_checkout_charge == Decimal('0.00')
    assert charges.discount_amount == Decimal('0.00')
    assert charges.total_amount == Decimal('253.00')


def test_service_charges_are_the_sum_of_usage_totals():
    totals = [Decimal('15.00'), Decimal('8.50'), Decimal('120.25')]
    charges = compute_bill(Decimal('80.00'), 1, totals, 0)
    assert charges.service_charges == sum(totals)


def test_total_identity_holds_with_every_component():
    discount = make_discount('percentage', '10')
    charges = compute_bill(Decimal('120.00'), 3, [Decimal('45.00')], 0.10,
                           late_checkout_charge=Decimal('25.00'), discount=discount)

    assert charges.room_charges == Decimal('360.00')
    assert charges.tax_amount == Decimal('40.50')
    assert charges.discount_amount == Decimal('40.50')
    assert charges.total_amount == (charges.room_charges + charges.service_charges + charges.tax_amount
                                    + charges.late_checkout_charge - charges.discount_amount)


def test_discount_cannot_make_total_negative():
    charges = compute_bill(Decimal('50.00'), 1, [], 0, discount=make_discount('fixed', '500'))
    assert charges.discount_amount == Decimal('50.00')
    assert charges.total_amount == Decimal('0.00')


def test_discount_value_by_type():
    assert discount_value(make_discount('fixed', '20'), Decimal('230')) == Decimal('20.00')
    assert discount_value(make_discount('percentage', '15'), Decimal('230')) == Decimal('34.50')


@pytest.mark.parametrize('actual, late', [
    (datetime(2025, 1, 12, 11, 59), False),
    (datetime(2025, 1, 12, 12, 0), False),
    (datetime(2025, 1, 12, 12, 1), True),
    (datetime(2025, 1, 13, 9, 0), True),
    (None, False),
])
def test_late_checkout_is_judged_against_the_cutoff_on_the_scheduled_day(actual, late):
    assert is_late_checkout(datetime(2025, 1, 12, 11), actual, time(12, 0)) is late


def test_evaluator_checks_branch_window_and_minimum():
    evaluator = DiscountEvaluator(1, Decimal('150.00'), date(2025, 6, 1))

    assert evaluator.is_applicable(make_discount('fixed', '10'))
    assert not evaluator.is_applicable(make_discount('fixed', '10', branch_id=2))
    assert not evaluator.is_applicable(make_discount('fixed', '10', valid_to=date(2025, 5, 31)))
    assert not evaluator.is_applicable(make_discount('fixed', '10', min_bill_amount=Decimal('200')))
    assert evaluator.is_applicable(make_discount('fixed', '10', min_bill_amount=Decimal('150')))


def test_evaluator_picks_single_highest_discount(app, seed):
    with app.app_context():
        for name, discount_type, value in [('Flat 20', 'fixed', '20'), ('Ten percent', 'percentage', '10'),
                                           ('Flat 30', 'fixed', '30'), ('Also 30', 'fixed', '30')]:
            db.session.add(Discount(branch_id=seed.branch_id, name=name, discount_type=discount_type,
                                    value=Decimal(value), valid_from=date(2025, 1, 1), valid_to=date(2025, 12, 31)))
        db.session.commit()

        evaluator = DiscountEvaluator(seed.branch_id, Decimal('250.00'), date(2025, 3, 1))
        best = evaluator.best()
        assert best.name == 'Flat 30'
        assert evaluator.amount_for(best) == Decimal('30.00')
        assert len(evaluator.applicable()) == 4

        # Percentage overtakes the fixed amounts on a larger bill
        assert DiscountEvaluator(seed.branch_id, Decimal('500.00'), date(2025, 3, 1)).best().name == 'Ten percent'
        assert DiscountEvaluator(seed.branch_id, Decimal('500.00'), date(2026, 3, 1)).best() is None

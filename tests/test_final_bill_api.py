"""
Final bill creation, recalculation and payment reconciliation through the API.
"""
import pytest


def create_bill(api, booking_id, **extra):
    response = api.post('/api/final-bill', json={'bookingId': booking_id, **extra})
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']


def pay(api, bill_id, amount, method='Cash'):
    return api.post('/api/payment', json={'billId': bill_id, 'paidMethod': method, 'paidAmount': amount})


def assert_bill_identity(bill):
    total = (bill['roomCharges'] + bill['serviceCharges'] + bill['taxAmount']
             + bill['lateCheckoutCharge'] - bill['discountAmount'])
    assert bill['totalAmount'] == pytest.approx(total)
    assert bill['outstandingAmount'] == pytest.approx(bill['totalAmount'] - bill['paidAmount'])


def test_bill_includes_service_charges(api, seed, checked_out_booking):
    bill = create_bill(api, checked_out_booking)

    assert bill['bookingId'] == checked_out_booking
    assert bill['userId'] == seed.manager_user_id
    assert bill['roomCharges'] == 200.0
    assert bill['serviceCharges'] == 30.0
    assert bill['taxAmount'] == 23.0
    assert bill['lateCheckoutCharge'] == 0.0
    assert bill['discountAmount'] == 0.0
    assert bill['totalAmount'] == 253.0
    assert bill['paidAmount'] == 0.0
    assert bill['outstandingAmount'] == 253.0
    assert bill['paymentStatus'] == 'Unpaid'
    assert bill['payments'] == []
    assert_bill_identity(bill)


def test_one_bill_per_booking(api, checked_out_booking):
    create_bill(api, checked_out_booking)
    response = api.post('/api/final-bill', json={'bookingId': checked_out_booking})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Final bill for this booking already exists'


def test_bill_requires_checked_out_booking(api, make_booking):
    booking_id = make_booking()['bookingId']
    response = api.post('/api/final-bill', json={'bookingId': booking_id})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Final bill is only available for checked-out bookings'

    response = api.get(f'/api/final-bill/booking/{booking_id}')
    assert response.status_code == 400


def test_bill_for_missing_booking(api):
    response = api.post('/api/final-bill', json={'bookingId': 4242})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'No booking found with ID 4242'


def test_late_checkout_adds_the_room_type_fee(api, make_booking):
    booking_id = make_booking()['bookingId']
    api.post(f'/api/booking/{booking_id}/check-in', json={'checkedInAt': '2025-01-10T14:05:00'})
    api.post(f'/api/booking/{booking_id}/check-out', json={'checkedOutAt': '2025-01-12T13:15:00'})

    bill = create_bill(api, booking_id)
    assert bill['lateCheckoutCharge'] == 25.0
    assert bill['totalAmount'] == 245.0
    assert_bill_identity(bill)


def test_best_discount_is_applied(api, seed, checked_out_booking):
    for name, discount_type, value in [('Flat 10', 'fixed', 10), ('Five percent', 'percentage', 5)]:
        api.post('/api/discount', json={'branchId': seed.branch_id, 'discountName': name,
                                        'discountType': discount_type, 'discountValue': value,
                                        'validFrom': '2020-01-01', 'validTo': '2099-12-31'})

    bill = create_bill(api, checked_out_booking)
    assert bill['discountAmount'] == 11.5
    assert bill['totalAmount'] == 241.5
    assert_bill_identity(bill)


def test_requested_discount_must_apply(api, seed, checked_out_booking):
    discount = api.post('/api/discount', json={'branchId': seed.branch_id, 'discountName': 'Big Spender',
                                               'discountType': 'fixed', 'discountValue': 100,
                                               'minBillAmount': 1000,
                                               'validFrom': '2020-01-01', 'validTo': '2099-12-31'})
    discount_id = discount.get_json()['data']['discountId']

    response = api.post('/api/final-bill', json={'bookingId': checked_out_booking, 'discountId': discount_id})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Discount Big Spender is not applicable to this booking'


def test_payments_reconcile_the_outstanding_amount(api, app, make_booking):
    app.config['TAX_RATE'] = 0
    booking_id = make_booking()['bookingId']
    api.post(f'/api/booking/{booking_id}/check-in', json={'checkedInAt': '2025-01-10T14:05:00'})
    api.post(f'/api/booking/{booking_id}/check-out', json={'checkedOutAt': '2025-01-12T10:00:00'})
    bill = create_bill(api, booking_id)
    assert bill['totalAmount'] == 200.0

    response = pay(api, bill['billId'], 50.00)
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['bill']['outstandingAmount'] == 150.0
    assert data['bill']['paymentStatus'] == 'Partially Paid'

    response = pay(api, bill['billId'], 150.00, 'Card')
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['bill']['paidAmount'] == 200.0
    assert data['bill']['outstandingAmount'] == 0.0
    assert data['bill']['paymentStatus'] == 'Paid'

    payments = api.get(f"/api/payment/bill/{bill['billId']}").get_json()['data']
    assert [payment['paidAmount'] for payment in payments] == [50.0, 150.0]


def test_overpayment_is_rejected(api, checked_out_booking):
    bill = create_bill(api, checked_out_booking)
    assert pay(api, bill['billId'], 200).status_code == 201

    response = pay(api, bill['billId'], 60)
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Paid amount is larger than outstanding amount'

    bill = api.get(f"/api/final-bill/{bill['billId']}").get_json()['data']
    assert bill['paidAmount'] == 200.0
    assert bill['outstandingAmount'] == 53.0
    assert len(bill['payments']) == 1


def test_update_and_delete_payment(api, checked_out_booking):
    bill = create_bill(api, checked_out_booking)
    payment = pay(api, bill['billId'], 100).get_json()['data']['payment']

    response = api.put(f"/api/payment/{payment['paymentId']}", json={'paidAmount': 253})
    assert response.status_code == 200
    assert response.get_json()['data']['bill']['outstandingAmount'] == 0.0

    response = api.put(f"/api/payment/{payment['paymentId']}", json={'paidAmount': 300})
    assert response.status_code == 400

    response = api.delete(f"/api/payment/{payment['paymentId']}")
    assert response.status_code == 200
    bill = api.get(f"/api/final-bill/{bill['billId']}").get_json()['data']
    assert bill['paidAmount'] == 0.0
    assert bill['outstandingAmount'] == 253.0
    assert_bill_identity(bill)


def test_payment_for_missing_bill(api):
    response = pay(api, 999, 10)
    assert response.status_code == 400
    assert response.get_json()['message'] == 'No final bill found with ID 999'


def test_invalid_payment_method(api, checked_out_booking):
    bill = create_bill(api, checked_out_booking)
    response = pay(api, bill['billId'], 10, 'Cheque')
    assert response.status_code == 400
    assert response.get_json()['errors'][0]['field'] == 'paidMethod'


def test_service_usage_is_frozen_once_billed(api, seed, checked_out_booking):
    create_bill(api, checked_out_booking)
    response = api.post('/api/service-usage', json={'bookingId': checked_out_booking,
                                                    'serviceId': seed.service_id, 'quantity': 1})
    assert response.status_code == 400


def test_recalculate_keeps_payments(api, seed, checked_out_booking):
    bill = create_bill(api, checked_out_booking)
    pay(api, bill['billId'], 100)
    api.post('/api/discount', json={'branchId': seed.branch_id, 'discountName': 'Loyalty',
                                    'discountType': 'fixed', 'discountValue': 20,
                                    'validFrom': '2020-01-01', 'validTo': '2099-12-31'})

    response = api.put(f"/api/final-bill/{bill['billId']}", json={})
    assert response.status_code == 200
    bill = response.get_json()['data']
    assert bill['discountAmount'] == 20.0
    assert bill['totalAmount'] == 233.0
    assert bill['paidAmount'] == 100.0
    assert bill['outstandingAmount'] == 133.0
    assert_bill_identity(bill)


def test_bill_lookup_by_booking_and_delete(api, checked_out_booking):
    bill = create_bill(api, checked_out_booking)
    pay(api, bill['billId'], 20)

    response = api.get(f'/api/final-bill/booking/{checked_out_booking}')
    assert response.status_code == 200
    assert response.get_json()['data']['billId'] == bill['billId']

    assert api.delete(f"/api/final-bill/{bill['billId']}").status_code == 200
    assert api.get('/api/payment').get_json()['data'] == []
    response = api.get(f'/api/final-bill/booking/{checked_out_booking}')
    assert response.get_json()['message'] == f'No final bill found for booking ID {checked_out_booking}'

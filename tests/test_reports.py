"""
Report endpoints over one billed stay in room 102 and one reservation in room 101.
"""
import pytest

DAY = {'startDate': '2025-01-11', 'endDate': '2025-01-11'}


@pytest.fixture
def billed(api, make_booking, checked_out_booking):
    reserved = make_booking(room_index=0)
    bill = api.post('/api/final-bill', json={'bookingId': checked_out_booking}).get_json()['data']
    api.post('/api/payment', json={'billId': bill['billId'], 'paidMethod': 'Card', 'paidAmount': 100})
    return {'bill': bill, 'stay': checked_out_booking, 'reserved': reserved['bookingId']}


def test_monthly_revenue(api, seed, billed):
    rows = api.get('/api/monthly-revenue').get_json()['data']
    assert len(rows) == 1
    row = rows[0]
    assert row['branchId'] == seed.branch_id
    assert row['branchName'] == 'Colombo Central'
    assert row['totalBookings'] == 1
    assert row['uniqueGuests'] == 1
    assert row['totalRoomCharges'] == 200.0
    assert row['totalServiceCharges'] == 30.0
    assert row['totalTax'] == 23.0
    assert row['grossRevenue'] == 253.0
    assert row['totalPaid'] == 100.0
    assert row['outstandingRevenue'] == 153.0
    assert row['paymentCollectionRate'] == pytest.approx(39.53)

    assert api.get('/api/monthly-revenue', query_string={'monthYear': '2020-01'}).get_json()['data'] == []
    assert api.get('/api/monthly-revenue', query_string={'city': 'kandy'}).get_json()['data'] == []


def test_monthly_revenue_rejects_bad_month(api, seed):
    response = api.get('/api/monthly-revenue', query_string={'monthYear': '2025-13'})
    assert response.status_code == 400


def test_room_occupancy_for_a_day(api, seed, billed):
    rows = api.get('/api/room-occupancy', query_string=DAY).get_json()['data']
    by_number = {row['roomNumber']: row for row in rows}
    assert list(by_number) == ['101', '102']

    assert by_number['101']['occupancyStatus'] == 'Reserved'
    assert by_number['101']['bookingId'] == billed['reserved']
    assert by_number['102']['occupancyStatus'] == 'Occupied'
    assert by_number['102']['bookingStatus'] == 'Checked-Out'
    assert by_number['102']['guestName'] == 'Nimal Perera'
    assert by_number['102']['totalAmount'] == 253.0

    reserved = api.get('/api/room-occupancy', query_string={**DAY, 'occupancyStatus': 'Reserved'})
    assert [row['roomNumber'] for row in reserved.get_json()['data']] == ['101']


def test_room_occupancy_with_only_an_end_date(api, seed, billed):
    rows = api.get('/api/room-occupancy', query_string={'endDate': '2025-01-11'}).get_json()['data']
    assert {row['roomNumber']: row['occupancyStatus'] for row in rows} == {'101': 'Reserved', '102': 'Occupied'}


def test_room_occupancy_outside_any_stay(api, seed, billed):
    rows = api.get('/api/room-occupancy',
                   query_string={'startDate': '2025-02-01', 'endDate': '2025-02-01'}).get_json()['data']
    assert {row['occupancyStatus'] for row in rows} == {'Available'}
    assert all(row['bookingId'] is None for row in rows)


def test_room_occupancy_summary(api, seed, billed):
    summary = api.get('/api/room-occupancy/summary', query_string=DAY).get_json()['data']
    assert summary == {
        'totalRooms': 2,
        'occupiedRooms': 1,
        'reservedRooms': 1,
        'availableRooms': 0,
        'maintenanceRooms': 0,
        'occupancyRate': 50.0,
        'totalRevenue': 453.0,
    }


def test_inverted_date_range_is_rejected(api, seed):
    response = api.get('/api/room-occupancy', query_string={'startDate': '2025-01-12', 'endDate': '2025-01-11'})
    assert response.status_code == 400


def test_guest_billing(api, seed, billed):
    rows = api.get('/api/guest-billing').get_json()['data']
    assert len(rows) == 1
    row = rows[0]
    assert row['billId'] == billed['bill']['billId']
    assert row['guestName'] == 'Nimal Perera'
    assert row['roomNumber'] == '102'
    assert row['totalAmount'] == 253.0
    assert row['paidAmount'] == 100.0
    assert row['outstandingAmount'] == 153.0
    assert row['paymentStatus'] == 'Partially Paid'

    paid = api.get('/api/guest-billing', query_string={'paymentStatus': 'Paid'}).get_json()['data']
    assert paid == []
    owing = api.get('/api/guest-billing', query_string={'minOutstanding': 150}).get_json()['data']
    assert len(owing) == 1


def test_guest_billing_summary(api, seed, billed):
    summary = api.get('/api/guest-billing/summary').get_json()['data']
    assert summary['totalGuests'] == 1
    assert summary['totalBills'] == 1
    assert summary['totalBilled'] == 253.0
    assert summary['totalPaid'] == 100.0
    assert summary['totalOutstanding'] == 153.0
    assert summary['guestsWithUnpaid'] == 1
    assert summary['averageBillAmount'] == 253.0


def test_service_usage_breakdown(api, seed, billed):
    rows = api.get('/api/service-usage-breakdown').get_json()['data']
    assert len(rows) == 1
    row = rows[0]
    assert row['bookingId'] == billed['stay']
    assert row['serviceName'] == 'Room Service'
    assert row['quantity'] == 2
    assert row['unitPrice'] == 15.0
    assert row['totalPrice'] == 30.0

    later = api.get('/api/service-usage-breakdown', query_string={'startDate': '2025-01-12'}).get_json()['data']
    assert later == []


def test_top_services_trends(api, seed, billed):
    rows = api.get('/api/top-services-trends').get_json()['data']
    assert [(row['rank'], row['serviceName']) for row in rows] == [(1, 'Room Service')]
    assert rows[0]['totalRevenue'] == 30.0
    assert rows[0]['bookingsUsingService'] == 1
    assert rows[0]['avgQuantityPerUsage'] == 2.0

    assert api.get('/api/top-services-trends', query_string={'minBookings': 2}).get_json()['data'] == []


def test_service_usage_summary(api, seed, billed):
    summary = api.get('/api/service-usage-summary').get_json()['data']
    assert summary['totalServices'] == 1
    assert summary['totalUsageRecords'] == 1
    assert summary['totalRevenue'] == 30.0
    assert summary['uniqueGuests'] == 1
    assert summary['mostUsedService'] == 'Room Service'
    assert summary['highestRevenueService'] == 'Room Service'


def test_reports_on_an_empty_hotel(api, seed):
    assert api.get('/api/monthly-revenue').get_json()['data'] == []
    summary = api.get('/api/service-usage-summary').get_json()['data']
    assert summary['totalServices'] == 0
    assert summary['mostUsedService'] is None
    assert api.get('/api/guest-billing/summary').get_json()['data']['averageBillAmount'] == 0.0

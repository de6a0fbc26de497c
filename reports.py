"""
Management reports.

Each report runs one filtered SQLAlchemy query and aggregates the rows in
Python, so the same code serves SQLite in tests and PostgreSQL in production.
Every function takes a validated filter schema and returns JSON-ready data.
"""
from collections import defaultdict
from datetime import datetime, time, timedelta
from decimal import Decimal

from extensions import db
from models import Booking, Branch, ChargeableService, FinalBill, Guest, Room, RoomType, ServiceUsage, serialize_value
from query_filters import FilterSpec, apply_filters
from utils import ZERO, hotel_now, money


def _percent(part, whole):
    if not whole:
        return 0.0
    return float(round(Decimal(part) * 100 / Decimal(whole), 2))


def _average(total, count):
    if not count:
        return 0.0
    return float(money(Decimal(total) / count))


def _serialize(row):
    return {key: serialize_value(value) for key, value in row.items()}


# ============================================
# MONTHLY REVENUE
# ============================================

REVENUE_FILTERS = (
    FilterSpec('branch_id', Room.branch_id),
    FilterSpec('city', Branch.city, 'iexact'),
    FilterSpec('start_date', FinalBill.created_at, 'from_day'),
    FilterSpec('end_date', FinalBill.created_at, 'to_day'),
)


def monthly_revenue(filters):
    query = (db.session.query(FinalBill, Booking, Branch)
             .join(Booking, FinalBill.booking_id == Booking.id)
             .join(Room, Booking.room_id == Room.id)
             .join(Branch, Room.branch_id == Branch.id))
    query = apply_filters(query, REVENUE_FILTERS, filters.model_dump())
    if filters.month_year:
        year, month = (int(part) for part in filters.month_year.split('-'))
        first = datetime(year, month, 1)
        following = datetime(year + month // 12, month % 12 + 1, 1)
        query = query.filter(FinalBill.created_at >= first, FinalBill.created_at < following)

    groups = {}
    for bill, booking, branch in query.all():
        key = (branch.id, bill.created_at.strftime('%Y-%m'))
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                'branch': branch, 'bookings': set(), 'guests': set(),
                'room': ZERO, 'service': ZERO, 'tax': ZERO, 'discount': ZERO,
                'late': ZERO, 'gross': ZERO, 'paid': ZERO, 'outstanding': ZERO,
            }
        group['bookings'].add(booking.id)
        group['guests'].add(booking.guest_id)
        group['room'] += money(bill.room_charges)
        group['service'] += money(bill.service_charges)
        group['tax'] += money(bill.tax_amount)
        group['discount'] += money(bill.discount_amount)
        group['late'] += money(bill.late_checkout_charge)
        group['gross'] += money(bill.total_amount)
        group['paid'] += money(bill.paid_amount)
        group['outstanding'] += money(bill.outstanding_amount)

    rows = []
    for (branch_id, month_year), group in groups.items():
        rows.append(_serialize({
            'branchId': branch_id,
            'branchName': group['branch'].name,
            'city': group['branch'].city,
            'monthYear': month_year,
            'totalBookings': len(group['bookings']),
            'uniqueGuests': len(group['guests']),
            'totalRoomCharges': group['room'],
            'totalServiceCharges': group['service'],
            'totalTax': group['tax'],
            'totalDiscounts': group['discount'],
            'lateCheckoutCharges': group['late'],
            'grossRevenue': group['gross'],
            'totalPaid': group['paid'],
            'outstandingRevenue': group['outstanding'],
            'paymentCollectionRate': _percent(group['paid'], group['gross']),
        }))
    rows.sort(key=lambda row: row['branchName'])
    rows.sort(key=lambda row: row['monthYear'], reverse=True)
    return rows


# ============================================
# ROOM OCCUPANCY
# ============================================

ROOM_FILTERS = (
    FilterSpec('branch_id', Room.branch_id),
    FilterSpec('room_type', RoomType.name, 'iexact'),
    FilterSpec('room_status', Room.room_status),
    FilterSpec('city', Branch.city, 'iexact'),
)

# Which booking describes a room when several overlap the window
BOOKING_PRECEDENCE = {'Checked-In': 0, 'Booked': 1, 'Checked-Out': 2}


def _occupancy_status(room, booking):
    if room.room_status == 'Maintenance':
        return 'Maintenance'
    if booking is None:
        return 'Available'
    if booking.status == 'Booked':
        return 'Reserved'
    return 'Occupied'


def room_occupancy(filters):
    """One row per room with the booking that holds it during the window (default: today)"""
    start = filters.start_date or filters.end_date or hotel_now().date()
    end = filters.end_date or start
    window_start = datetime.combine(start, time.min)
    window_end = datetime.combine(end + timedelta(days=1), time.min)

    rooms = (db.session.query(Room)
             .join(RoomType, Room.room_type_id == RoomType.id)
             .join(Branch, Room.branch_id == Branch.id))
    rooms = apply_filters(rooms, ROOM_FILTERS, filters.model_dump())
    rooms = rooms.order_by(Branch.name, Room.room_number).all()

    holding = defaultdict(list)
    overlapping = Booking.query.filter(
        Booking.status.in_(tuple(BOOKING_PRECEDENCE)),
        Booking.check_in < window_end,
        Booking.check_out > window_start,
        Booking.room_id.in_([room.id for room in rooms]),
    )
    for booking in overlapping:
        holding[booking.room_id].append(booking)

    rows = []
    for room in rooms:
        bookings = sorted(holding[room.id], key=lambda b: (BOOKING_PRECEDENCE[b.status], b.check_in))
        booking = bookings[0] if bookings else None
        guest = booking.guest if booking else None
        row = {
            'roomId': room.id,
            'roomNumber': room.room_number,
            'roomType': room.room_type_name,
            'branchId': room.branch_id,
            'branchName': room.branch.name,
            'city': room.branch.city,
            'roomStatus': room.room_status,
            'dailyRate': room.daily_rate,
            'occupancyStatus': _occupancy_status(room, booking),
            'bookingId': booking.id if booking else None,
            'bookingStatus': booking.status if booking else None,
            'guestId': guest.id if guest else None,
            'guestName': guest.name if guest else None,
            'checkIn': booking.check_in if booking else None,
            'checkOut': booking.check_out if booking else None,
            'nights': booking.nights if booking else None,
            'totalAmount': booking.total_amount if booking else None,
        }
        if filters.occupancy_status and row['occupancyStatus'] != filters.occupancy_status:
            continue
        if filters.booking_status and row['bookingStatus'] != filters.booking_status:
            continue
        if filters.guest_name and filters.guest_name.lower() not in (row['guestName'] or '').lower():
            continue
        rows.append(_serialize(row))
    return rows


def room_occupancy_summary(filters):
    rows = room_occupancy(filters)
    counts = defaultdict(int)
    for row in rows:
        counts[row['occupancyStatus']] += 1
    revenue = sum((money(row['totalAmount']) for row in rows if row['totalAmount'] is not None), ZERO)
    total = len(rows)
    return {
        'totalRooms': total,
        'occupiedRooms': counts['Occupied'],
        'reservedRooms': counts['Reserved'],
        'availableRooms': counts['Available'],
        'maintenanceRooms': counts['Maintenance'],
        'occupancyRate': _percent(counts['Occupied'], total),
        'totalRevenue': float(revenue),
    }


# ============================================
# GUEST BILLING
# ============================================

GUEST_BILLING_FILTERS = (
    FilterSpec('guest_id', Booking.guest_id),
    FilterSpec('guest_name', Guest.name, 'contains'),
    FilterSpec('branch_id', Room.branch_id),
    FilterSpec('booking_status', Booking.status),
    FilterSpec('min_outstanding', FinalBill.outstanding_amount, 'ge'),
    FilterSpec('max_outstanding', FinalBill.outstanding_amount, 'le'),
    FilterSpec('start_date', FinalBill.created_at, 'from_day'),
    FilterSpec('end_date', FinalBill.created_at, 'to_day'),
)


def guest_billing(filters):
    query = (db.session.query(FinalBill, Booking, Guest, Room)
             .join(Booking, FinalBill.booking_id == Booking.id)
             .join(Guest, Booking.guest_id == Guest.id)
             .join(Room, Booking.room_id == Room.id))
    query = apply_filters(query, GUEST_BILLING_FILTERS, filters.model_dump())
    query = query.order_by(FinalBill.created_at.desc(), FinalBill.id.desc())

    rows = []
    for bill, booking, guest, room in query.all():
        if filters.payment_status and bill.payment_status != filters.payment_status:
            continue
        rows.append(_serialize({
            'billId': bill.id,
            'bookingId': booking.id,
            'guestId': guest.id,
            'guestName': guest.name,
            'guestEmail': guest.email,
            'guestContactNo': guest.contact_no,
            'roomNumber': room.room_number,
            'roomType': room.room_type_name,
            'branchName': room.branch.name,
            'checkIn': booking.check_in,
            'checkOut': booking.check_out,
            'bookingStatus': booking.status,
            'roomCharges': bill.room_charges,
            'serviceCharges': bill.service_charges,
            'taxAmount': bill.tax_amount,
            'discountAmount': bill.discount_amount,
            'lateCheckoutCharge': bill.late_checkout_charge,
            'totalAmount': bill.total_amount,
            'paidAmount': bill.paid_amount,
            'outstandingAmount': bill.outstanding_amount,
            'paymentStatus': bill.payment_status,
            'billDate': bill.created_at,
        }))
    return rows


def guest_billing_summary(filters):
    rows = guest_billing(filters)
    billed = sum((money(row['totalAmount']) for row in rows), ZERO)
    paid = sum((money(row['paidAmount']) for row in rows), ZERO)
    outstanding = sum((money(row['outstandingAmount']) for row in rows), ZERO)
    return {
        'totalGuests': len({row['guestId'] for row in rows}),
        'totalBills': len(rows),
        'totalBilled': float(billed),
        'totalPaid': float(paid),
        'totalOutstanding': float(outstanding),
        'guestsWithUnpaid': len({row['guestId'] for row in rows if row['outstandingAmount'] > 0}),
        'averageBillAmount': _average(billed, len(rows)),
        'averageOutstanding': _average(outstanding, len(rows)),
    }


# ============================================
# SERVICE USAGE
# ============================================

SERVICE_USAGE_FILTERS = (
    FilterSpec('booking_id', ServiceUsage.booking_id),
    FilterSpec('room_id', Booking.room_id),
    FilterSpec('guest_id', Booking.guest_id),
    FilterSpec('service_id', ServiceUsage.service_id),
    FilterSpec('service_name', ChargeableService.name, 'contains'),
    FilterSpec('branch_id', ChargeableService.branch_id),
    FilterSpec('start_date', ServiceUsage.date_time, 'from_day'),
    FilterSpec('end_date', ServiceUsage.date_time, 'to_day'),
)


def _usage_query(filters):
    query = (db.session.query(ServiceUsage, Booking, ChargeableService)
             .join(Booking, ServiceUsage.booking_id == Booking.id)
             .join(ChargeableService, ServiceUsage.service_id == ChargeableService.id))
    values = filters.model_dump()
    return apply_filters(query, SERVICE_USAGE_FILTERS, values)


def service_usage_breakdown(filters):
    query = _usage_query(filters).order_by(ServiceUsage.date_time.desc(), ServiceUsage.id.desc())
    rows = []
    for usage, booking, service in query.all():
        rows.append(_serialize({
            'recordId': usage.id,
            'bookingId': booking.id,
            'bookingStatus': booking.status,
            'guestId': booking.guest_id,
            'guestName': booking.guest.name,
            'roomId': booking.room_id,
            'roomNumber': booking.room.room_number,
            'branchId': service.branch_id,
            'serviceId': service.id,
            'serviceName': service.name,
            'unitType': service.unit_type,
            'usageDate': usage.date_time,
            'quantity': usage.quantity,
            'unitPrice': usage.unit_price,
            'totalPrice': usage.total_price,
        }))
    return rows


def _per_service(filters):
    stats = {}
    for usage, booking, service in _usage_query(filters).all():
        entry = stats.get(service.id)
        if entry is None:
            entry = stats[service.id] = {
                'service': service, 'bookings': set(), 'guests': set(), 'records': 0,
                'quantity': ZERO, 'revenue': ZERO, 'first': usage.date_time, 'last': usage.date_time,
            }
        entry['bookings'].add(booking.id)
        entry['guests'].add(booking.guest_id)
        entry['records'] += 1
        entry['quantity'] += money(usage.quantity)
        entry['revenue'] += money(usage.total_price)
        if usage.date_time and (entry['first'] is None or usage.date_time < entry['first']):
            entry['first'] = usage.date_time
        if usage.date_time and (entry['last'] is None or usage.date_time > entry['last']):
            entry['last'] = usage.date_time
    return stats


def top_services_trends(filters):
    """Services ranked by revenue, with booking and customer reach"""
    ranked = sorted(_per_service(filters).values(),
                    key=lambda entry: (-entry['revenue'], entry['service'].name))
    if filters.min_bookings is not None:
        ranked = [entry for entry in ranked if len(entry['bookings']) >= filters.min_bookings]
    if filters.limit:
        ranked = ranked[:filters.limit]

    rows = []
    for rank, entry in enumerate(ranked, start=1):
        service = entry['service']
        rows.append(_serialize({
            'rank': rank,
            'serviceId': service.id,
            'serviceName': service.name,
            'branchId': service.branch_id,
            'unitType': service.unit_type,
            'unitPrice': service.unit_price,
            'usageCount': entry['records'],
            'bookingsUsingService': len(entry['bookings']),
            'uniqueCustomers': len(entry['guests']),
            'totalQuantityUsed': entry['quantity'],
            'totalRevenue': entry['revenue'],
            'avgQuantityPerUsage': _average(entry['quantity'], entry['records']),
            'firstUsage': entry['first'],
            'lastUsage': entry['last'],
        }))
    return rows


def service_usage_summary(filters):
    stats = _per_service(filters)
    revenue = sum((entry['revenue'] for entry in stats.values()), ZERO)
    quantity = sum((entry['quantity'] for entry in stats.values()), ZERO)
    guests = set()
    for entry in stats.values():
        guests |= entry['guests']

    most_used = max(stats.values(), key=lambda entry: entry['quantity'], default=None)
    top_earner = max(stats.values(), key=lambda entry: entry['revenue'], default=None)
    return {
        'totalServices': len(stats),
        'totalUsageRecords': sum(entry['records'] for entry in stats.values()),
        'totalRevenue': float(revenue),
        'totalQuantity': float(quantity),
        'uniqueGuests': len(guests),
        'averageRevenuePerService': _average(revenue, len(stats)),
        'mostUsedService': most_used['service'].name if most_used else None,
        'highestRevenueService': top_earner['service'].name if top_earner else None,
    }

from datetime import date, datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db
from utils import count_nights, hotel_now, money

BOOKING_STATUSES = ('Booked', 'Checked-In', 'Checked-Out', 'Cancelled')
ROOM_STATUSES = ('Available', 'Occupied', 'Reserved', 'Maintenance')
UNIT_TYPES = ('per_hour', 'per_item', 'per_day', 'per_night', 'per_person', 'per_use', 'flat_rate')
DISCOUNT_TYPES = ('fixed', 'percentage')
PAYMENT_METHODS = ('Cash', 'Card', 'Online', 'BankTransfer')


def serialize_value(value):
    """Convert a column value into something jsonify can emit"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ApiMappingMixin:
    """
    Row -> API mapping.

    Each model lists every exposed attribute next to its camelCase API name in
    ``__api_fields__``. Columns that must never leave the server are listed in
    ``__api_excluded__``; tests check that the two together cover the table.
    """
    __api_fields__ = ()
    __api_excluded__ = ()

    def to_dict(self):
        return {api_name: serialize_value(getattr(self, attr))
                for attr, api_name in self.__api_fields__}


# ============================================
# BRANCHES, ROOMS & PEOPLE
# ============================================

class Branch(ApiMappingMixin, db.Model):
    __tablename__ = 'branch'
    __api_fields__ = (
        ('id', 'branchId'),
        ('name', 'branchName'),
        ('city', 'city'),
        ('address', 'address'),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(255))

    # Relationships
    room_types = db.relationship('RoomType', backref='branch', lazy='dynamic')
    rooms = db.relationship('Room', backref='branch', lazy='dynamic')
    staff = db.relationship('Staff', backref='branch', lazy='dynamic')
    services = db.relationship('ChargeableService', backref='branch', lazy='dynamic')
    discounts = db.relationship('Discount', backref='branch', lazy='dynamic')

    def __repr__(self):
        return f'<Branch {self.name}>'


class RoomType(ApiMappingMixin, db.Model):
    __tablename__ = 'room_type'
    __table_args__ = (db.UniqueConstraint('branch_id', 'name', name='_branch_room_type_uc'),)
    __api_fields__ = (
        ('id', 'roomTypeId'),
        ('branch_id', 'branchId'),
        ('name', 'roomTypeName'),
        ('daily_rate', 'dailyRate'),
        ('late_checkout_rate', 'lateCheckoutRate'),
        ('capacity', 'capacity'),
        ('amenities', 'amenities'),
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False)
    name = db.Column(db.String(50), nullable=False)
    daily_rate = db.Column(db.Numeric(10, 2), nullable=False)
    late_checkout_rate = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    capacity = db.Column(db.Integer, nullable=False)
    amenities = db.Column(db.Text)

    rooms = db.relationship('Room', backref='room_type', lazy='dynamic')

    def __repr__(self):
        return f'<RoomType {self.name}>'


class Room(ApiMappingMixin, db.Model):
    __tablename__ = 'room'
    __table_args__ = (db.UniqueConstraint('branch_id', 'room_number', name='_branch_room_number_uc'),)
    __api_fields__ = (
        ('id', 'roomId'),
        ('branch_id', 'branchId'),
        ('room_type_id', 'roomTypeId'),
        ('room_number', 'roomNumber'),
        ('room_status', 'roomStatus'),
        ('room_type_name', 'roomType'),
        ('daily_rate', 'dailyRate'),
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False)
    room_type_id = db.Column(db.Integer, db.ForeignKey('room_type.id'), nullable=False)
    room_number = db.Column(db.String(10), nullable=False)
    room_status = db.Column(db.String(20), nullable=False, default='Available')  # see ROOM_STATUSES

    bookings = db.relationship('Booking', backref='room', lazy='dynamic')

    @property
    def room_type_name(self):
        return self.room_type.name if self.room_type else None

    @property
    def daily_rate(self):
        return self.room_type.daily_rate if self.room_type else None

    def __repr__(self):
        return f'<Room {self.room_number}>'


class Guest(ApiMappingMixin, db.Model):
    __tablename__ = 'guest'
    __api_fields__ = (
        ('id', 'guestId'),
        ('nic', 'nic'),
        ('name', 'name'),
        ('age', 'age'),
        ('contact_no', 'contactNo'),
        ('email', 'email'),
        ('created_at', 'createdAt'),
        ('updated_at', 'updatedAt'),
    )

    id = db.Column(db.Integer, primary_key=True)
    nic = db.Column(db.String(20), unique=True)
    name = db.Column(db.String(100), nullable=False)
    age = db.Column(db.Integer)
    contact_no = db.Column(db.String(20))
    email = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=hotel_now)
    updated_at = db.Column(db.DateTime, default=hotel_now, onupdate=hotel_now)

    bookings = db.relationship('Booking', backref='guest', lazy='dynamic')

    def __repr__(self):
        return f'<Guest {self.name}>'


class Staff(ApiMappingMixin, db.Model):
    __tablename__ = 'staff'
    __api_fields__ = (
        ('id', 'staffId'),
        ('branch_id', 'branchId'),
        ('name', 'name'),
        ('contact_no', 'contactNo'),
        ('email', 'email'),
        ('job_title', 'jobTitle'),
        ('salary', 'salary'),
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    contact_no = db.Column(db.String(20))
    email = db.Column(db.String(120), unique=True)
    job_title = db.Column(db.String(50), nullable=False)
    salary = db.Column(db.Numeric(10, 2))

    user = db.relationship('User', backref='staff', uselist=False, cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Staff {self.name}>'


class User(UserMixin, ApiMappingMixin, db.Model):
    """Login account for a staff member"""
    __tablename__ = 'user'
    __api_fields__ = (
        ('id', 'userId'),
        ('staff_id', 'staffId'),
        ('username', 'username'),
        ('role', 'role'),
        ('created_at', 'createdAt'),
    )
    __api_excluded__ = ('password_hash',)

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey('staff.id'), unique=True, nullable=False)
    username = db.Column(db.String(64), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=hotel_now)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def role(self):
        return self.staff.job_title if self.staff else None

    def __repr__(self):
        return f'<User {self.username}>'


# ============================================
# BOOKINGS & SERVICES
# ============================================

class Booking(ApiMappingMixin, db.Model):
    __tablename__ = 'booking'
    __api_fields__ = (
        ('id', 'bookingId'),
        ('guest_id', 'guestId'),
        ('room_id', 'roomId'),
        ('user_id', 'userId'),
        ('status', 'bookingStatus'),
        ('check_in', 'checkIn'),
        ('check_out', 'checkOut'),
        ('date_time', 'dateTime'),
        ('actual_check_in', 'actualCheckIn'),
        ('actual_check_out', 'actualCheckOut'),
        ('nights', 'nights'),
        ('total_amount', 'totalAmount'),
    )

    id = db.Column(db.Integer, primary_key=True)
    guest_id = db.Column(db.Integer, db.ForeignKey('guest.id'), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    # Booking status: see BOOKING_STATUSES
    status = db.Column(db.String(20), nullable=False, default='Booked')

    # Scheduled stay
    check_in = db.Column(db.DateTime, nullable=False)
    check_out = db.Column(db.DateTime, nullable=False)
    date_time = db.Column(db.DateTime, default=hotel_now)

    # Front desk tracking
    actual_check_in = db.Column(db.DateTime)
    actual_check_out = db.Column(db.DateTime)

    # Relationships
    user = db.relationship('User', backref=db.backref('bookings', lazy='dynamic'))
    service_usages = db.relationship('ServiceUsage', backref='booking', lazy=True,
                                     cascade='all, delete-orphan', order_by='ServiceUsage.date_time.desc()')
    final_bill = db.relationship('FinalBill', backref='booking', uselist=False, cascade='all, delete-orphan')

    @property
    def nights(self):
        """Calculate number of nights"""
        if not self.check_in or not self.check_out:
            return 0
        return count_nights(self.check_in, self.check_out)

    @property
    def total_amount(self):
        """Billed total once a final bill exists, otherwise the room estimate"""
        if self.final_bill is not None:
            return self.final_bill.total_amount
        if self.room is None or self.room.room_type is None:
            return None
        return money(self.room.room_type.daily_rate * self.nights)

    def __repr__(self):
        return f'<Booking {self.id}>'


class ChargeableService(ApiMappingMixin, db.Model):
    __tablename__ = 'chargeable_service'
    __api_fields__ = (
        ('id', 'serviceId'),
        ('branch_id', 'branchId'),
        ('name', 'serviceName'),
        ('unit_type', 'unitType'),
        ('unit_price', 'unitPrice'),
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    unit_type = db.Column(db.String(20), nullable=False)  # see UNIT_TYPES
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)

    usages = db.relationship('ServiceUsage', backref='service', lazy='dynamic')

    def __repr__(self):
        return f'<ChargeableService {self.name}>'


class ServiceUsage(ApiMappingMixin, db.Model):
    __tablename__ = 'service_usage'
    __api_fields__ = (
        ('id', 'recordId'),
        ('booking_id', 'bookingId'),
        ('service_id', 'serviceId'),
        ('service_name', 'serviceName'),
        ('date_time', 'usageDate'),
        ('quantity', 'quantity'),
        ('unit_price', 'unitPrice'),
        ('total_price', 'totalPrice'),
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('booking.id'), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('chargeable_service.id'), nullable=False)
    date_time = db.Column(db.DateTime, default=hotel_now)
    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)  # copied from the service at time of use
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    @property
    def service_name(self):
        return self.service.name if self.service else None

    def reprice(self):
        self.total_price = money(Decimal(str(self.quantity)) * Decimal(str(self.unit_price)))

    def __repr__(self):
        return f'<ServiceUsage {self.id}>'


# ============================================
# BILLING
# ============================================

class Discount(ApiMappingMixin, db.Model):
    __tablename__ = 'discount'
    __api_fields__ = (
        ('id', 'discountId'),
        ('branch_id', 'branchId'),
        ('name', 'discountName'),
        ('discount_type', 'discountType'),
        ('value', 'discountValue'),
        ('min_bill_amount', 'minBillAmount'),
        ('condition', 'discountCondition'),
        ('valid_from', 'validFrom'),
        ('valid_to', 'validTo'),
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    discount_type = db.Column(db.String(20), nullable=False)  # fixed, percentage
    value = db.Column(db.Numeric(10, 2), nullable=False)
    min_bill_amount = db.Column(db.Numeric(10, 2))
    condition = db.Column(db.String(255))
    valid_from = db.Column(db.Date, nullable=False)
    valid_to = db.Column(db.Date, nullable=False)

    def __repr__(self):
        return f'<Discount {self.name}>'


class FinalBill(ApiMappingMixin, db.Model):
    __tablename__ = 'final_bill'
    __api_fields__ = (
        ('id', 'billId'),
        ('booking_id', 'bookingId'),
        ('user_id', 'userId'),
        ('discount_id', 'discountId'),
        ('room_charges', 'roomCharges'),
        ('service_charges', 'serviceCharges'),
        ('tax_amount', 'taxAmount'),
        ('discount_amount', 'discountAmount'),
        ('late_checkout_charge', 'lateCheckoutCharge'),
        ('total_amount', 'totalAmount'),
        ('paid_amount', 'paidAmount'),
        ('outstanding_amount', 'outstandingAmount'),
        ('payment_status', 'paymentStatus'),
        ('created_at', 'createdAt'),
        ('updated_at', 'updatedAt'),
    )

    id = db.Column(db.Integer, primary_key=True)
    # One bill per booking
    booking_id = db.Column(db.Integer, db.ForeignKey('booking.id'), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    discount_id = db.Column(db.Integer, db.ForeignKey('discount.id'))

    room_charges = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    service_charges = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    late_checkout_charge = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    outstanding_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=hotel_now)
    updated_at = db.Column(db.DateTime, default=hotel_now, onupdate=hotel_now)

    # Relationships
    user = db.relationship('User')
    discount = db.relationship('Discount')
    payments = db.relationship('Payment', backref='bill', lazy=True,
                               cascade='all, delete-orphan', order_by='Payment.id')

    @property
    def payment_status(self):
        paid = money(self.paid_amount)
        if paid >= money(self.total_amount):
            return 'Paid'
        if paid > 0:
            return 'Partially Paid'
        return 'Unpaid'

    def __repr__(self):
        return f'<FinalBill {self.id} booking={self.booking_id}>'


class Payment(ApiMappingMixin, db.Model):
    __tablename__ = 'payment'
    __api_fields__ = (
        ('id', 'paymentId'),
        ('bill_id', 'billId'),
        ('paid_method', 'paidMethod'),
        ('paid_amount', 'paidAmount'),
        ('date_time', 'dateTime'),
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey('final_bill.id'), nullable=False)
    paid_method = db.Column(db.String(20), nullable=False)  # see PAYMENT_METHODS
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False)
    date_time = db.Column(db.DateTime, default=hotel_now)

    def __repr__(self):
        return f'<Payment {self.id} - {self.paid_method} - {self.paid_amount}>'

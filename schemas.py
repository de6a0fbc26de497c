"""
Request schemas

Pydantic models for every JSON body and query string the API accepts.
Field names match the model attributes they populate; the wire format is
camelCase, produced by the alias generator or by an explicit alias where the
API name differs from the column name.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

BookingStatus = Literal['Booked', 'Checked-In', 'Checked-Out', 'Cancelled']
RoomStatus = Literal['Available', 'Occupied', 'Reserved', 'Maintenance']
# Occupied and Reserved are derived from bookings
ManualRoomStatus = Literal['Available', 'Maintenance']
UnitType = Literal['per_hour', 'per_item', 'per_day', 'per_night', 'per_person', 'per_use', 'flat_rate']
DiscountType = Literal['fixed', 'percentage']
PaidMethod = Literal['Cash', 'Card', 'Online', 'BankTransfer']
PaymentStatus = Literal['Paid', 'Partially Paid', 'Unpaid']
OccupancyStatus = Literal['Occupied', 'Reserved', 'Maintenance', 'Available']


class ApiSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              extra='forbid', str_strip_whitespace=True)


class QuerySchema(BaseModel):
    """Query strings: unknown parameters are ignored"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              extra='ignore', str_strip_whitespace=True)


class UpdateSchema(ApiSchema):
    # Optional columns that a client may clear by sending null
    clearable: ClassVar[tuple] = ()

    def changes(self):
        return {name: value for name, value in self.model_dump(exclude_unset=True).items()
                if value is not None or name in self.clearable}


def check_window(start, end):
    if start is None or end is None:
        return
    if (start.tzinfo is None) != (end.tzinfo is None):
        raise ValueError('checkIn and checkOut must both carry a UTC offset, or neither')
    if start >= end:
        raise ValueError('checkOut must be after checkIn')


# ============================================
# AUTH
# ============================================

class RegisterRequest(ApiSchema):
    staff_id: int = Field(gt=0)
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(ApiSchema):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ============================================
# BRANCHES, ROOMS & PEOPLE
# ============================================

class BranchCreate(ApiSchema):
    name: str = Field(alias='branchName', min_length=2, max_length=100)
    city: str = Field(min_length=2, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)


class BranchUpdate(UpdateSchema):
    clearable = ('address',)

    name: Optional[str] = Field(default=None, alias='branchName', min_length=2, max_length=100)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)


class RoomTypeCreate(ApiSchema):
    branch_id: int = Field(gt=0)
    name: str = Field(alias='roomTypeName', min_length=2, max_length=50)
    daily_rate: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    late_checkout_rate: Decimal = Field(default=Decimal('0'), ge=0, max_digits=10, decimal_places=2)
    capacity: int = Field(gt=0)
    amenities: Optional[str] = None


class RoomTypeUpdate(UpdateSchema):
    clearable = ('amenities',)

    name: Optional[str] = Field(default=None, alias='roomTypeName', min_length=2, max_length=50)
    daily_rate: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    late_checkout_rate: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    capacity: Optional[int] = Field(default=None, gt=0)
    amenities: Optional[str] = None


class RoomCreate(ApiSchema):
    branch_id: int = Field(gt=0)
    room_type_id: int = Field(gt=0)
    room_number: str = Field(min_length=1, max_length=10)
    room_status: ManualRoomStatus = 'Available'


class RoomUpdate(UpdateSchema):
    room_type_id: Optional[int] = Field(default=None, gt=0)
    room_number: Optional[str] = Field(default=None, min_length=1, max_length=10)
    room_status: Optional[ManualRoomStatus] = None


class RoomFilters(QuerySchema):
    branch_id: Optional[int] = None
    room_type_id: Optional[int] = None
    status: Optional[RoomStatus] = None


class GuestCreate(ApiSchema):
    name: str = Field(min_length=2, max_length=100)
    nic: Optional[str] = Field(default=None, max_length=20)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    contact_no: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=120, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class GuestUpdate(UpdateSchema):
    clearable = ('nic', 'age', 'contact_no', 'email')

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    nic: Optional[str] = Field(default=None, max_length=20)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    contact_no: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=120, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class GuestFilters(QuerySchema):
    name: Optional[str] = None
    nic: Optional[str] = None
    email: Optional[str] = None
    contact_no: Optional[str] = None


class StaffCreate(ApiSchema):
    branch_id: int = Field(gt=0)
    name: str = Field(min_length=2, max_length=100)
    contact_no: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=120, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    job_title: str = Field(min_length=2, max_length=50)
    salary: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class StaffUpdate(UpdateSchema):
    clearable = ('contact_no', 'email', 'salary')

    branch_id: Optional[int] = Field(default=None, gt=0)
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    contact_no: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=120, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    job_title: Optional[str] = Field(default=None, min_length=2, max_length=50)
    salary: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class StaffFilters(QuerySchema):
    branch_id: Optional[int] = None
    job_title: Optional[str] = None
    name: Optional[str] = None


class ServiceCreate(ApiSchema):
    branch_id: int = Field(gt=0)
    name: str = Field(alias='serviceName', min_length=2, max_length=100)
    unit_type: UnitType
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ServiceUpdate(UpdateSchema):
    name: Optional[str] = Field(default=None, alias='serviceName', min_length=2, max_length=100)
    unit_type: Optional[UnitType] = None
    unit_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


# ============================================
# BOOKINGS
# ============================================

class BookingCreate(ApiSchema):
    guest_id: int = Field(gt=0)
    room_id: int = Field(gt=0)
    user_id: Optional[int] = Field(default=None, gt=0)
    check_in: datetime
    check_out: datetime

    @model_validator(mode='after')
    def check_dates(self):
        check_window(self.check_in, self.check_out)
        return self


class BookingUpdate(UpdateSchema):
    guest_id: Optional[int] = Field(default=None, gt=0)
    room_id: Optional[int] = Field(default=None, gt=0)
    user_id: Optional[int] = Field(default=None, gt=0)
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: Optional[BookingStatus] = Field(default=None, alias='bookingStatus')

    @model_validator(mode='after')
    def check_dates(self):
        check_window(self.check_in, self.check_out)
        return self


class CheckInRequest(ApiSchema):
    checked_in_at: Optional[datetime] = None


class CheckOutRequest(ApiSchema):
    checked_out_at: Optional[datetime] = None


class BookingFilters(QuerySchema):
    guest_id: Optional[int] = None
    room_id: Optional[int] = None
    branch_id: Optional[int] = None
    status: Optional[BookingStatus] = None


class AvailabilityQuery(QuerySchema):
    room_id: Optional[int] = None
    branch_id: Optional[int] = None
    check_in: datetime
    check_out: datetime

    @model_validator(mode='after')
    def check_dates(self):
        check_window(self.check_in, self.check_out)
        return self


class ServiceUsageCreate(ApiSchema):
    booking_id: int = Field(gt=0)
    service_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    date_time: Optional[datetime] = Field(default=None, alias='usageDate')


class ServiceUsageUpdate(UpdateSchema):
    service_id: Optional[int] = Field(default=None, gt=0)
    quantity: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    date_time: Optional[datetime] = Field(default=None, alias='usageDate')


class ServiceUsageFilters(QuerySchema):
    booking_id: Optional[int] = None
    service_id: Optional[int] = None


# ============================================
# BILLING
# ============================================

class DiscountCreate(ApiSchema):
    branch_id: int = Field(gt=0)
    name: str = Field(alias='discountName', min_length=2, max_length=100)
    discount_type: DiscountType
    value: Decimal = Field(alias='discountValue', gt=0, max_digits=10, decimal_places=2)
    min_bill_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    condition: Optional[str] = Field(default=None, alias='discountCondition', max_length=255)
    valid_from: date
    valid_to: date

    @model_validator(mode='after')
    def check_rules(self):
        check_discount_rules(self.discount_type, self.value, self.valid_from, self.valid_to)
        return self


class DiscountUpdate(UpdateSchema):
    clearable = ('min_bill_amount', 'condition')

    branch_id: Optional[int] = Field(default=None, gt=0)
    name: Optional[str] = Field(default=None, alias='discountName', min_length=2, max_length=100)
    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(default=None, alias='discountValue', gt=0, max_digits=10, decimal_places=2)
    min_bill_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    condition: Optional[str] = Field(default=None, alias='discountCondition', max_length=255)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None


def check_discount_rules(discount_type, value, valid_from, valid_to):
    """Rules that span several discount fields; also applied to merged partial updates"""
    if valid_from and valid_to and valid_from > valid_to:
        raise ValueError("Invalid date range, 'validFrom' cannot be after 'validTo'")
    if discount_type == 'percentage' and value is not None and value > 100:
        raise ValueError('A percentage discount cannot exceed 100')


class ApplicableDiscountQuery(QuerySchema):
    booking_id: int = Field(gt=0)


class FinalBillCreate(ApiSchema):
    booking_id: int = Field(gt=0)
    user_id: Optional[int] = Field(default=None, gt=0)
    discount_id: Optional[int] = Field(default=None, gt=0)


class FinalBillUpdate(ApiSchema):
    discount_id: Optional[int] = Field(default=None, gt=0)


class PaymentCreate(ApiSchema):
    bill_id: int = Field(gt=0)
    paid_method: PaidMethod
    paid_amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    date_time: Optional[datetime] = None


class PaymentUpdate(UpdateSchema):
    paid_method: Optional[PaidMethod] = None
    paid_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    date_time: Optional[datetime] = None


# ============================================
# REPORTS
# ============================================

class DateRangeFilters(QuerySchema):
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError('startDate cannot be after endDate')
        return self


class MonthlyRevenueFilters(DateRangeFilters):
    branch_id: Optional[int] = None
    month_year: Optional[str] = Field(default=None, pattern=r'^\d{4}-(0[1-9]|1[0-2])$')
    city: Optional[str] = None


class RoomOccupancyFilters(DateRangeFilters):
    branch_id: Optional[int] = None
    room_type: Optional[str] = None
    room_status: Optional[RoomStatus] = None
    occupancy_status: Optional[OccupancyStatus] = None
    booking_status: Optional[BookingStatus] = None
    city: Optional[str] = None
    guest_name: Optional[str] = None


class GuestBillingFilters(DateRangeFilters):
    guest_id: Optional[int] = None
    guest_name: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    branch_id: Optional[int] = None
    booking_status: Optional[BookingStatus] = None
    min_outstanding: Optional[Decimal] = None
    max_outstanding: Optional[Decimal] = None


class ServiceUsageReportFilters(DateRangeFilters):
    booking_id: Optional[int] = None
    room_id: Optional[int] = None
    guest_id: Optional[int] = None
    service_id: Optional[int] = None
    service_name: Optional[str] = None
    branch_id: Optional[int] = None


class TopServicesFilters(DateRangeFilters):
    branch_id: Optional[int] = None
    service_id: Optional[int] = None
    min_bookings: Optional[int] = Field(default=None, ge=0)
    limit: Optional[int] = Field(default=None, gt=0, le=100)

"""
Initialize database with sample data for the hotel management system
"""
import logging
from decimal import Decimal

from extensions import db
from models import Branch, ChargeableService, Room, RoomType, Staff, User

logger = logging.getLogger(__name__)

ROOM_TYPES = [
    ('Standard', Decimal('100.00'), Decimal('25.00'), 2, 'WiFi, TV, Air conditioning'),
    ('Deluxe', Decimal('180.00'), Decimal('40.00'), 3, 'WiFi, TV, Air conditioning, Mini bar, Balcony'),
    ('Suite', Decimal('320.00'), Decimal('75.00'), 4, 'WiFi, TV, Air conditioning, Mini bar, Living area, Jacuzzi'),
]

ROOMS = [
    ('101', 'Standard'), ('102', 'Standard'), ('103', 'Standard'),
    ('201', 'Deluxe'), ('202', 'Deluxe'),
    ('301', 'Suite'),
]

SERVICES = [
    ('Room Service', 'per_item', Decimal('15.00')),
    ('Laundry', 'per_item', Decimal('8.00')),
    ('Spa Treatment', 'per_hour', Decimal('60.00')),
    ('Airport Transfer', 'per_use', Decimal('35.00')),
    ('Breakfast Buffet', 'per_person', Decimal('12.00')),
    ('Parking', 'per_day', Decimal('5.00')),
]


def create_initial_data():
    """Create initial data for the application"""
    if Branch.query.first():
        logger.info('Sample data already present')
        return

    try:
        branch = Branch(name='Colombo Central', city='Colombo', address='12 Galle Road, Colombo 03')
        db.session.add(branch)
        db.session.flush()  # Get the ID

        room_types = {}
        for name, daily_rate, late_rate, capacity, amenities in ROOM_TYPES:
            room_type = RoomType(branch_id=branch.id, name=name, daily_rate=daily_rate,
                                 late_checkout_rate=late_rate, capacity=capacity, amenities=amenities)
            db.session.add(room_type)
            room_types[name] = room_type
        db.session.flush()

        for room_number, type_name in ROOMS:
            db.session.add(Room(branch_id=branch.id, room_type_id=room_types[type_name].id,
                                room_number=room_number, room_status='Available'))

        for name, unit_type, unit_price in SERVICES:
            db.session.add(ChargeableService(branch_id=branch.id, name=name,
                                             unit_type=unit_type, unit_price=unit_price))

        manager = Staff(branch_id=branch.id, name='Admin User', email='admin@hotel.com',
                        contact_no='0112345678', job_title='Manager', salary=Decimal('150000.00'))
        db.session.add(manager)
        db.session.flush()

        admin_user = User(staff_id=manager.id, username='admin')
        admin_user.set_password('admin123')
        db.session.add(admin_user)

        db.session.commit()
        logger.info('Sample data created: branch %s with %d rooms', branch.name, len(ROOMS))
    except Exception:
        db.session.rollback()
        logger.exception('Error creating initial data')
        raise

"""
Shared fixtures: an app on an in-memory SQLite database, a small seeded
branch, and an authenticated API client.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import create_app
from extensions import db
from models import Branch, ChargeableService, Guest, Room, RoomType, Staff, User

STAY = {'checkIn': '2025-01-10T14:00:00', 'checkOut': '2025-01-12T11:00:00'}


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SEED_DATA': False,
        'JWT_SECRET_KEY': 'test-secret',
        'TAX_RATE': 0.10,
        'LATE_CHECKOUT_CUTOFF': '12:00',
        'HOTEL_TIMEZONE': 'Asia/Colombo',
        'ADMIN_ROLES': 'Manager,Admin',
        'LOG_LEVEL': 'WARNING',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(app):
    """One branch with a Standard room type, two rooms, a guest, a service,
    a manager and a receptionist. Returns the ids."""
    with app.app_context():
        branch = Branch(name='Colombo Central', city='Colombo', address='12 Galle Road')
        db.session.add(branch)
        db.session.flush()

        room_type = RoomType(branch_id=branch.id, name='Standard', daily_rate=Decimal('100.00'),
                             late_checkout_rate=Decimal('25.00'), capacity=2, amenities='WiFi, TV')
        db.session.add(room_type)
        db.session.flush()

        rooms = [Room(branch_id=branch.id, room_type_id=room_type.id, room_number=number)
                 for number in ('101', '102')]
        db.session.add_all(rooms)

        guest = Guest(name='Nimal Perera', nic='901234567V', age=34,
                      contact_no='0771234567', email='nimal@example.com')
        service = ChargeableService(branch_id=branch.id, name='Room Service',
                                    unit_type='per_item', unit_price=Decimal('15.00'))
        manager = Staff(branch_id=branch.id, name='Manager One', email='manager@hotel.com', job_title='Manager')
        receptionist = Staff(branch_id=branch.id, name='Front Desk', email='desk@hotel.com',
                             job_title='Receptionist')
        db.session.add_all([guest, service, manager, receptionist])
        db.session.flush()

        manager_user = User(staff_id=manager.id, username='manager')
        manager_user.set_password('secret123')
        desk_user = User(staff_id=receptionist.id, username='frontdesk')
        desk_user.set_password('secret123')
        db.session.add_all([manager_user, desk_user])
        db.session.commit()

        return SimpleNamespace(
            branch_id=branch.id,
            room_type_id=room_type.id,
            room_ids=[room.id for room in rooms],
            guest_id=guest.id,
            service_id=service.id,
            manager_staff_id=manager.id,
            receptionist_staff_id=receptionist.id,
            manager_user_id=manager_user.id,
            desk_user_id=desk_user.id,
        )


class ApiClient:
    """Test client that sends a bearer token with every request"""

    def __init__(self, client, token):
        self.client = client
        self.headers = {'Authorization': f'Bearer {token}'}

    def get(self, url, **kwargs):
        return self.client.get(url, headers=self.headers, **kwargs)

    def post(self, url, json=None, **kwargs):
        return self.client.post(url, json=json, headers=self.headers, **kwargs)

    def put(self, url, json=None, **kwargs):
        return self.client.put(url, json=json, headers=self.headers, **kwargs)

    def delete(self, url, **kwargs):
        return self.client.delete(url, headers=self.headers, **kwargs)


def login(client, username, password='secret123'):
    response = client.post('/api/auth/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['data']['token']


@pytest.fixture
def api(client, seed):
    """Logged in as the manager"""
    return ApiClient(client, login(client, 'manager'))


@pytest.fixture
def desk_api(client, seed):
    """Logged in as the receptionist"""
    return ApiClient(client, login(client, 'frontdesk'))


@pytest.fixture
def make_booking(api, seed):
    def _make_booking(room_index=1, **overrides):
        payload = {'guestId': seed.guest_id, 'roomId': seed.room_ids[room_index], **STAY}
        payload.update(overrides)
        response = api.post('/api/booking', json=payload)
        assert response.status_code == 201, response.get_json()
        return response.get_json()['data']
    return _make_booking


@pytest.fixture
def checked_out_booking(api, seed, make_booking):
    """Two nights in room 102 with two room-service items, checked out before noon"""
    booking = make_booking()
    booking_id = booking['bookingId']
    assert api.post(f'/api/booking/{booking_id}/check-in',
                    json={'checkedInAt': '2025-01-10T14:05:00'}).status_code == 200
    response = api.post('/api/service-usage', json={
        'bookingId': booking_id, 'serviceId': seed.service_id, 'quantity': 2,
        'usageDate': '2025-01-11T19:30:00',
    })
    assert response.status_code == 201, response.get_json()
    assert api.post(f'/api/booking/{booking_id}/check-out',
                    json={'checkedOutAt': '2025-01-12T10:30:00'}).status_code == 200
    return booking_id

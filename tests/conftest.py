from datetime import date, datetime

import pytest

import catalog
import hotels
from app import create_app
from extensions import db
from guest_ledger import create_stay
from models import Role, User

# 2024-01-01 12:00 in Asia/Kolkata
NOON_JAN_1 = datetime(2024, 1, 1, 6, 30)
JAN_1 = date(2024, 1, 1)


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SECRET_KEY': 'test-secret',
        'JWT_SECRET_KEY': 'test-jwt-secret',
        'HOTEL_TIMEZONE': 'Asia/Kolkata',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that call the services directly"""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(username, role=Role.ADMIN, password='secret123'):
    user = User(name=username.title(), username=username, email=f'{username}@example.com', role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin(ctx):
    return make_user('owner')


@pytest.fixture
def manager(ctx):
    return make_user('frontdesk', Role.MANAGER)


@pytest.fixture
def hotel(ctx, admin):
    return hotels.create_hotel(admin, {
        'name': 'Sea View',
        'address': '1 Beach Road',
        'phone': '9876543210',
        'totalRooms': 5,
    })


@pytest.fixture
def payment_mode(ctx, admin):
    return catalog.create_payment_mode(admin, {'paymentMode': 'Cash'})


@pytest.fixture
def dal(ctx, admin):
    return catalog.create_menu(admin, {'name': 'Dal', 'halfPlatePrice': '50', 'fullPlatePrice': '90'})


@pytest.fixture
def make_stay(ctx, admin, hotel, payment_mode):
    """Check a guest in on 2024-01-01 at 1000 per night"""
    def _make(guest_name='Asha', room_no='1', advance=None, now=NOON_JAN_1, **fields):
        data = {
            'hotelId': hotel.id,
            'guestName': guest_name,
            'phoneNo': '9000000000',
            'roomNo': room_no,
            'checkinDate': '2024-01-01',
            'checkinTime': '12:00',
            'rent': '1000',
        }
        if advance is not None:
            data.update({'advancePayment': advance, 'paymentModeId': payment_mode.id})
        data.update(fields)
        return create_stay(admin, data, now=now)
    return _make

import enum
import uuid

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db
from ledger import money, to_decimal, utc_now


def new_uuid():
    return str(uuid.uuid4())


def enum_column(enum_cls, name, **kwargs):
    """Store the lowercase enum value, not the member name"""
    return db.Column(
        db.Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members]),
        **kwargs
    )


def iso(value):
    return value.isoformat() if value else None


# ============================================
# CLOSED VARIANTS
# ============================================

class Role(str, enum.Enum):
    ADMIN = 'admin'
    MANAGER = 'manager'


class AssignmentStatus(str, enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class RoomStatus(str, enum.Enum):
    EMPTY = 'empty'
    OCCUPIED = 'occupied'
    CLEANING = 'cleaning'


class PaymentType(str, enum.Enum):
    ADVANCE = 'advance'
    PARTIAL = 'partial'
    FINAL = 'final'


class ExpenseType(str, enum.Enum):
    FOOD = 'food'
    LAUNDRY = 'laundry'
    OTHERS = 'others'


class PortionType(str, enum.Enum):
    HALF = 'half'
    FULL = 'full'


# ============================================
# USERS & HOTELS
# ============================================

class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = enum_column(Role, 'user_role', nullable=False, default=Role.ADMIN)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)

    assignments = db.relationship('HotelAssignment', backref='manager', lazy='dynamic',
                                  passive_deletes=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'email': self.email,
            'role': self.role.value,
            'lastLogin': iso(self.last_login),
            'createdAt': iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Hotel(db.Model):
    __tablename__ = 'hotels'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.Text, nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    total_rooms = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    creator = db.relationship('User', foreign_keys=[created_by])
    # Guest history and expenses are RESTRICT: the database refuses the delete
    guest_stays = db.relationship('GuestStay', backref='hotel', lazy='dynamic', passive_deletes='all')
    expenses = db.relationship('Expense', backref='hotel', lazy='dynamic', passive_deletes='all')
    assignments = db.relationship('HotelAssignment', backref='hotel', lazy='dynamic', passive_deletes=True)
    categories = db.relationship('HotelRoomCategory', backref='hotel', lazy='dynamic', passive_deletes=True)
    rooms = db.relationship('HotelRoom', backref='hotel', lazy='dynamic', passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'phone': self.phone,
            'totalRooms': self.total_rooms,
            'createdBy': self.created_by,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Hotel {self.name}>'


class HotelAssignment(db.Model):
    """Manager <-> hotel link; revoked by status, never by deleting the row"""
    __tablename__ = 'hotel_managers'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    hotel_id = db.Column(db.String(36), db.ForeignKey('hotels.id', ondelete='CASCADE'), nullable=False)
    manager_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    assigned_date = db.Column(db.DateTime, default=utc_now)
    status = enum_column(AssignmentStatus, 'assignment_status', nullable=False, default=AssignmentStatus.ACTIVE)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (db.UniqueConstraint('hotel_id', 'manager_id', name='_hotel_manager_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'hotelId': self.hotel_id,
            'userId': self.manager_id,
            'name': self.manager.name if self.manager else None,
            'email': self.manager.email if self.manager else None,
            'status': self.status.value,
            'assignedDate': iso(self.assigned_date),
        }

    def __repr__(self):
        return f'<HotelAssignment {self.hotel_id}/{self.manager_id} {self.status.value}>'


class HotelRoomCategory(db.Model):
    __tablename__ = 'hotel_room_categories'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    hotel_id = db.Column(db.String(36), db.ForeignKey('hotels.id', ondelete='CASCADE'), nullable=False)
    category_name = db.Column(db.String(100), nullable=False)
    room_category_pricing = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (db.UniqueConstraint('hotel_id', 'category_name', name='_hotel_category_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'hotelId': self.hotel_id,
            'categoryName': self.category_name,
            'roomCategoryPricing': money(self.room_category_pricing),
        }


class HotelRoom(db.Model):
    __tablename__ = 'hotel_rooms'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    hotel_id = db.Column(db.String(36), db.ForeignKey('hotels.id', ondelete='CASCADE'), nullable=False)
    category_id = db.Column(db.String(36), db.ForeignKey('hotel_room_categories.id', ondelete='RESTRICT'),
                            nullable=False)
    room_no = db.Column(db.String(20), nullable=False)
    status = enum_column(RoomStatus, 'room_status', nullable=False, default=RoomStatus.EMPTY)
    current_guest_name = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=utc_now)

    category = db.relationship('HotelRoomCategory')

    __table_args__ = (db.UniqueConstraint('hotel_id', 'room_no', name='_hotel_room_no_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'hotelId': self.hotel_id,
            'roomNo': self.room_no,
            'status': self.status.value,
            'currentGuestName': self.current_guest_name,
            'category': {
                'id': self.category.id,
                'categoryName': self.category.category_name,
            } if self.category else None,
        }


# ============================================
# CREATOR-SCOPED CATALOGS
# ============================================

class Menu(db.Model):
    __tablename__ = 'menus'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), nullable=False)
    half_plate_price = db.Column(db.Numeric(10, 2))
    full_plate_price = db.Column(db.Numeric(10, 2), nullable=False)
    description = db.Column(db.Text)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'halfPlatePrice': money(self.half_plate_price) if self.half_plate_price is not None else None,
            'fullPlatePrice': money(self.full_plate_price),
            'description': self.description,
            'createdBy': self.created_by,
        }

    def __repr__(self):
        return f'<Menu {self.name}>'


class PaymentMode(db.Model):
    __tablename__ = 'payment_modes'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    payment_mode = db.Column(db.String(100), nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {'id': self.id, 'paymentMode': self.payment_mode, 'createdBy': self.created_by}


class ExpenseMode(db.Model):
    __tablename__ = 'expense_modes'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    expense_mode = db.Column(db.String(100), nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {'id': self.id, 'expenseMode': self.expense_mode, 'createdBy': self.created_by}


class Expense(db.Model):
    """Hotel operating expense (not a guest charge)"""
    __tablename__ = 'expenses'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    hotel_id = db.Column(db.String(36), db.ForeignKey('hotels.id', ondelete='RESTRICT'), nullable=False)
    expense_mode_id = db.Column(db.String(36), db.ForeignKey('expense_modes.id', ondelete='RESTRICT'),
                                nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    description = db.Column(db.Text)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=utc_now)

    expense_mode = db.relationship('ExpenseMode')

    def to_dict(self):
        return {
            'id': self.id,
            'hotelId': self.hotel_id,
            'expenseModeId': self.expense_mode_id,
            'expenseMode': self.expense_mode.expense_mode if self.expense_mode else None,
            'amount': money(self.amount),
            'description': self.description,
            'createdAt': iso(self.created_at),
        }


# ============================================
# GUEST LEDGER
# ============================================

class SerialCounter(db.Model):
    """Last issued value of a named sequence; bumped in the inserting transaction"""
    __tablename__ = 'serial_counters'

    name = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)


class GuestStay(db.Model):
    __tablename__ = 'guest_records'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    hotel_id = db.Column(db.String(36), db.ForeignKey('hotels.id', ondelete='RESTRICT'), nullable=False)
    serial_no = db.Column(db.Integer, unique=True, nullable=False)

    guest_name = db.Column(db.String(200), nullable=False)
    phone_no = db.Column(db.String(20), nullable=False)
    room_no = db.Column(db.String(20), nullable=False)

    checkin_date = db.Column(db.Date, nullable=False)
    checkin_time = db.Column(db.Time, nullable=False)
    checkout_date = db.Column(db.Date)
    checkout_time = db.Column(db.Time)

    # Per-night rate and the room-charge baseline used for daily sales
    rent = db.Column(db.Numeric(10, 2), nullable=False)
    bill = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    transactions = db.relationship('GuestTransaction', backref='booking', lazy='dynamic',
                                   cascade='all, delete-orphan', passive_deletes=True)
    expenses = db.relationship('GuestExpense', backref='booking', lazy='dynamic',
                               cascade='all, delete-orphan', passive_deletes=True)

    @property
    def is_checked_out(self):
        return self.checkout_date is not None

    def to_dict(self):
        return {
            'id': self.id,
            'hotelId': self.hotel_id,
            'serialNo': self.serial_no,
            'guestName': self.guest_name,
            'phoneNo': self.phone_no,
            'roomNo': self.room_no,
            'checkinDate': iso(self.checkin_date),
            'checkinTime': iso(self.checkin_time),
            'checkoutDate': iso(self.checkout_date),
            'checkoutTime': iso(self.checkout_time),
            'rent': money(self.rent),
            'bill': money(self.bill),
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }

    def __repr__(self):
        return f'<GuestStay #{self.serial_no} {self.guest_name}>'


class GuestTransaction(db.Model):
    __tablename__ = 'guest_transactions'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    booking_id = db.Column(db.String(36), db.ForeignKey('guest_records.id', ondelete='CASCADE'), nullable=False)
    payment_type = enum_column(PaymentType, 'payment_type', nullable=False, default=PaymentType.PARTIAL)
    payment_mode_id = db.Column(db.String(36), db.ForeignKey('payment_modes.id', ondelete='RESTRICT'),
                                nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    payment_mode = db.relationship('PaymentMode')

    __table_args__ = (db.CheckConstraint('amount >= 0', name='ck_guest_transaction_amount'),)

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'paymentType': self.payment_type.value,
            'paymentModeId': self.payment_mode_id,
            'paymentMode': self.payment_mode.payment_mode if self.payment_mode else None,
            'amount': money(self.amount),
            'paymentDate': iso(self.payment_date),
        }


class GuestExpense(db.Model):
    __tablename__ = 'guest_expenses'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    booking_id = db.Column(db.String(36), db.ForeignKey('guest_records.id', ondelete='CASCADE'), nullable=False)
    expense_type = enum_column(ExpenseType, 'expense_type', nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    food_orders = db.relationship('GuestFoodOrder', backref='expense', order_by='GuestFoodOrder.line_no',
                                  cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (db.CheckConstraint('amount >= 0', name='ck_guest_expense_amount'),)

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'expenseType': self.expense_type.value,
            'amount': money(self.amount),
            'createdAt': iso(self.created_at),
        }


class GuestFoodOrder(db.Model):
    __tablename__ = 'guest_food_orders'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    guest_expense_id = db.Column(db.String(36), db.ForeignKey('guest_expenses.id', ondelete='CASCADE'),
                                 nullable=False)
    menu_id = db.Column(db.String(36), db.ForeignKey('menus.id', ondelete='RESTRICT'), nullable=False)
    portion_type = enum_column(PortionType, 'portion_type', nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    line_no = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)

    menu = db.relationship('Menu')

    __table_args__ = (db.CheckConstraint('quantity >= 1', name='ck_guest_food_order_quantity'),)

    @property
    def total_price(self):
        return to_decimal(self.unit_price) * self.quantity

    def to_dict(self):
        """One formatted order line, as every food endpoint returns it"""
        return {
            'foodOrderId': self.id,
            'expenseId': self.guest_expense_id,
            'name': self.menu.name if self.menu else None,
            'quantity': self.quantity,
            'portionType': self.portion_type.value,
            'unitPrice': money(self.unit_price),
            'totalPrice': money(self.total_price),
        }

"""
Guest stay ledger: check-in, running balance and checkout.

The pending balance of a stay is derived, never stored:

    pending = max(0, rent * nights + food expenses - payments)

over the local days from check-in to the requested date. `sum_accrued` is the
only place that formula's inputs are computed; every endpoint that shows a
pending figure goes through it.
"""

import logging
from collections import namedtuple
from datetime import datetime, timedelta

from sqlalchemy import func

from access import require_hotel_access
from errors import NotFoundError, ValidationError, transaction
from extensions import db
from ledger import (ZERO, day_window, local_date, money, nights_between, parse_amount, parse_date,
                    parse_time, to_decimal, to_local, utc_now)
from models import (ExpenseType, GuestExpense, GuestStay, GuestTransaction, Hotel, HotelRoom, PaymentMode,
                    PaymentType, RoomStatus, SerialCounter)

logger = logging.getLogger(__name__)

STAY_SERIAL = 'guest_records.serial_no'

# Payment types that reduce the pending balance
QUALIFYING_PAYMENT_TYPES = (PaymentType.ADVANCE, PaymentType.PARTIAL, PaymentType.FINAL)

PaymentEntry = namedtuple('PaymentEntry', ['payment_type', 'payment_mode_id', 'amount'])
ExpenseEntry = namedtuple('ExpenseEntry', ['expense_type', 'amount'])


class AccruedTotals(namedtuple('AccruedTotals', ['nights', 'accrued_bill', 'food', 'payments'])):

    @property
    def pending(self):
        return max(ZERO, self.accrued_bill + self.food - self.payments)

    def to_dict(self):
        return {
            'nights': self.nights,
            'totalAccruedBill': money(self.accrued_bill),
            'totalFoodExpenses': money(self.food),
            'totalPayments': money(self.payments),
            'pendingAmount': money(self.pending),
        }


# ============================================
# LOOKUPS
# ============================================

def get_stay_or_404(booking_id):
    stay = db.session.get(GuestStay, booking_id) if booking_id else None
    if stay is None:
        raise NotFoundError('Guest record', 'Guest record not found')
    return stay


def load_stay(caller, booking_id):
    """Fetch a stay and check the caller may act on its hotel"""
    stay = get_stay_or_404(booking_id)
    require_hotel_access(caller, stay.hotel_id)
    return stay


def _required_text(data, field, max_length):
    value = data.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f'{field} is required')
    value = str(value).strip()
    if len(value) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters')
    return value


def _check_stay_times(stay):
    if stay.checkout_date is None:
        return
    if stay.checkout_time is None:
        raise ValidationError('checkoutTime is required when checkoutDate is set')
    checkin_at = datetime.combine(stay.checkin_date, stay.checkin_time)
    checkout_at = datetime.combine(stay.checkout_date, stay.checkout_time)
    if checkout_at <= checkin_at:
        raise ValidationError('Check-out date/time must be after check-in date/time')


def next_serial_no():
    """Issue the next stay serial number inside the caller's transaction"""
    counter = SerialCounter.query.filter_by(name=STAY_SERIAL).with_for_update().first()
    if counter is None:
        highest = db.session.query(func.max(GuestStay.serial_no)).scalar() or 0
        counter = SerialCounter(name=STAY_SERIAL, value=highest)
        db.session.add(counter)
    counter.value += 1
    return counter.value


def _sync_room(stay, previous_room_no=None):
    """Mirror the stay onto the hotel's room board, when the room exists there"""
    if previous_room_no and previous_room_no != stay.room_no:
        old_room = HotelRoom.query.filter_by(hotel_id=stay.hotel_id, room_no=previous_room_no).first()
        if old_room is not None and old_room.current_guest_name == stay.guest_name:
            old_room.status = RoomStatus.EMPTY
            old_room.current_guest_name = None

    room = HotelRoom.query.filter_by(hotel_id=stay.hotel_id, room_no=stay.room_no).first()
    if room is None:
        return
    if stay.is_checked_out:
        room.status = RoomStatus.CLEANING
        room.current_guest_name = None
    else:
        room.status = RoomStatus.OCCUPIED
        room.current_guest_name = stay.guest_name


# ============================================
# LEDGER ENTRIES
# ============================================

def parse_payment(data):
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValidationError('payment must be an object')
    amount = parse_amount(data.get('amount'), 'payment amount')
    if amount == ZERO:
        return None
    try:
        payment_type = PaymentType(data.get('paymentType') or PaymentType.PARTIAL.value)
    except ValueError:
        raise ValidationError('paymentType must be one of: advance, partial, final')
    payment_mode_id = data.get('paymentModeId')
    if not payment_mode_id:
        raise ValidationError('paymentModeId is required for a payment')
    if db.session.get(PaymentMode, payment_mode_id) is None:
        raise NotFoundError('Payment mode', 'The specified payment mode does not exist')
    return PaymentEntry(payment_type, payment_mode_id, amount)


def parse_expense(data):
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValidationError('expense must be an object')
    amount = parse_amount(data.get('amount'), 'expense amount')
    if amount == ZERO:
        return None
    try:
        expense_type = ExpenseType(data.get('expenseType') or ExpenseType.FOOD.value)
    except ValueError:
        raise ValidationError('expenseType must be one of: food, laundry, others')
    return ExpenseEntry(expense_type, amount)


def merge_payment(stay, entry, now):
    """Fold a payment into today's row of the same type, or start that row"""
    today = local_date(now)
    # Read then insert without a lock: two concurrent requests may both start a row
    row = GuestTransaction.query.filter_by(
        booking_id=stay.id,
        payment_type=entry.payment_type,
        payment_date=today
    ).first()
    if row is not None:
        row.amount = to_decimal(row.amount) + entry.amount
        row.updated_at = now
        return row

    row = GuestTransaction(
        booking_id=stay.id,
        payment_type=entry.payment_type,
        payment_mode_id=entry.payment_mode_id,
        amount=entry.amount,
        payment_date=today,
        created_at=now,
        updated_at=now
    )
    db.session.add(row)
    return row


def merge_expense(stay, entry, now):
    """
    Fold an expense into today's row of the same type, or start that row.

    Itemised food expenses are left alone so their amount stays equal to the
    sum of their lines.
    """
    start, end = day_window(local_date(now))
    # Read then insert without a lock: two concurrent requests may both start a row
    row = GuestExpense.query.filter(
        GuestExpense.booking_id == stay.id,
        GuestExpense.expense_type == entry.expense_type,
        GuestExpense.created_at >= start,
        GuestExpense.created_at < end,
        ~GuestExpense.food_orders.any()
    ).order_by(GuestExpense.created_at).first()
    if row is not None:
        row.amount = to_decimal(row.amount) + entry.amount
        row.updated_at = now
        return row

    row = GuestExpense(
        booking_id=stay.id,
        expense_type=entry.expense_type,
        amount=entry.amount,
        created_at=now,
        updated_at=now
    )
    db.session.add(row)
    return row


def _apply_entries(stay, payment, expense, now):
    merged = {}
    if payment is not None:
        merged['transaction'] = merge_payment(stay, payment, now)
    if expense is not None:
        merged['expense'] = merge_expense(stay, expense, now)
    return merged


def record_payment_or_expense(caller, booking_id, payment=None, expense=None, now=None):
    now = now or utc_now()
    stay = load_stay(caller, booking_id)
    payment_entry = parse_payment(payment)
    expense_entry = parse_expense(expense)
    if payment_entry is None and expense_entry is None:
        raise ValidationError('A payment or an expense amount is required')

    with transaction():
        merged = _apply_entries(stay, payment_entry, expense_entry, now)

    logger.info("[GUEST] Recorded %s for stay #%s", ', '.join(sorted(merged)), stay.serial_no)
    return merged


# ============================================
# BALANCE
# ============================================

def sum_accrued(stay, to_date, from_date=None):
    """Rent accrued, food charged and payments received between two local days"""
    from_date = from_date or stay.checkin_date
    accrual_end = to_date
    if stay.checkout_date is not None and stay.checkout_date < accrual_end:
        accrual_end = stay.checkout_date
    nights = nights_between(from_date, accrual_end)
    accrued_bill = to_decimal(stay.rent) * nights

    if to_date < from_date:
        return AccruedTotals(nights, accrued_bill, ZERO, ZERO)

    start, end = day_window(from_date, to_date)
    food = db.session.query(func.sum(GuestExpense.amount)).filter(
        GuestExpense.booking_id == stay.id,
        GuestExpense.expense_type == ExpenseType.FOOD,
        GuestExpense.created_at >= start,
        GuestExpense.created_at < end
    ).scalar()
    payments = db.session.query(func.sum(GuestTransaction.amount)).filter(
        GuestTransaction.booking_id == stay.id,
        GuestTransaction.payment_type.in_(QUALIFYING_PAYMENT_TYPES),
        GuestTransaction.payment_date >= from_date,
        GuestTransaction.payment_date <= to_date
    ).scalar()
    return AccruedTotals(nights, accrued_bill, to_decimal(food), to_decimal(payments))


def compute_pending(booking, as_of):
    """Amount the guest owes as of a local day; never negative"""
    stay = booking if isinstance(booking, GuestStay) else get_stay_or_404(booking)
    return sum_accrued(stay, as_of).pending


def stay_summary(stay, as_of):
    summary = stay.to_dict()
    summary.update(sum_accrued(stay, as_of).to_dict())
    summary['asOf'] = as_of.isoformat()
    return summary


def get_stay(caller, booking_id, as_of=None, now=None):
    stay = load_stay(caller, booking_id)
    as_of = as_of or local_date(now)
    summary = stay_summary(stay, as_of)
    summary['transactions'] = [t.to_dict() for t in stay.transactions.order_by(GuestTransaction.payment_date)]
    summary['expenses'] = [e.to_dict() for e in stay.expenses.order_by(GuestExpense.created_at)]
    return summary


def pending_for_booking(caller, booking_id, as_of=None, now=None):
    stay = load_stay(caller, booking_id)
    as_of = as_of or local_date(now)
    result = sum_accrued(stay, as_of).to_dict()
    result.update({'bookingId': stay.id, 'serialNo': stay.serial_no, 'asOf': as_of.isoformat()})
    return result


# ============================================
# STAY LIFECYCLE
# ============================================

def create_stay(caller, data, now=None):
    """Check a guest in, with an optional advance payment in the same transaction"""
    now = now or utc_now()
    hotel_id = data.get('hotelId')
    if not hotel_id:
        raise ValidationError('hotelId is required')
    require_hotel_access(caller, hotel_id)
    if db.session.get(Hotel, hotel_id) is None:
        raise NotFoundError('Hotel', 'The specified hotel does not exist')

    local_now = to_local(now)
    rent = parse_amount(data.get('rent'), 'rent')
    bill = data.get('bill')
    stay = GuestStay(
        hotel_id=hotel_id,
        guest_name=_required_text(data, 'guestName', 200),
        phone_no=_required_text(data, 'phoneNo', 20),
        room_no=_required_text(data, 'roomNo', 20),
        checkin_date=parse_date(data.get('checkinDate'), 'checkinDate', required=False) or local_now.date(),
        checkin_time=(parse_time(data.get('checkinTime'), 'checkinTime', required=False)
                      or local_now.time().replace(microsecond=0)),
        checkout_date=parse_date(data.get('checkoutDate'), 'checkoutDate', required=False),
        checkout_time=parse_time(data.get('checkoutTime'), 'checkoutTime', required=False),
        rent=rent,
        bill=parse_amount(bill, 'bill') if bill not in (None, '') else rent,
        created_at=now,
        updated_at=now
    )
    _check_stay_times(stay)

    advance = None
    if data.get('advancePayment') not in (None, ''):
        advance = parse_payment({
            'amount': data.get('advancePayment'),
            'paymentType': PaymentType.ADVANCE.value,
            'paymentModeId': data.get('paymentModeId'),
        })

    with transaction():
        stay.serial_no = next_serial_no()
        db.session.add(stay)
        db.session.flush()
        if advance is not None:
            merge_payment(stay, advance, now)
        _sync_room(stay)

    logger.info("[GUEST] Checked in stay #%s (%s) at hotel %s", stay.serial_no, stay.guest_name, hotel_id)
    return stay


def update_stay(caller, booking_id, data, now=None):
    """Edit a stay (including checkout) and merge any payment/expense, atomically"""
    now = now or utc_now()
    stay = load_stay(caller, booking_id)

    changes = {}
    for field, attr, max_length in (('guestName', 'guest_name', 200),
                                    ('phoneNo', 'phone_no', 20),
                                    ('roomNo', 'room_no', 20)):
        if field in data:
            changes[attr] = _required_text(data, field, max_length)
    for field, attr in (('rent', 'rent'), ('bill', 'bill')):
        if field in data:
            changes[attr] = parse_amount(data.get(field), field)
    if 'checkinDate' in data:
        changes['checkin_date'] = parse_date(data.get('checkinDate'), 'checkinDate')
    if 'checkinTime' in data:
        changes['checkin_time'] = parse_time(data.get('checkinTime'), 'checkinTime')
    if 'checkoutDate' in data:
        changes['checkout_date'] = parse_date(data.get('checkoutDate'), 'checkoutDate', required=False)
    if 'checkoutTime' in data:
        changes['checkout_time'] = parse_time(data.get('checkoutTime'), 'checkoutTime', required=False)

    payment_entry = parse_payment(data.get('payment'))
    expense_entry = parse_expense(data.get('expense'))

    previous_room_no = stay.room_no
    with transaction():
        for attr, value in changes.items():
            setattr(stay, attr, value)
        _check_stay_times(stay)
        stay.updated_at = now
        merged = _apply_entries(stay, payment_entry, expense_entry, now)
        _sync_room(stay, previous_room_no)

    logger.info("[GUEST] Updated stay #%s (fields: %s, ledger: %s)", stay.serial_no,
                ', '.join(sorted(changes)) or '-', ', '.join(sorted(merged)) or '-')
    return stay


def delete_stay(caller, booking_id):
    stay = load_stay(caller, booking_id)
    serial_no = stay.serial_no
    with transaction():
        if not stay.is_checked_out:
            room = HotelRoom.query.filter_by(hotel_id=stay.hotel_id, room_no=stay.room_no).first()
            if room is not None and room.current_guest_name == stay.guest_name:
                room.status = RoomStatus.EMPTY
                room.current_guest_name = None
        db.session.delete(stay)
    logger.info("[GUEST] Deleted stay #%s", serial_no)
    return booking_id


# ============================================
# CUSTOMER BILL
# ============================================

def build_customer_bill(caller, booking_id, now=None):
    """Day-by-day bill from check-in to checkout (or today)"""
    stay = load_stay(caller, booking_id)
    today = local_date(now)
    last_day = stay.checkout_date or today
    if last_day < stay.checkin_date:
        last_day = stay.checkin_date

    expenses = stay.expenses.order_by(GuestExpense.created_at).all()
    transactions = stay.transactions.order_by(GuestTransaction.payment_date, GuestTransaction.created_at).all()

    expenses_by_day = {}
    for expense in expenses:
        expenses_by_day.setdefault(local_date(expense.created_at), []).append(expense)
    payments_by_day = {}
    for payment in transactions:
        payments_by_day.setdefault(payment.payment_date, []).append(payment)

    rent = to_decimal(stay.rent)
    daily_breakdown = []
    all_food_orders = []
    all_other_expenses = []
    for offset in range(nights_between(stay.checkin_date, last_day)):
        day = stay.checkin_date + timedelta(days=offset)
        day_expenses = expenses_by_day.get(day, [])
        day_payments = payments_by_day.get(day, [])

        food_details = []
        other_expenses = []
        for expense in day_expenses:
            if expense.expense_type == ExpenseType.FOOD:
                food_details.extend(order.to_dict() for order in expense.food_orders)
            elif expense.expense_type in (ExpenseType.LAUNDRY, ExpenseType.OTHERS):
                other_expenses.append({
                    'type': expense.expense_type.value,
                    'amount': money(expense.amount),
                    'description': f'{expense.expense_type.value.capitalize()} expense',
                })
        daily_expenses = sum((to_decimal(e.amount) for e in day_expenses), ZERO)
        daily_payments = sum((to_decimal(p.amount) for p in day_payments), ZERO)

        all_food_orders.extend(dict(line, date=day.isoformat()) for line in food_details)
        all_other_expenses.extend(dict(item, date=day.isoformat()) for item in other_expenses)
        daily_breakdown.append({
            'date': day.isoformat(),
            'dailyRent': money(rent),
            'dailyExpenses': money(daily_expenses),
            'dailyPayments': money(daily_payments),
            'foodDetails': food_details,
            'otherExpenses': other_expenses,
            'netDailyAmount': money(rent + daily_expenses - daily_payments),
        })

    as_of = max(today, stay.checkin_date)
    totals = sum_accrued(stay, as_of)
    other_total = sum((to_decimal(e.amount) for e in expenses if e.expense_type != ExpenseType.FOOD), ZERO)

    return {
        'guestInfo': {
            'bookingId': stay.id,
            'serialNo': stay.serial_no,
            'guestName': stay.guest_name,
            'phoneNo': stay.phone_no,
            'roomNo': stay.room_no,
            'checkinDate': stay.checkin_date.isoformat(),
            'checkoutDate': stay.checkout_date.isoformat() if stay.checkout_date else None,
            'hotelName': stay.hotel.name,
        },
        'billSummary': {
            'totalDays': totals.nights,
            'dailyRent': money(rent),
            'totalRent': money(totals.accrued_bill),
            'totalFoodExpenses': money(totals.food),
            'totalOtherExpenses': money(other_total),
            'totalPayments': money(totals.payments),
            'pendingAmount': money(totals.pending),
            'asOf': as_of.isoformat(),
        },
        'dailyBreakdown': daily_breakdown,
        'allFoodOrders': all_food_orders,
        'allOtherExpenses': all_other_expenses,
        'paymentHistory': [t.to_dict() for t in transactions],
    }

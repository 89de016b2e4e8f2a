"""
Hotel-wide figures and guest listings built on top of the guest ledger.
"""

from sqlalchemy import func, or_

from access import accessible_hotel_ids, require_hotel_access
from errors import AccessDeniedError, NotFoundError, ValidationError
from extensions import db
from guest_ledger import sum_accrued
from ledger import (DEFAULT_PAGE_LIMIT, ZERO, day_window, like_pattern, local_date, money, month_bounds,
                    pagination_meta, to_decimal)
from models import ExpenseType, GuestExpense, GuestStay, GuestTransaction, Hotel, PaymentMode, Role


def _get_hotel(caller, hotel_id):
    require_hotel_access(caller, hotel_id)
    hotel = db.session.get(Hotel, hotel_id) if hotel_id else None
    if hotel is None:
        raise NotFoundError('Hotel', 'The specified hotel does not exist')
    return hotel


def relevant_stays(hotel_id, target_date, search=None):
    """Stays in house on target_date, plus those checking out that day"""
    query = GuestStay.query.filter(
        GuestStay.hotel_id == hotel_id,
        GuestStay.checkin_date <= target_date,
        or_(GuestStay.checkout_date.is_(None), GuestStay.checkout_date == target_date)
    )
    if search and search.strip():
        query = query.filter(GuestStay.guest_name.ilike(like_pattern(search.strip()), escape='\\'))
    return query


def _food_on_day(stay_ids, target_date):
    if not stay_ids:
        return {}
    start, end = day_window(target_date)
    rows = db.session.query(GuestExpense.booking_id, func.sum(GuestExpense.amount)).filter(
        GuestExpense.booking_id.in_(stay_ids),
        GuestExpense.expense_type == ExpenseType.FOOD,
        GuestExpense.created_at >= start,
        GuestExpense.created_at < end
    ).group_by(GuestExpense.booking_id).all()
    return {booking_id: to_decimal(total) for booking_id, total in rows}


def _day_record(stay, target_date, pending):
    start, end = day_window(target_date)
    record = stay.to_dict()
    record['transactions'] = [
        t.to_dict() for t in stay.transactions.filter(GuestTransaction.payment_date == target_date)
        .order_by(GuestTransaction.created_at)
    ]
    record['expenses'] = [
        e.to_dict() for e in stay.expenses.filter(GuestExpense.created_at >= start, GuestExpense.created_at < end)
        .order_by(GuestExpense.created_at)
    ]
    record['pendingAmount'] = money(pending)
    return record


def hotel_day_rollup(caller, hotel_id, target_date=None, page=1, limit=DEFAULT_PAGE_LIMIT, search=None, now=None):
    """
    One page of the day's stays for a hotel, with totals over every relevant stay.

    Sales for the day are the stays' bills plus food charged that day; the
    pending total is the sum of each stay's balance as of target_date.
    """
    hotel = _get_hotel(caller, hotel_id)
    target_date = target_date or local_date(now)

    stays = relevant_stays(hotel.id, target_date, search).order_by(GuestStay.serial_no.desc()).all()
    food_by_stay = _food_on_day([stay.id for stay in stays], target_date)
    pending_by_stay = {stay.id: sum_accrued(stay, target_date).pending for stay in stays}

    total_bill = sum((to_decimal(stay.bill) for stay in stays), ZERO)
    total_food = sum(food_by_stay.values(), ZERO)
    total_pending = sum(pending_by_stay.values(), ZERO)

    offset = (page - 1) * limit
    records = [_day_record(stay, target_date, pending_by_stay[stay.id]) for stay in stays[offset:offset + limit]]

    return {
        'records': records,
        'hotel': {'id': hotel.id, 'name': hotel.name},
        'summary': {
            'date': target_date.isoformat(),
            'todayTotalSales': money(total_bill + total_food),
            'totalPendingAmount': money(total_pending),
            'totalRecords': len(stays),
        },
        'pagination': pagination_meta(page, limit, len(stays)),
    }


def list_guest_records(caller, hotel_id=None, start_date=None, end_date=None, room_no=None, guest_name=None,
                       page=1, limit=DEFAULT_PAGE_LIMIT, now=None):
    """Stays across every hotel the caller can see, newest first, each with its balance as of today"""
    if hotel_id:
        _get_hotel(caller, hotel_id)
        hotel_ids = [hotel_id]
    else:
        hotel_ids = accessible_hotel_ids(caller)
        if not hotel_ids and getattr(caller, 'role', None) == Role.MANAGER:
            raise AccessDeniedError('You do not have access to any hotels', error='No access')
    if start_date and end_date and start_date > end_date:
        raise ValidationError('startDate must not be after endDate')

    query = GuestStay.query.filter(GuestStay.hotel_id.in_(hotel_ids))
    if start_date:
        query = query.filter(GuestStay.checkin_date >= start_date)
    if end_date:
        query = query.filter(GuestStay.checkin_date <= end_date)
    if room_no and room_no.strip():
        query = query.filter(GuestStay.room_no.ilike(like_pattern(room_no.strip()), escape='\\'))
    if guest_name and guest_name.strip():
        query = query.filter(GuestStay.guest_name.ilike(like_pattern(guest_name.strip()), escape='\\'))

    total = query.count()
    stays = query.order_by(GuestStay.serial_no.desc()).offset((page - 1) * limit).limit(limit).all()
    today = local_date(now)
    records = []
    for stay in stays:
        record = stay.to_dict()
        record['hotel'] = {'id': stay.hotel.id, 'name': stay.hotel.name}
        record['pendingAmount'] = money(sum_accrued(stay, today).pending)
        records.append(record)
    return {'records': records, 'pagination': pagination_meta(page, limit, total)}

def _received_by_mode(hotel_id, first_day, last_day):
    rows = db.session.query(GuestTransaction.payment_mode_id, func.sum(GuestTransaction.amount)).join(
        GuestStay, GuestTransaction.booking_id == GuestStay.id
    ).filter(
        GuestStay.hotel_id == hotel_id,
        GuestTransaction.payment_date >= first_day,
        GuestTransaction.payment_date <= last_day
    ).group_by(GuestTransaction.payment_mode_id).all()
    return {mode_id: to_decimal(total) for mode_id, total in rows}


def payment_mode_report(caller, hotel_id, now=None):
    """Money received per payment mode, today and this calendar month"""
    hotel = _get_hotel(caller, hotel_id)
    today = local_date(now)
    month_first, month_last = month_bounds(today)

    modes = PaymentMode.query.filter_by(created_by=caller.id).order_by(PaymentMode.payment_mode).all()
    today_totals = _received_by_mode(hotel.id, today, today)
    month_totals = _received_by_mode(hotel.id, month_first, month_last)

    def rows(totals):
        return [
            {'paymentModeId': mode.id, 'paymentMode': mode.payment_mode, 'totalAmount': money(totals.get(mode.id))}
            for mode in modes
        ]

    return {
        'today': rows(today_totals),
        'thisMonth': rows(month_totals),
        'meta': {
            'hotelId': hotel.id,
            'date': today.isoformat(),
            'todayTotal': money(sum((today_totals.get(mode.id, ZERO) for mode in modes), ZERO)),
            'monthTotal': money(sum((month_totals.get(mode.id, ZERO) for mode in modes), ZERO)),
        },
    }

"""
Hotel operating expenses (rent of premises, supplies, wages...), recorded
against an expense mode. These are not guest charges.
"""

import logging

from access import require_hotel_access
from errors import NotFoundError, ValidationError, transaction
from extensions import db
from ledger import ZERO, day_window, local_date, money, parse_amount, to_decimal, utc_now
from models import Expense, ExpenseMode, Hotel

logger = logging.getLogger(__name__)


def create_expense(caller, data, now=None):
    data = data or {}
    hotel_id = data.get('hotelId')
    if not hotel_id:
        raise ValidationError('hotelId is required')
    require_hotel_access(caller, hotel_id)
    if db.session.get(Hotel, hotel_id) is None:
        raise NotFoundError('Hotel', 'The specified hotel does not exist')

    expense_mode_id = data.get('expenseModeId')
    if not expense_mode_id:
        raise ValidationError('expenseModeId is required')
    if db.session.get(ExpenseMode, expense_mode_id) is None:
        raise NotFoundError('Expense mode', 'The specified expense mode does not exist')

    amount = parse_amount(data.get('amount'))
    description = str(data.get('description') or '').strip() or None

    with transaction():
        expense = Expense(
            hotel_id=hotel_id,
            expense_mode_id=expense_mode_id,
            amount=amount,
            description=description,
            created_by=caller.id,
            created_at=now or utc_now()
        )
        db.session.add(expense)

    logger.info("[EXPENSE] Recorded %s expense at hotel %s", money(amount), hotel_id)
    return expense


def list_expenses(caller, hotel_id, day=None, now=None):
    """Expenses of one local day at a hotel, with their total"""
    require_hotel_access(caller, hotel_id)
    if db.session.get(Hotel, hotel_id) is None:
        raise NotFoundError('Hotel', 'The specified hotel does not exist')
    day = day or local_date(now)
    start, end = day_window(day)
    expenses = Expense.query.filter(
        Expense.hotel_id == hotel_id,
        Expense.created_at >= start,
        Expense.created_at < end
    ).order_by(Expense.created_at).all()
    return {
        'date': day.isoformat(),
        'expenses': [expense.to_dict() for expense in expenses],
        'totalAmount': money(sum((to_decimal(expense.amount) for expense in expenses), ZERO)),
    }


def get_expense_or_404(expense_id):
    expense = db.session.get(Expense, expense_id) if expense_id else None
    if expense is None:
        raise NotFoundError('Expense', 'The specified expense does not exist')
    return expense


def update_expense(caller, expense_id, data):
    """Change the mode, amount or description of an expense; hotel and date stay put"""
    expense = get_expense_or_404(expense_id)
    require_hotel_access(caller, expense.hotel_id)
    data = data or {}

    fields = {}
    if data.get('expenseModeId'):
        if db.session.get(ExpenseMode, data['expenseModeId']) is None:
            raise NotFoundError('Expense mode', 'The specified expense mode does not exist')
        fields['expense_mode_id'] = data['expenseModeId']
    if 'amount' in data:
        fields['amount'] = parse_amount(data.get('amount'))
    if 'description' in data:
        fields['description'] = str(data.get('description') or '').strip() or None

    with transaction():
        for attr, value in fields.items():
            setattr(expense, attr, value)
    logger.info("[EXPENSE] Updated expense %s (%s)", expense.id, ', '.join(sorted(fields)) or '-')
    return expense


def delete_expense(caller, expense_id):
    expense = get_expense_or_404(expense_id)
    require_hotel_access(caller, expense.hotel_id)
    with transaction():
        db.session.delete(expense)
    logger.info("[EXPENSE] Deleted expense %s", expense_id)
    return expense_id

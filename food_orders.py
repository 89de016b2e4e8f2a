"""
Itemised food orders for a guest.

Each order batch is one food GuestExpense whose amount is the sum of its
GuestFoodOrder lines. Replacing a batch rewrites all of its lines.
"""

import logging
from collections import namedtuple

from access import require_hotel_access
from errors import NotFoundError, ValidationError, transaction
from extensions import db
from guest_ledger import load_stay
from ledger import ZERO, day_window, local_date, money, to_decimal, utc_now
from models import ExpenseType, GuestExpense, GuestFoodOrder, Menu, PortionType

logger = logging.getLogger(__name__)

PricedLine = namedtuple('PricedLine', ['menu', 'portion_type', 'quantity', 'unit_price', 'total'])


def price_line(menu, portion_type, quantity):
    if portion_type == PortionType.HALF:
        if menu.half_plate_price is None:
            raise ValidationError(f'half plate not available for {menu.name}', error='Half plate not available')
        unit_price = to_decimal(menu.half_plate_price)
    elif portion_type == PortionType.FULL:
        unit_price = to_decimal(menu.full_plate_price)
    else:
        raise ValidationError('portionType must be half or full')
    return PricedLine(menu, portion_type, quantity, unit_price, unit_price * quantity)


def _parse_quantity(value):
    if isinstance(value, bool):
        raise ValidationError('quantity must be a whole number of at least 1')
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError('quantity must be a whole number of at least 1')
    if quantity < 1 or str(quantity) != str(value).strip():
        raise ValidationError('quantity must be a whole number of at least 1')
    return quantity


def price_lines(lines):
    """Validate (menuId, portionType, quantity) items and price them against the menu"""
    if not isinstance(lines, list) or not lines:
        raise ValidationError('At least one food item is required')
    if not all(isinstance(item, dict) for item in lines):
        raise ValidationError('Each food item must be an object')

    menu_ids = {item.get('menuId') for item in lines if item.get('menuId')}
    menus = {menu.id: menu for menu in Menu.query.filter(Menu.id.in_(menu_ids)).all()} if menu_ids else {}

    priced = []
    for item in lines:
        menu_id = item.get('menuId')
        if not menu_id:
            raise ValidationError('menuId is required for every food item')
        menu = menus.get(menu_id)
        if menu is None:
            raise NotFoundError('Menu item', f'Menu item with ID {menu_id} does not exist')
        try:
            portion_type = PortionType(item.get('portionType'))
        except ValueError:
            raise ValidationError('portionType must be half or full')
        priced.append(price_line(menu, portion_type, _parse_quantity(item.get('quantity', 1))))
    return priced


def _order_rows(expense, priced, now):
    return [
        GuestFoodOrder(
            guest_expense_id=expense.id,
            menu_id=line.menu.id,
            portion_type=line.portion_type,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_no=line_no,
            created_at=now
        )
        for line_no, line in enumerate(priced, start=1)
    ]


def format_orders(expenses, day):
    orders = []
    grand_total = ZERO
    for expense in expenses:
        for order in expense.food_orders:
            orders.append(order.to_dict())
            grand_total += order.total_price
    return {'orders': orders, 'grandTotal': money(grand_total), 'date': day.isoformat()}


def add_food_expense(caller, booking_id, lines, now=None):
    now = now or utc_now()
    stay = load_stay(caller, booking_id)
    priced = price_lines(lines)
    total = sum((line.total for line in priced), ZERO)

    with transaction():
        expense = GuestExpense(
            booking_id=stay.id,
            expense_type=ExpenseType.FOOD,
            amount=total,
            created_at=now,
            updated_at=now
        )
        db.session.add(expense)
        db.session.flush()
        db.session.add_all(_order_rows(expense, priced, now))

    logger.info("[FOOD] Added %d item(s) worth %s to stay #%s", len(priced), money(total), stay.serial_no)
    return format_orders([expense], local_date(expense.created_at))


def replace_food_expense(caller, expense_id, lines, now=None):
    """Swap every line of a food expense for a new, re-priced set"""
    now = now or utc_now()
    expense = db.session.get(GuestExpense, expense_id) if expense_id else None
    if expense is None:
        raise NotFoundError('Expense', 'The specified expense ID does not exist')
    require_hotel_access(caller, expense.booking.hotel_id)
    if expense.expense_type != ExpenseType.FOOD:
        raise ValidationError('This function can only update food expenses', error='Invalid expense type')
    priced = price_lines(lines)
    total = sum((line.total for line in priced), ZERO)

    with transaction():
        GuestFoodOrder.query.filter_by(guest_expense_id=expense.id).delete(synchronize_session=False)
        db.session.expire(expense, ['food_orders'])
        db.session.add_all(_order_rows(expense, priced, now))
        expense.amount = total
        expense.updated_at = now

    logger.info("[FOOD] Replaced items of expense %s: %d item(s), %s", expense.id, len(priced), money(total))
    return format_orders([expense], local_date(expense.created_at))


def get_food_expense_for_date(caller, booking_id, day=None, now=None):
    stay = load_stay(caller, booking_id)
    day = day or local_date(now)
    start, end = day_window(day)
    expenses = GuestExpense.query.filter(
        GuestExpense.booking_id == stay.id,
        GuestExpense.expense_type == ExpenseType.FOOD,
        GuestExpense.created_at >= start,
        GuestExpense.created_at < end
    ).order_by(GuestExpense.created_at).all()
    return format_orders(expenses, day)

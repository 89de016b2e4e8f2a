"""
Creator-scoped catalogs: menus, payment modes and expense modes.

Every row belongs to the user who created it and is invisible to others.
"""

import logging

from errors import ConflictError, NotFoundError, ValidationError, transaction
from extensions import db
from ledger import like_pattern, parse_amount
from models import Expense, ExpenseMode, GuestFoodOrder, GuestTransaction, Menu, PaymentMode

logger = logging.getLogger(__name__)


def _owned(model, caller, item_id, entity):
    item = db.session.get(model, item_id) if item_id else None
    if item is None or item.created_by != caller.id:
        raise NotFoundError(entity, f'{entity} not found')
    return item


def _label(data, field, max_length=100):
    value = str((data or {}).get(field) or '').strip()
    if not value:
        raise ValidationError(f'{field} is required')
    if len(value) > max_length:
        raise ValidationError(f'{field} must be less than {max_length} characters')
    return value


def _delete(item, in_use, entity):
    if in_use:
        raise ConflictError(f'{entity} is used by existing records and cannot be deleted', error=f'{entity} in use')
    item_id = item.id
    with transaction():
        db.session.delete(item)
    logger.info("[CATALOG] Deleted %s %s", entity.lower(), item_id)
    return item_id


# ============================================
# MENUS
# ============================================

def _menu_fields(data, partial=False):
    data = data or {}
    fields = {}
    if not partial or 'name' in data:
        fields['name'] = _label(data, 'name', 200)
    if not partial or 'fullPlatePrice' in data:
        fields['full_plate_price'] = parse_amount(data.get('fullPlatePrice'), 'fullPlatePrice')
    if 'halfPlatePrice' in data:
        half = data.get('halfPlatePrice')
        fields['half_plate_price'] = parse_amount(half, 'halfPlatePrice') if half not in (None, '') else None
    if 'description' in data:
        fields['description'] = str(data.get('description') or '').strip() or None
    return fields


def create_menu(caller, data):
    fields = _menu_fields(data)
    with transaction():
        menu = Menu(created_by=caller.id, **fields)
        db.session.add(menu)
    logger.info("[CATALOG] Created menu item %s", menu.name)
    return menu


def list_menus(caller):
    return Menu.query.filter_by(created_by=caller.id).order_by(Menu.name).all()


def search_menus(caller, search):
    """Case-insensitive partial match on the menu name"""
    search = (search or '').strip()
    if not search:
        raise ValidationError('search is required')
    return Menu.query.filter(
        Menu.created_by == caller.id,
        Menu.name.ilike(like_pattern(search), escape='\\')
    ).order_by(Menu.name).all()


def get_menu(caller, menu_id):
    return _owned(Menu, caller, menu_id, 'Menu')


def update_menu(caller, menu_id, data):
    menu = get_menu(caller, menu_id)
    fields = _menu_fields(data, partial=True)
    with transaction():
        for attr, value in fields.items():
            setattr(menu, attr, value)
    logger.info("[CATALOG] Updated menu item %s", menu.id)
    return menu


def delete_menu(caller, menu_id):
    menu = get_menu(caller, menu_id)
    in_use = GuestFoodOrder.query.filter_by(menu_id=menu.id).first() is not None
    return _delete(menu, in_use, 'Menu')


# ============================================
# PAYMENT MODES
# ============================================

def create_payment_mode(caller, data):
    label = _label(data, 'paymentMode')
    with transaction():
        mode = PaymentMode(payment_mode=label, created_by=caller.id)
        db.session.add(mode)
    logger.info("[CATALOG] Created payment mode %s", label)
    return mode


def list_payment_modes(caller):
    return PaymentMode.query.filter_by(created_by=caller.id).order_by(PaymentMode.payment_mode).all()


def get_payment_mode(caller, mode_id):
    return _owned(PaymentMode, caller, mode_id, 'Payment mode')


def update_payment_mode(caller, mode_id, data):
    mode = get_payment_mode(caller, mode_id)
    label = _label(data, 'paymentMode')
    with transaction():
        mode.payment_mode = label
    logger.info("[CATALOG] Renamed payment mode %s to %s", mode.id, label)
    return mode


def delete_payment_mode(caller, mode_id):
    mode = get_payment_mode(caller, mode_id)
    in_use = GuestTransaction.query.filter_by(payment_mode_id=mode.id).first() is not None
    return _delete(mode, in_use, 'Payment mode')


# ============================================
# EXPENSE MODES
# ============================================

def create_expense_mode(caller, data):
    label = _label(data, 'expenseMode')
    with transaction():
        mode = ExpenseMode(expense_mode=label, created_by=caller.id)
        db.session.add(mode)
    logger.info("[CATALOG] Created expense mode %s", label)
    return mode


def list_expense_modes(caller):
    return ExpenseMode.query.filter_by(created_by=caller.id).order_by(ExpenseMode.expense_mode).all()


def get_expense_mode(caller, mode_id):
    return _owned(ExpenseMode, caller, mode_id, 'Expense mode')


def update_expense_mode(caller, mode_id, data):
    mode = get_expense_mode(caller, mode_id)
    label = _label(data, 'expenseMode')
    with transaction():
        mode.expense_mode = label
    logger.info("[CATALOG] Renamed expense mode %s to %s", mode.id, label)
    return mode


def delete_expense_mode(caller, mode_id):
    mode = get_expense_mode(caller, mode_id)
    in_use = Expense.query.filter_by(expense_mode_id=mode.id).first() is not None
    return _delete(mode, in_use, 'Expense mode')

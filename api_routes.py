from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

import catalog
import expenses
import food_orders
import guest_ledger
import hotels
import rollup
from auth import admin_required, generate_token, role_required, signin, signup, update_profile
from errors import ValidationError
from ledger import parse_date, parse_pagination
from models import Role

# Create API blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')

staff_required = role_required(Role.ADMIN, Role.MANAGER)


def respond(message, data=None, code=200, **extra):
    body = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    body.update(extra)
    return jsonify(body), code


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def date_arg(name='date'):
    return parse_date(request.args.get(name), name, required=False)


# ============================================
# AUTH
# ============================================

@api_bp.route('/auth/signup', methods=['POST'])
def auth_signup():
    """Register a user and return a JWT token"""
    user, token = signup(json_body())
    return respond('User registered successfully', {'user': user.to_dict(), 'token': token}, 201)


@api_bp.route('/auth/signin', methods=['POST'])
def auth_signin():
    """Login user and return JWT token"""
    user, token = signin(json_body())
    return respond('Login successful', {'user': user.to_dict(), 'token': token})


@api_bp.route('/auth/me', methods=['GET'])
@login_required
def auth_me():
    return respond('User retrieved successfully', {'user': current_user.to_dict(),
                                                   'token': generate_token(current_user)})


@api_bp.route('/auth/profile', methods=['PUT'])
@login_required
def auth_update_profile():
    user = update_profile(current_user, json_body())
    return respond('Profile updated successfully', {'user': user.to_dict()})


# ============================================
# HOTELS
# ============================================

@api_bp.route('/hotels', methods=['POST'])
@admin_required
def create_hotel():
    hotel = hotels.create_hotel(current_user, json_body())
    data = hotel.to_dict()
    data['rooms'] = hotel.rooms.count()
    return respond('Hotel created successfully', data, 201)


@api_bp.route('/hotels', methods=['GET'])
@staff_required
def list_hotels():
    return respond('Hotels retrieved successfully', [h.to_dict() for h in hotels.list_hotels(current_user)])


@api_bp.route('/hotels/<hotel_id>', methods=['GET'])
@staff_required
def get_hotel(hotel_id):
    return respond('Hotel retrieved successfully', hotels.get_hotel(current_user, hotel_id).to_dict())


@api_bp.route('/hotels/<hotel_id>', methods=['PUT'])
@admin_required
def update_hotel(hotel_id):
    hotel = hotels.update_hotel(current_user, hotel_id, json_body())
    return respond('Hotel updated successfully', hotel.to_dict())


@api_bp.route('/hotels/<hotel_id>', methods=['DELETE'])
@admin_required
def delete_hotel(hotel_id):
    hotels.delete_hotel(current_user, hotel_id)
    return respond('Hotel deleted successfully', {'id': hotel_id})


@api_bp.route('/hotels/<hotel_id>/managers', methods=['POST'])
@admin_required
def assign_manager(hotel_id):
    assignment = hotels.assign_manager(current_user, hotel_id, json_body())
    return respond('Manager assigned to hotel successfully', assignment.to_dict(), 201)


@api_bp.route('/hotels/<hotel_id>/managers', methods=['GET'])
@staff_required
def list_hotel_managers(hotel_id):
    assignments = hotels.list_hotel_managers(current_user, hotel_id, request.args.get('status'))
    return respond('Hotel managers retrieved successfully', [a.to_dict() for a in assignments])


@api_bp.route('/hotel-managers/<assignment_id>/status', methods=['PUT'])
@admin_required
def set_assignment_status(assignment_id):
    assignment = hotels.set_assignment_status(current_user, assignment_id, json_body().get('status'))
    return respond('Assignment status updated successfully', assignment.to_dict())


@api_bp.route('/hotels/<hotel_id>/categories', methods=['POST'])
@staff_required
def create_category(hotel_id):
    category = hotels.create_category(current_user, hotel_id, json_body())
    return respond('Room category created successfully', category.to_dict(), 201)


@api_bp.route('/hotels/<hotel_id>/categories', methods=['GET'])
@staff_required
def list_categories(hotel_id):
    categories = hotels.list_categories(current_user, hotel_id)
    return respond('Room categories retrieved successfully', [c.to_dict() for c in categories])

@api_bp.route('/hotel-categories/<category_id>', methods=['PUT'])
@staff_required
def update_category(category_id):
    category = hotels.update_category(current_user, category_id, json_body())
    return respond('Room category updated successfully', category.to_dict())


@api_bp.route('/hotel-categories/<category_id>', methods=['DELETE'])
@staff_required
def delete_category(category_id):
    hotels.delete_category(current_user, category_id)
    return respond('Room category deleted successfully', {'id': category_id})


@api_bp.route('/hotels/<hotel_id>/rooms', methods=['GET'])
@staff_required
def list_rooms(hotel_id):
    rooms = hotels.list_rooms(current_user, hotel_id, request.args.get('status'))
    return respond('Rooms retrieved successfully', [r.to_dict() for r in rooms])

@api_bp.route('/hotels/<hotel_id>/rooms', methods=['POST'])
@staff_required
def create_room(hotel_id):
    room = hotels.create_room(current_user, hotel_id, json_body())
    return respond('Hotel room created successfully', room.to_dict(), 201)


@api_bp.route('/rooms/<room_id>', methods=['GET'])
@staff_required
def get_room(room_id):
    return respond('Hotel room retrieved successfully', hotels.get_room(current_user, room_id).to_dict())


@api_bp.route('/rooms/<room_id>', methods=['PUT'])
@staff_required
def update_room(room_id):
    """Change a room's status (e.g. cleaning back to empty), number, category or guest"""
    room = hotels.update_room(current_user, room_id, json_body())
    return respond('Hotel room updated successfully', room.to_dict())


@api_bp.route('/rooms/<room_id>', methods=['DELETE'])
@staff_required
def delete_room(room_id):
    hotels.delete_room(current_user, room_id)
    return respond('Hotel room deleted successfully', {'id': room_id})


# ============================================
# MENUS, PAYMENT MODES, EXPENSE MODES
# ============================================

@api_bp.route('/menus', methods=['POST'])
@staff_required
def create_menu():
    return respond('Menu created successfully', catalog.create_menu(current_user, json_body()).to_dict(), 201)


@api_bp.route('/menus', methods=['GET'])
@staff_required
def list_menus():
    return respond('Menus retrieved successfully', [m.to_dict() for m in catalog.list_menus(current_user)])


@api_bp.route('/menus/search', methods=['GET'])
@staff_required
def search_menus():
    search = request.args.get('search') or request.args.get('q')
    menus = catalog.search_menus(current_user, search)
    return respond(f'Found {len(menus)} menu(s) matching "{search.strip()}"', [m.to_dict() for m in menus])


@api_bp.route('/menus/<menu_id>', methods=['GET'])
@staff_required
def get_menu(menu_id):
    return respond('Menu retrieved successfully', catalog.get_menu(current_user, menu_id).to_dict())


@api_bp.route('/menus/<menu_id>', methods=['PUT'])
@staff_required
def update_menu(menu_id):
    return respond('Menu updated successfully', catalog.update_menu(current_user, menu_id, json_body()).to_dict())


@api_bp.route('/menus/<menu_id>', methods=['DELETE'])
@staff_required
def delete_menu(menu_id):
    catalog.delete_menu(current_user, menu_id)
    return respond('Menu deleted successfully', {'id': menu_id})


@api_bp.route('/payment-modes', methods=['POST'])
@staff_required
def create_payment_mode():
    mode = catalog.create_payment_mode(current_user, json_body())
    return respond('Payment mode created successfully', mode.to_dict(), 201)


@api_bp.route('/payment-modes', methods=['GET'])
@staff_required
def list_payment_modes():
    modes = catalog.list_payment_modes(current_user)
    return respond('Payment modes retrieved successfully', [m.to_dict() for m in modes])


@api_bp.route('/payment-modes/<mode_id>', methods=['PUT'])
@staff_required
def update_payment_mode(mode_id):
    mode = catalog.update_payment_mode(current_user, mode_id, json_body())
    return respond('Payment mode updated successfully', mode.to_dict())


@api_bp.route('/payment-modes/<mode_id>', methods=['DELETE'])
@staff_required
def delete_payment_mode(mode_id):
    catalog.delete_payment_mode(current_user, mode_id)
    return respond('Payment mode deleted successfully', {'id': mode_id})


@api_bp.route('/expense-modes', methods=['POST'])
@staff_required
def create_expense_mode():
    mode = catalog.create_expense_mode(current_user, json_body())
    return respond('Expense mode created successfully', mode.to_dict(), 201)


@api_bp.route('/expense-modes', methods=['GET'])
@staff_required
def list_expense_modes():
    modes = catalog.list_expense_modes(current_user)
    return respond('Expense modes retrieved successfully', [m.to_dict() for m in modes])


@api_bp.route('/expense-modes/<mode_id>', methods=['PUT'])
@staff_required
def update_expense_mode(mode_id):
    mode = catalog.update_expense_mode(current_user, mode_id, json_body())
    return respond('Expense mode updated successfully', mode.to_dict())


@api_bp.route('/expense-modes/<mode_id>', methods=['DELETE'])
@staff_required
def delete_expense_mode(mode_id):
    catalog.delete_expense_mode(current_user, mode_id)
    return respond('Expense mode deleted successfully', {'id': mode_id})


# ============================================
# HOTEL EXPENSES
# ============================================

@api_bp.route('/expenses', methods=['POST'])
@staff_required
def create_expense():
    expense = expenses.create_expense(current_user, json_body())
    return respond('Expense created successfully', expense.to_dict(), 201)


@api_bp.route('/hotels/<hotel_id>/expenses', methods=['GET'])
@staff_required
def list_expenses(hotel_id):
    data = expenses.list_expenses(current_user, hotel_id, date_arg())
    return respond('Expenses retrieved successfully', data)


@api_bp.route('/expenses/<expense_id>', methods=['PUT'])
@staff_required
def update_expense(expense_id):
    expense = expenses.update_expense(current_user, expense_id, json_body())
    return respond('Expense updated successfully', expense.to_dict())


@api_bp.route('/expenses/<expense_id>', methods=['DELETE'])
@staff_required
def delete_expense(expense_id):
    expenses.delete_expense(current_user, expense_id)
    return respond('Expense deleted successfully', {'id': expense_id})


# ============================================
# GUEST RECORDS
# ============================================

@api_bp.route('/guest-records', methods=['POST'])
@staff_required
def create_guest_record():
    """Check a guest in"""
    stay = guest_ledger.create_stay(current_user, json_body())
    return respond('Guest record created successfully', guest_ledger.get_stay(current_user, stay.id), 201)


@api_bp.route('/guest-records', methods=['GET'])
@staff_required
def list_all_guest_records():
    """Stays across the caller's hotels, filtered by hotel, check-in dates, room and guest name"""
    page, limit = parse_pagination(request.args.get('page'), request.args.get('limit'))
    result = rollup.list_guest_records(
        current_user,
        hotel_id=request.args.get('hotelId'),
        start_date=date_arg('startDate'),
        end_date=date_arg('endDate'),
        room_no=request.args.get('roomNo'),
        guest_name=request.args.get('guestName'),
        page=page,
        limit=limit
    )
    return respond('Guest records retrieved successfully', **result)


@api_bp.route('/guest-records/hotel/<hotel_id>', methods=['GET'])
@staff_required
def list_guest_records(hotel_id):
    """Guests in house on a date, with the day's totals"""
    page, limit = parse_pagination(request.args.get('page'), request.args.get('limit'))
    result = rollup.hotel_day_rollup(current_user, hotel_id, date_arg(), page, limit,
                                     search=request.args.get('search'))
    return respond('Guest records retrieved successfully', **result)


@api_bp.route('/guest-records/<booking_id>', methods=['GET'])
@staff_required
def get_guest_record(booking_id):
    data = guest_ledger.get_stay(current_user, booking_id, as_of=date_arg())
    return respond('Guest record retrieved successfully', data)


@api_bp.route('/guest-records/<booking_id>', methods=['PUT'])
@staff_required
def update_guest_record(booking_id):
    """Edit a stay, check out, or add a payment/expense"""
    stay = guest_ledger.update_stay(current_user, booking_id, json_body())
    return respond('Guest record updated successfully', guest_ledger.get_stay(current_user, stay.id))


@api_bp.route('/guest-records/<booking_id>/entries', methods=['POST'])
@staff_required
def add_guest_entries(booking_id):
    """Merge a payment and/or expense into today's ledger rows"""
    data = json_body()
    merged = guest_ledger.record_payment_or_expense(current_user, booking_id, data.get('payment'),
                                                    data.get('expense'))
    result = {name: row.to_dict() for name, row in merged.items()}
    result['pendingAmount'] = guest_ledger.pending_for_booking(current_user, booking_id)['pendingAmount']
    return respond('Ledger entries recorded successfully', result, 201)


@api_bp.route('/guest-records/<booking_id>', methods=['DELETE'])
@staff_required
def delete_guest_record(booking_id):
    guest_ledger.delete_stay(current_user, booking_id)
    return respond('Guest record deleted successfully', {'id': booking_id})


@api_bp.route('/guest-records/<booking_id>/pending', methods=['GET'])
@staff_required
def get_pending_amount(booking_id):
    data = guest_ledger.pending_for_booking(current_user, booking_id, as_of=date_arg())
    return respond('Pending amount calculated successfully', data)


@api_bp.route('/guest-records/<booking_id>/bill', methods=['GET'])
@staff_required
def get_customer_bill(booking_id):
    data = guest_ledger.build_customer_bill(current_user, booking_id)
    return respond('Customer bill generated successfully', data)


# ============================================
# GUEST FOOD
# ============================================

@api_bp.route('/guest-food/<booking_id>', methods=['POST'])
@staff_required
def add_guest_food(booking_id):
    data = food_orders.add_food_expense(current_user, booking_id, json_body().get('items'))
    return respond('Food order added successfully', data, 201)


@api_bp.route('/guest-food/<booking_id>', methods=['GET'])
@staff_required
def get_guest_food(booking_id):
    data = food_orders.get_food_expense_for_date(current_user, booking_id, date_arg())
    return respond('Food orders retrieved successfully', data)


@api_bp.route('/guest-food/expense/<expense_id>', methods=['PUT'])
@staff_required
def replace_guest_food(expense_id):
    data = food_orders.replace_food_expense(current_user, expense_id, json_body().get('items'))
    return respond('Food order updated successfully', data)


# ============================================
# REPORTS
# ============================================

@api_bp.route('/reports/<hotel_id>/payment-modes', methods=['GET'])
@staff_required
def payment_mode_report(hotel_id):
    return respond('Payment mode report generated successfully',
                   rollup.payment_mode_report(current_user, hotel_id))

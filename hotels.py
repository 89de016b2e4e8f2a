"""
Hotel administration: hotels, manager assignments, room categories and rooms.
"""

import logging

from access import accessible_hotel_ids, require_admin, require_hotel_access
from auth import build_user
from errors import ConflictError, NotFoundError, ValidationError, transaction
from extensions import db
from ledger import parse_amount, utc_now
from models import AssignmentStatus, Hotel, HotelAssignment, HotelRoom, HotelRoomCategory, Role, RoomStatus, User

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'Standard'
MAX_ROOMS = 1000


def get_hotel_or_404(hotel_id):
    hotel = db.session.get(Hotel, hotel_id) if hotel_id else None
    if hotel is None:
        raise NotFoundError('Hotel', 'Hotel not found')
    return hotel


def _hotel_fields(data, partial=False):
    fields = {}
    for field, attr, max_length in (('name', 'name', 200), ('address', 'address', 2000), ('phone', 'phone', 20)):
        if partial and field not in data:
            continue
        value = str(data.get(field) or '').strip()
        if not value:
            raise ValidationError(f'{field} is required')
        if len(value) > max_length:
            raise ValidationError(f'{field} must be at most {max_length} characters')
        fields[attr] = value
    if not partial or 'totalRooms' in data:
        try:
            total_rooms = int(data.get('totalRooms'))
        except (TypeError, ValueError):
            raise ValidationError('totalRooms must be a whole number')
        if total_rooms < 1 or total_rooms > MAX_ROOMS:
            raise ValidationError(f'totalRooms must be between 1 and {MAX_ROOMS}')
        fields['total_rooms'] = total_rooms
    return fields


def _add_missing_rooms(hotel, category=None):
    """Create numbered rooms up to totalRooms; existing rooms are never removed"""
    existing = {room_no for (room_no,) in HotelRoom.query.with_entities(HotelRoom.room_no)
                .filter_by(hotel_id=hotel.id)}
    missing = [str(number) for number in range(1, hotel.total_rooms + 1) if str(number) not in existing]
    if not missing:
        return
    category = category or hotel.categories.order_by(HotelRoomCategory.created_at).first()
    if category is None:
        category = HotelRoomCategory(hotel_id=hotel.id, category_name=DEFAULT_CATEGORY, room_category_pricing=0)
        db.session.add(category)
        db.session.flush()
    db.session.add_all([
        HotelRoom(hotel_id=hotel.id, category_id=category.id, room_no=room_no, status=RoomStatus.EMPTY)
        for room_no in missing
    ])


# ============================================
# HOTELS
# ============================================

def create_hotel(caller, data):
    """Create a hotel with a default category and rooms 1..totalRooms"""
    require_admin(caller)
    fields = _hotel_fields(data or {})

    with transaction():
        hotel = Hotel(created_by=caller.id, **fields)
        db.session.add(hotel)
        db.session.flush()
        category = HotelRoomCategory(hotel_id=hotel.id, category_name=DEFAULT_CATEGORY, room_category_pricing=0)
        db.session.add(category)
        db.session.flush()
        _add_missing_rooms(hotel, category)

    logger.info("[HOTEL] Created hotel %s with %d rooms", hotel.name, hotel.total_rooms)
    return hotel


def list_hotels(caller):
    hotel_ids = accessible_hotel_ids(caller)
    if not hotel_ids:
        return []
    return Hotel.query.filter(Hotel.id.in_(hotel_ids)).order_by(Hotel.created_at.desc()).all()


def get_hotel(caller, hotel_id):
    require_hotel_access(caller, hotel_id)
    return get_hotel_or_404(hotel_id)


def update_hotel(caller, hotel_id, data):
    require_admin(caller)
    hotel = get_hotel_or_404(hotel_id)
    fields = _hotel_fields(data or {}, partial=True)
    with transaction():
        for attr, value in fields.items():
            setattr(hotel, attr, value)
        hotel.updated_at = utc_now()
        _add_missing_rooms(hotel)
    logger.info("[HOTEL] Updated hotel %s (%s)", hotel.id, ', '.join(sorted(fields)) or '-')
    return hotel


def delete_hotel(caller, hotel_id):
    """Delete a hotel with its rooms, categories and assignments; refused while it has history"""
    require_admin(caller)
    hotel = get_hotel_or_404(hotel_id)
    if hotel.guest_stays.count() or hotel.expenses.count():
        raise ConflictError('Hotel has guest records or expenses and cannot be deleted',
                            error='Hotel in use')

    name = hotel.name
    with transaction():
        HotelRoom.query.filter_by(hotel_id=hotel.id).delete(synchronize_session=False)
        HotelRoomCategory.query.filter_by(hotel_id=hotel.id).delete(synchronize_session=False)
        HotelAssignment.query.filter_by(hotel_id=hotel.id).delete(synchronize_session=False)
        db.session.delete(hotel)
    logger.info("[HOTEL] Deleted hotel %s", name)
    return hotel_id


# ============================================
# MANAGER ASSIGNMENTS
# ============================================

def assign_manager(caller, hotel_id, data):
    """
    Give a manager access to a hotel.

    `data` either names an existing manager by userId or carries signup
    fields for a new manager account. An inactive assignment is reactivated
    rather than duplicated.
    """
    require_admin(caller)
    hotel = get_hotel_or_404(hotel_id)
    data = data or {}

    if data.get('userId'):
        manager = db.session.get(User, data['userId'])
        if manager is None:
            raise NotFoundError('User', 'The specified user does not exist')
        if manager.role != Role.MANAGER:
            raise ValidationError('Only users with the manager role can be assigned to a hotel')
    else:
        manager = build_user(data, role=Role.MANAGER)

    with transaction():
        if manager.id is None:
            db.session.add(manager)
            db.session.flush()
        assignment = HotelAssignment.query.filter_by(hotel_id=hotel.id, manager_id=manager.id).first()
        if assignment is None:
            assignment = HotelAssignment(hotel_id=hotel.id, manager_id=manager.id,
                                         status=AssignmentStatus.ACTIVE, assigned_date=utc_now())
            db.session.add(assignment)
        elif assignment.status == AssignmentStatus.ACTIVE:
            raise ConflictError('Manager is already assigned to this hotel', error='Already assigned')
        else:
            assignment.status = AssignmentStatus.ACTIVE
            assignment.assigned_date = utc_now()

    logger.info("[HOTEL] Assigned manager %s to hotel %s", manager.username, hotel.name)
    return assignment


def set_assignment_status(caller, assignment_id, status):
    require_admin(caller)
    assignment = db.session.get(HotelAssignment, assignment_id) if assignment_id else None
    if assignment is None:
        raise NotFoundError('Assignment', 'Assignment not found')
    try:
        status = AssignmentStatus(status)
    except ValueError:
        raise ValidationError('Valid status (active/inactive) is required')

    with transaction():
        assignment.status = status
    logger.info("[HOTEL] Assignment %s is now %s", assignment.id, status.value)
    return assignment


def list_hotel_managers(caller, hotel_id, status=None):
    require_hotel_access(caller, hotel_id)
    hotel = get_hotel_or_404(hotel_id)
    query = hotel.assignments
    if status:
        try:
            query = query.filter_by(status=AssignmentStatus(status))
        except ValueError:
            raise ValidationError('status must be active or inactive')
    return query.order_by(HotelAssignment.assigned_date).all()


# ============================================
# CATEGORIES & ROOMS
# ============================================

def _room_order(room):
    if room.room_no.isdigit():
        return (0, int(room.room_no), room.room_no)
    return (1, 0, room.room_no)


def create_category(caller, hotel_id, data):
    require_hotel_access(caller, hotel_id)
    hotel = get_hotel_or_404(hotel_id)
    data = data or {}
    name = str(data.get('categoryName') or '').strip()
    if not name:
        raise ValidationError('categoryName is required')
    pricing = data.get('roomCategoryPricing')
    pricing = parse_amount(pricing, 'roomCategoryPricing') if pricing not in (None, '') else 0

    if hotel.categories.filter_by(category_name=name).first() is not None:
        raise ConflictError(f'Category {name} already exists for this hotel', error='Duplicate category')

    with transaction():
        category = HotelRoomCategory(hotel_id=hotel.id, category_name=name, room_category_pricing=pricing)
        db.session.add(category)
    logger.info("[HOTEL] Added category %s to hotel %s", name, hotel.name)
    return category


def list_categories(caller, hotel_id):
    require_hotel_access(caller, hotel_id)
    hotel = get_hotel_or_404(hotel_id)
    return hotel.categories.order_by(HotelRoomCategory.category_name).all()


def list_rooms(caller, hotel_id, status=None):
    require_hotel_access(caller, hotel_id)
    hotel = get_hotel_or_404(hotel_id)
    query = hotel.rooms
    if status:
        try:
            query = query.filter_by(status=RoomStatus(status))
        except ValueError:
            raise ValidationError('status must be one of: empty, occupied, cleaning')
    return sorted(query.all(), key=_room_order)


def get_category_or_404(category_id):
    category = db.session.get(HotelRoomCategory, category_id) if category_id else None
    if category is None:
        raise NotFoundError('Category', 'The specified room category does not exist')
    return category


def update_category(caller, category_id, data):
    category = get_category_or_404(category_id)
    require_hotel_access(caller, category.hotel_id)
    data = data or {}

    fields = {}
    if 'categoryName' in data:
        name = str(data.get('categoryName') or '').strip()
        if not name:
            raise ValidationError('categoryName is required')
        duplicate = HotelRoomCategory.query.filter(
            HotelRoomCategory.hotel_id == category.hotel_id,
            HotelRoomCategory.category_name == name,
            HotelRoomCategory.id != category.id
        ).first()
        if duplicate is not None:
            raise ConflictError('A room category with this name already exists for this hotel',
                                error='Duplicate category')
        fields['category_name'] = name
    if 'roomCategoryPricing' in data:
        fields['room_category_pricing'] = parse_amount(data.get('roomCategoryPricing'), 'roomCategoryPricing')

    with transaction():
        for attr, value in fields.items():
            setattr(category, attr, value)
    logger.info("[HOTEL] Updated category %s (%s)", category.id, ', '.join(sorted(fields)) or '-')
    return category


def delete_category(caller, category_id):
    category = get_category_or_404(category_id)
    require_hotel_access(caller, category.hotel_id)
    if HotelRoom.query.filter_by(category_id=category.id).first() is not None:
        raise ConflictError('Rooms still belong to this category; move them first', error='Category in use')

    name = category.category_name
    with transaction():
        db.session.delete(category)
    logger.info("[HOTEL] Deleted category %s", name)
    return category_id


def get_room_or_404(room_id):
    room = db.session.get(HotelRoom, room_id) if room_id else None
    if room is None:
        raise NotFoundError('Room', 'The specified hotel room does not exist')
    return room


def _room_status(value):
    try:
        return RoomStatus(value)
    except ValueError:
        raise ValidationError('status must be one of: empty, occupied, cleaning')


def _hotel_category(hotel_id, category_id):
    category = get_category_or_404(category_id)
    if category.hotel_id != hotel_id:
        raise ValidationError('categoryId must be a category of the same hotel')
    return category


def _room_no(data):
    room_no = str(data.get('roomNo') or '').strip()
    if not room_no:
        raise ValidationError('roomNo is required')
    if len(room_no) > 20:
        raise ValidationError('roomNo must be at most 20 characters')
    return room_no


def _room_no_taken(hotel_id, room_no, room_id=None):
    query = HotelRoom.query.filter(HotelRoom.hotel_id == hotel_id, HotelRoom.room_no == room_no)
    if room_id is not None:
        query = query.filter(HotelRoom.id != room_id)
    return query.first() is not None


def get_room(caller, room_id):
    room = get_room_or_404(room_id)
    require_hotel_access(caller, room.hotel_id)
    return room


def create_room(caller, hotel_id, data):
    require_hotel_access(caller, hotel_id)
    hotel = get_hotel_or_404(hotel_id)
    data = data or {}
    room_no = _room_no(data)
    if not data.get('categoryId'):
        raise ValidationError('categoryId is required')
    category = _hotel_category(hotel.id, data['categoryId'])
    status = _room_status(data.get('status') or RoomStatus.EMPTY.value)
    if _room_no_taken(hotel.id, room_no):
        raise ConflictError('A room with this number already exists for this hotel', error='Room already exists')

    with transaction():
        room = HotelRoom(
            hotel_id=hotel.id,
            category_id=category.id,
            room_no=room_no,
            status=status,
            current_guest_name=str(data.get('currentGuestName') or '').strip() or None
        )
        db.session.add(room)
    logger.info("[HOTEL] Added room %s to hotel %s", room_no, hotel.name)
    return room


def update_room(caller, room_id, data):
    """Change a room's number, category, status or guest; a room made empty or cleaning loses its guest"""
    room = get_room(caller, room_id)
    data = data or {}

    fields = {}
    if 'roomNo' in data:
        room_no = _room_no(data)
        if _room_no_taken(room.hotel_id, room_no, room.id):
            raise ConflictError('A room with this number already exists for this hotel',
                                error='Room already exists')
        fields['room_no'] = room_no
    if data.get('categoryId'):
        fields['category_id'] = _hotel_category(room.hotel_id, data['categoryId']).id
    if 'currentGuestName' in data:
        fields['current_guest_name'] = str(data.get('currentGuestName') or '').strip() or None
    if data.get('status'):
        fields['status'] = _room_status(data['status'])
        if fields['status'] != RoomStatus.OCCUPIED:
            fields['current_guest_name'] = None

    with transaction():
        for attr, value in fields.items():
            setattr(room, attr, value)
    logger.info("[HOTEL] Updated room %s (%s)", room.room_no, ', '.join(sorted(fields)) or '-')
    return room


def delete_room(caller, room_id):
    room = get_room(caller, room_id)
    if room.status == RoomStatus.OCCUPIED:
        raise ConflictError('An occupied room cannot be deleted', error='Room in use')

    room_no, hotel_id = room.room_no, room.hotel_id
    with transaction():
        db.session.delete(room)
    logger.info("[HOTEL] Deleted room %s of hotel %s", room_no, hotel_id)
    return room_id

"""
Hotel access resolution for the two caller roles.

Admins may act on any hotel. Managers may act only on hotels they hold an
active assignment for. Nothing here writes to the database or logs.
"""

from dataclasses import dataclass

from errors import AccessDeniedError
from models import AssignmentStatus, Hotel, HotelAssignment, Role


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = None


ALLOW = AccessDecision(True)


def _role_of(caller):
    role = getattr(caller, 'role', None)
    return getattr(role, 'value', role)


def has_active_assignment(manager_id, hotel_id):
    return HotelAssignment.query.filter_by(
        manager_id=manager_id,
        hotel_id=hotel_id,
        status=AssignmentStatus.ACTIVE
    ).first() is not None


def authorize(caller, hotel_id):
    role = _role_of(caller)
    if role == Role.ADMIN.value:
        return ALLOW
    if role == Role.MANAGER.value:
        if has_active_assignment(caller.id, hotel_id):
            return ALLOW
        return AccessDecision(False, 'access denied')
    return AccessDecision(False, 'only managers and admins')


def require_hotel_access(caller, hotel_id):
    decision = authorize(caller, hotel_id)
    if not decision.allowed:
        if decision.reason == 'access denied':
            raise AccessDeniedError('You do not have access to this hotel')
        raise AccessDeniedError('Only managers and admins can perform this operation')
    return decision


def require_admin(caller):
    if _role_of(caller) != Role.ADMIN.value:
        raise AccessDeniedError('Only admins can perform this operation')


def accessible_hotel_ids(caller):
    """Hotels a caller may list: admins their own creations, managers active assignments"""
    role = _role_of(caller)
    if role == Role.ADMIN.value:
        rows = Hotel.query.with_entities(Hotel.id).filter_by(created_by=caller.id).all()
    elif role == Role.MANAGER.value:
        rows = HotelAssignment.query.with_entities(HotelAssignment.hotel_id).filter_by(
            manager_id=caller.id,
            status=AssignmentStatus.ACTIVE
        ).all()
    else:
        return []
    return [row[0] for row in rows]

from .errors import forbidden
from .models import Booking, User


def require_role(user: User, role: str, message: str | None = None) -> None:
    if not user.has_role(role):
        raise forbidden(message or f"Only {role}s can perform this action")


def require_party(user: User, booking: Booking, message: str = "Not authorized for this booking") -> None:
    if not booking.is_party(user.id):
        raise forbidden(message)

"""Database models for the listings application."""

from .user import User
from .reward import Reward
from .category import MainCategory, SubCategory, SpecificItem
from .listing import Listing
from .booking import Booking, BookingStatus, PaymentMethod
from .review import Review, ReviewStatus
from .notification import Notification, NotificationType

__all__ = [
    'User', 'Reward', 'MainCategory', 'SubCategory', 'SpecificItem',
    'Listing', 'Booking', 'BookingStatus', 'PaymentMethod',
    'Review', 'ReviewStatus', 'Notification', 'NotificationType',
]

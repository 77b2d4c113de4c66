"""Notification model for user notifications."""

from app import db
from datetime import datetime


class Notification(db.Model):
    """Model for storing user notifications."""

    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False, default='GENERAL')
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255), nullable=True)

    # Related entity info (for navigation)
    entity_id = db.Column(db.String(64), nullable=True)
    entity_type = db.Column(db.String(50), nullable=True)  # 'Listing', 'Booking', 'Reward', ...

    # Status
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Notification {self.id} for User {self.user_id}: {self.type}>'

    def to_dict(self):
        """Convert notification to dictionary."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'link': self.link,
            'entity_id': self.entity_id,
            'entity_type': self.entity_type,
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'user': self.user.to_summary() if self.user else None,
        }

    def mark_as_read(self):
        """Mark notification as read."""
        self.is_read = True
        self.read_at = datetime.utcnow()


# Notification type constants
class NotificationType:
    GENERAL = 'GENERAL'
    BOOKING = 'BOOKING'
    LOYALTY = 'LOYALTY'
    SYSTEM = 'SYSTEM'
    CANCELLATION = 'CANCELLATION'
    REVIEW = 'REVIEW'

    # Types that are also delivered by email
    EMAILED = (BOOKING, SYSTEM, CANCELLATION)

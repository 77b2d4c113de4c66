"""Booking model."""

from datetime import datetime
from app import db


class BookingStatus:
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'

    ALL = (PENDING, CONFIRMED, CANCELLED, COMPLETED)


class PaymentMethod:
    UNPAID = 'UNPAID'
    PAID = 'PAID'


class Booking(db.Model):
    """A user's booking request on a listing."""

    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False, index=True)
    booking_date = db.Column(db.DateTime, nullable=True)
    booking_hours = db.Column(db.String(120), nullable=True)
    additional_note = db.Column(db.Text, nullable=True)
    age_group = db.Column(db.String(60), nullable=True)
    number_of_persons = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), default=BookingStatus.PENDING, nullable=False, index=True)
    payment_method = db.Column(db.String(20), default=PaymentMethod.UNPAID, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    review = db.relationship('Review', backref='booking', uselist=False, lazy=True)
    reward = db.relationship('Reward', backref='booking', uselist=False, lazy=True, cascade='all')

    def to_summary(self):
        """Booking fields without nested relations."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'listing_id': self.listing_id,
            'booking_date': self.booking_date.isoformat() if self.booking_date else None,
            'booking_hours': self.booking_hours,
            'additional_note': self.additional_note,
            'age_group': self.age_group,
            'number_of_persons': self.number_of_persons,
            'status': self.status,
            'payment_method': self.payment_method,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    def to_dict(self):
        """Booking with user, listing, review and reward embedded."""
        data = self.to_summary()
        data['user'] = self.user.to_summary() if self.user else None
        data['listing'] = self.listing.to_dict() if self.listing else None
        data['review'] = self.review.to_summary() if self.review else None
        data['reward'] = self.reward.to_dict() if self.reward else None
        return data

    def __repr__(self):
        return f'<Booking {self.id}: listing {self.listing_id} {self.status}>'

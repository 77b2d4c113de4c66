"""Review model for listings."""
from datetime import datetime
from app import db


class ReviewStatus:
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'

    ALL = (PENDING, ACCEPTED, REJECTED)


class Review(db.Model):
    """Review of a listing, written against a completed booking."""

    __tablename__ = 'reviews'

    id = db.Column(db.Integer, primary_key=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default=ReviewStatus.PENDING, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True, unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_summary(self):
        return {
            'id': self.id,
            'rating': self.rating,
            'comment': self.comment,
            'status': self.status,
            'user_id': self.user_id,
            'listing_id': self.listing_id,
            'booking_id': self.booking_id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def to_dict(self):
        """Review with user, listing and booking embedded."""
        data = self.to_summary()
        data['user'] = self.user.to_summary() if self.user else None
        data['listing'] = self.listing.to_dict() if self.listing else None
        data['booking'] = self.booking.to_summary() if self.booking else None
        return data

    def __repr__(self):
        return f'<Review {self.id}: {self.rating}stars>'

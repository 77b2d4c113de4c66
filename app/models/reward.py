"""Reward model for loyalty points."""

from datetime import datetime
from app import db


# Tier thresholds on total points, highest first
REWARD_TIERS = [
    ('PLATINUM', 2500),
    ('GOLD', 2000),
    ('SILVER', 1000),
    ('BRONZE', 0),
]
TIER_RANK = {'BRONZE': 1, 'SILVER': 2, 'GOLD': 3, 'PLATINUM': 4}

BOOKING_REWARD_POINTS = 50


def tier_for_points(total_points: int) -> str:
    for tier, threshold in REWARD_TIERS:
        if total_points >= threshold:
            return tier
    return 'BRONZE'


class Reward(db.Model):
    """Points granted to a user, optionally tied to a booking."""

    __tablename__ = 'rewards'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=True, unique=True)
    points = db.Column(db.Integer, default=0, nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(20), default='BRONZE', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'booking_id': self.booking_id,
            'points': self.points,
            'description': self.description,
            'category': self.category,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Reward {self.id}: {self.points}pts {self.category}>'

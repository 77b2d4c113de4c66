"""User model for authentication and reward tracking."""

from datetime import datetime
from uuid import uuid4
from werkzeug.security import generate_password_hash, check_password_hash
from app import db


class User(db.Model):
    """User model. Names are stored exactly as entered and never translated."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, nullable=False, index=True, default=lambda: str(uuid4()))
    fname = db.Column(db.String(80), nullable=True)
    lname = db.Column(db.String(80), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    bookings = db.relationship('Booking', backref='user', lazy=True, cascade='all, delete-orphan')
    reviews = db.relationship('Review', backref='user', lazy=True, cascade='all, delete-orphan')
    rewards = db.relationship('Reward', backref='user', lazy=True, cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='user', lazy=True, cascade='all, delete-orphan')

    def set_password(self, password):
        """Hash and set the user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if the provided password matches the hash."""
        return check_password_hash(self.password_hash, password)

    def to_summary(self):
        """Name-only view embedded in bookings, reviews and notifications."""
        return {
            'id': self.id,
            'uid': self.uid,
            'fname': self.fname,
            'lname': self.lname,
        }

    def to_dict(self):
        """Convert user to dictionary."""
        return {
            'id': self.id,
            'uid': self.uid,
            'fname': self.fname,
            'lname': self.lname,
            'email': self.email,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def __repr__(self):
        return f'<User {self.email}>'

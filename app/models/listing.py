"""Listing model. All free text is stored in the source language (English)."""

from datetime import datetime
from app import db


listing_main_categories = db.Table(
    'listing_main_categories',
    db.Column('listing_id', db.Integer, db.ForeignKey('listings.id', ondelete='CASCADE'), primary_key=True),
    db.Column('main_category_id', db.Integer, db.ForeignKey('main_categories.id', ondelete='CASCADE'), primary_key=True),
)

listing_sub_categories = db.Table(
    'listing_sub_categories',
    db.Column('listing_id', db.Integer, db.ForeignKey('listings.id', ondelete='CASCADE'), primary_key=True),
    db.Column('sub_category_id', db.Integer, db.ForeignKey('sub_categories.id', ondelete='CASCADE'), primary_key=True),
)

listing_specific_items = db.Table(
    'listing_specific_items',
    db.Column('listing_id', db.Integer, db.ForeignKey('listings.id', ondelete='CASCADE'), primary_key=True),
    db.Column('specific_item_id', db.Integer, db.ForeignKey('specific_items.id', ondelete='CASCADE'), primary_key=True),
)


class Listing(db.Model):
    """Bookable listing (venue, class, activity)."""

    __tablename__ = 'listings'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Float, nullable=True, index=True)
    agegroup = db.Column(db.JSON, nullable=False, default=list)  # e.g. ["5-10 years", "25+ years"]
    location = db.Column(db.JSON, nullable=False, default=list)
    facilities = db.Column(db.JSON, nullable=False, default=list)
    operating_hours = db.Column(db.JSON, nullable=False, default=list)
    gender = db.Column(db.String(40), nullable=True)
    discount = db.Column(db.String(120), nullable=True)
    main_image = db.Column(db.String(512), nullable=True)
    sub_images = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    selected_main_categories = db.relationship(
        'MainCategory', secondary=listing_main_categories, lazy='selectin',
        order_by='MainCategory.id', backref=db.backref('listings', lazy=True)
    )
    selected_sub_categories = db.relationship(
        'SubCategory', secondary=listing_sub_categories, lazy='selectin',
        order_by='SubCategory.id', backref=db.backref('listings', lazy=True)
    )
    selected_specific_items = db.relationship(
        'SpecificItem', secondary=listing_specific_items, lazy='selectin',
        order_by='SpecificItem.id', backref=db.backref('listings', lazy=True)
    )
    bookings = db.relationship('Booking', backref='listing', lazy=True, cascade='all, delete-orphan')
    reviews = db.relationship('Review', backref='listing', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        """Convert listing to dictionary (without reviews, bookings or stats)."""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'agegroup': list(self.agegroup or []),
            'location': list(self.location or []),
            'facilities': list(self.facilities or []),
            'operating_hours': list(self.operating_hours or []),
            'gender': self.gender,
            'discount': self.discount,
            'main_image': self.main_image,
            'sub_images': list(self.sub_images or []),
            'is_active': self.is_active,
            'selected_main_categories': [c.to_dict() for c in self.selected_main_categories],
            'selected_sub_categories': [c.to_dict() for c in self.selected_sub_categories],
            'selected_specific_items': [c.to_dict() for c in self.selected_specific_items],
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def __repr__(self):
        return f'<Listing {self.id}: {self.name}>'

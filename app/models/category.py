"""Category hierarchy: main category -> sub category -> specific item."""

from datetime import datetime
from app import db


class MainCategory(db.Model):
    __tablename__ = 'main_categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    sub_categories = db.relationship(
        'SubCategory', backref='main_category', lazy=True,
        cascade='all, delete-orphan', order_by='SubCategory.id'
    )

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def to_tree(self):
        """Nested view used by the category list endpoints."""
        return {
            'id': self.id,
            'name': self.name,
            'sub_categories': [sub.to_tree() for sub in self.sub_categories],
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    def __repr__(self):
        return f'<MainCategory {self.id}: {self.name}>'


class SubCategory(db.Model):
    __tablename__ = 'sub_categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    main_category_id = db.Column(db.Integer, db.ForeignKey('main_categories.id'), nullable=False, index=True)

    specific_items = db.relationship(
        'SpecificItem', backref='sub_category', lazy=True,
        cascade='all, delete-orphan', order_by='SpecificItem.id'
    )

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'main_category_id': self.main_category_id}

    def to_tree(self):
        return {
            'id': self.id,
            'name': self.name,
            'specific_items': [item.to_dict() for item in self.specific_items],
        }

    def __repr__(self):
        return f'<SubCategory {self.id}: {self.name}>'


class SpecificItem(db.Model):
    __tablename__ = 'specific_items'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    sub_category_id = db.Column(db.Integer, db.ForeignKey('sub_categories.id'), nullable=False, index=True)
    main_category_id = db.Column(db.Integer, db.ForeignKey('main_categories.id'), nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sub_category_id': self.sub_category_id,
            'main_category_id': self.main_category_id,
        }

    def __repr__(self):
        return f'<SpecificItem {self.id}: {self.name}>'

"""
Admin-curated featured lists of businesses (e.g. "Trending in Naga").
"""
from datetime import datetime
from ..extensions import db


class CuratedList(db.Model):
    __tablename__ = 'curated_lists'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), nullable=False, default='trending')
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        'CuratedListItem',
        backref='curated_list',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='CuratedListItem.display_order',
    )

    def __repr__(self):
        return f'<CuratedList {self.title}>'

    def to_dict(self, include_items: bool = False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'display_order': self.display_order,
            'is_active': self.is_active,
            'created_by': self.created_by,
            'item_count': self.items.count(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data


class CuratedListItem(db.Model):
    __tablename__ = 'curated_list_items'
    __table_args__ = (
        db.UniqueConstraint('curated_list_id', 'business_id', name='uq_curated_list_business'),
    )

    id = db.Column(db.Integer, primary_key=True)
    curated_list_id = db.Column(db.Integer, db.ForeignKey('curated_lists.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    added_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    business = db.relationship('Business')

    def __repr__(self):
        return f'<CuratedListItem list={self.curated_list_id} business={self.business_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'curated_list_id': self.curated_list_id,
            'business_id': self.business_id,
            'display_order': self.display_order,
            'added_by': self.added_by,
            'business': self.business.to_dict(include_approval=False) if self.business else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

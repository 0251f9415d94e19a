from extensions import db
from datetime import datetime


class BillRecord(db.Model):
    __tablename__ = 'bills'

    id = db.Column(db.String(64), primary_key=True)

    # Bill data
    merchant_name = db.Column(db.String(200), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default='USD')
    subtotal = db.Column(db.Float, nullable=True)
    tax = db.Column(db.Float, nullable=True)
    total = db.Column(db.Float, nullable=True)

    # Path of the uploaded receipt image, if the bill was scanned
    image_url = db.Column(db.String(500), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship('BillItemRecord', backref='bill', lazy=True,
                            cascade='all, delete-orphan', order_by='BillItemRecord.position')
    people = db.relationship('BillPersonRecord', backref='bill', lazy=True,
                             cascade='all, delete-orphan', order_by='BillPersonRecord.position')

    def to_dict(self):
        """Convert bill row to dictionary for JSON response"""
        return {
            'id': self.id,
            'merchant_name': self.merchant_name,
            'currency': self.currency,
            'subtotal': self.subtotal,
            'tax': self.tax,
            'total': self.total,
            'image_url': self.image_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<BillRecord {self.id} - {self.merchant_name}>'


class BillItemRecord(db.Model):
    __tablename__ = 'bill_items'
    # Item ids are only unique within their bill
    __table_args__ = (
        db.UniqueConstraint('bill_id', 'id', name='uq_bill_item'),
    )

    pk = db.Column(db.Integer, primary_key=True)
    id = db.Column(db.String(64), nullable=False)
    bill_id = db.Column(db.String(64), db.ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(200), nullable=False, default='')
    price = db.Column(db.Float, nullable=False, default=0.0)

    assignments = db.relationship('ItemAssignmentRecord', backref='item', lazy=True,
                                  cascade='all, delete-orphan', order_by='ItemAssignmentRecord.id')

    def __repr__(self):
        return f'<BillItemRecord {self.bill_id}/{self.id} - {self.name}>'


class BillPersonRecord(db.Model):
    __tablename__ = 'bill_people'
    __table_args__ = (
        db.UniqueConstraint('bill_id', 'id', name='uq_bill_person'),
    )

    pk = db.Column(db.Integer, primary_key=True)
    id = db.Column(db.String(64), nullable=False)
    bill_id = db.Column(db.String(64), db.ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(20), nullable=True)

    assignments = db.relationship('ItemAssignmentRecord', backref='person', lazy=True,
                                  cascade='all, delete-orphan')

    def __repr__(self):
        return f'<BillPersonRecord {self.bill_id}/{self.id} - {self.name}>'


class ItemAssignmentRecord(db.Model):
    __tablename__ = 'item_assignments'
    __table_args__ = (
        db.UniqueConstraint('item_pk', 'person_pk', name='uq_item_person'),
    )

    id = db.Column(db.Integer, primary_key=True)
    item_pk = db.Column(db.Integer, db.ForeignKey('bill_items.pk', ondelete='CASCADE'), nullable=False)
    person_pk = db.Column(db.Integer, db.ForeignKey('bill_people.pk', ondelete='CASCADE'), nullable=False)
    split_percentage = db.Column(db.Float, nullable=False, default=0.0)

    def __repr__(self):
        return f'<ItemAssignmentRecord {self.item_pk} -> {self.person_pk} ({self.split_percentage}%)>'

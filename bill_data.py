"""
Data models for Easy Split - bills, items, people and per-person summaries
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from config import DEFAULT_CURRENCY


def generate_id() -> str:
    return uuid.uuid4().hex


def to_float(value, default: Optional[float] = 0.0) -> Optional[float]:
    """Coerce form/OCR input to a finite float, falling back to ``default``"""
    if value is None or value == '':
        return default
    try:
        number = float(str(value).replace(',', '').replace('$', '').strip())
    except (ValueError, TypeError):
        return default
    if not math.isfinite(number):
        return default
    return number


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            pass
    return datetime.utcnow()


@dataclass
class ItemAssignment:
    """One person's percentage claim on an item"""
    person_id: str
    split_percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'person_id': self.person_id, 'split_percentage': self.split_percentage}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ItemAssignment':
        return cls(
            person_id=str(data.get('person_id') or ''),
            split_percentage=to_float(data.get('split_percentage')),
        )


@dataclass
class BillItem:
    """A single line on the bill"""
    id: str
    name: str = ''
    price: float = 0.0
    assignments: List[ItemAssignment] = field(default_factory=list)

    def assignment_for(self, person_id: str) -> Optional[ItemAssignment]:
        return next((a for a in self.assignments if a.person_id == person_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'assignments': [a.to_dict() for a in self.assignments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillItem':
        # Later duplicates of a person_id are dropped to keep keys unique
        assignments = []
        seen = set()
        for raw in data.get('assignments') or []:
            assignment = ItemAssignment.from_dict(raw)
            if assignment.person_id in seen:
                continue
            seen.add(assignment.person_id)
            assignments.append(assignment)

        return cls(
            id=str(data.get('id') or generate_id()),
            name=data.get('name') or '',
            price=to_float(data.get('price')),
            assignments=assignments,
        )


@dataclass
class BillPerson:
    id: str
    name: str
    color: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'color': self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillPerson':
        return cls(
            id=str(data.get('id') or generate_id()),
            name=data.get('name') or '',
            color=data.get('color') or '',
        )


@dataclass
class Bill:
    """The whole bill being split"""
    id: str = field(default_factory=generate_id)
    merchant_name: str = ''
    currency: str = DEFAULT_CURRENCY
    items: List[BillItem] = field(default_factory=list)
    people: List[BillPerson] = field(default_factory=list)
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total: Optional[float] = None
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def find_item(self, item_id: str) -> Optional[BillItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def find_person(self, person_id: str) -> Optional[BillPerson]:
        return next((p for p in self.people if p.id == person_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'merchant_name': self.merchant_name,
            'currency': self.currency,
            'items': [i.to_dict() for i in self.items],
            'people': [p.to_dict() for p in self.people],
            'subtotal': self.subtotal,
            'tax': self.tax,
            'total': self.total,
            'image_url': self.image_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bill':
        return cls(
            id=str(data.get('id') or generate_id()),
            merchant_name=data.get('merchant_name') or '',
            currency=(data.get('currency') or DEFAULT_CURRENCY).upper(),
            items=[BillItem.from_dict(i) for i in data.get('items') or [] if isinstance(i, dict)],
            people=[BillPerson.from_dict(p) for p in data.get('people') or [] if isinstance(p, dict)],
            subtotal=to_float(data.get('subtotal'), None),
            tax=to_float(data.get('tax'), None),
            total=to_float(data.get('total'), None),
            image_url=data.get('image_url') or None,
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )


@dataclass
class PersonLineItem:
    """One person's cut of one item, as shown in their breakdown"""
    name: str
    amount: float
    split_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'amount': self.amount, 'split_percentage': self.split_percentage}


@dataclass
class PersonSummary:
    person: BillPerson
    items_total: float = 0.0
    tax_share: float = 0.0
    final_amount: float = 0.0
    items: List[PersonLineItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'person': self.person.to_dict(),
            'items_total': self.items_total,
            'tax_share': self.tax_share,
            'final_amount': self.final_amount,
            'items': [i.to_dict() for i in self.items],
        }

"""
Bill-level editing: people, items, bill details and copies.

Every function returns a new Bill and leaves its argument untouched, so a
failed save never leaves a half-edited bill behind.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Optional

from bill_data import Bill, BillItem, BillPerson, ItemAssignment, generate_id, to_float
from config import DEFAULT_CURRENCY, MAX_PEOPLE, PERSON_COLORS
from exceptions import ItemNotFoundError, PersonLimitError, PersonNotFoundError

logger = logging.getLogger(__name__)


def _touch(bill: Bill, **changes) -> Bill:
    return replace(bill, updated_at=datetime.utcnow(), **changes)


def create_empty_bill(currency: str = DEFAULT_CURRENCY) -> Bill:
    return Bill(currency=currency.upper())


def bill_from_scan(scan: Dict, image_url: Optional[str] = None) -> Bill:
    """Seed a new bill from normalized receipt scanner output"""
    items = []
    for raw in scan.get('items') or []:
        if not isinstance(raw, dict):
            continue
        items.append(BillItem(id=generate_id(), name=raw.get('name') or '', price=to_float(raw.get('price'))))

    return Bill(
        merchant_name=scan.get('merchant_name') or '',
        currency=(scan.get('currency') or DEFAULT_CURRENCY).upper(),
        items=items,
        subtotal=to_float(scan.get('subtotal'), None),
        tax=to_float(scan.get('tax'), None),
        total=to_float(scan.get('total'), None),
        image_url=image_url,
    )


def update_bill_details(bill: Bill, merchant_name: Optional[str] = None,
                        currency: Optional[str] = None, tax=None) -> Bill:
    changes = {}
    if merchant_name is not None:
        changes['merchant_name'] = merchant_name
    if currency:
        changes['currency'] = currency.upper()
    if tax is not None:
        changes['tax'] = to_float(tax)
    return _touch(bill, **changes)


# --------- People ---------

def _next_color(bill: Bill, palette=PERSON_COLORS) -> str:
    used = {p.color for p in bill.people}
    return next((c for c in palette if c not in used), palette[0])


def add_person(bill: Bill, name: Optional[str] = None, max_people: int = MAX_PEOPLE,
               palette=PERSON_COLORS) -> Bill:
    """Append a person with the first free palette color"""
    if len(bill.people) >= max_people:
        raise PersonLimitError(f"A bill can have at most {max_people} people")

    person = BillPerson(
        id=generate_id(),
        name=name or f"Person {len(bill.people) + 1}",
        color=_next_color(bill, palette),
    )
    return _touch(bill, people=list(bill.people) + [person])


def _require_person(bill: Bill, person_id: str) -> BillPerson:
    person = bill.find_person(person_id)
    if person is None:
        raise PersonNotFoundError(f"Person {person_id} not found")
    return person


def update_person(bill: Bill, person_id: str, name: Optional[str] = None,
                  color: Optional[str] = None) -> Bill:
    person = _require_person(bill, person_id)
    updated = replace(
        person,
        name=person.name if name is None else name,
        color=person.color if color is None else color,
    )
    return _touch(bill, people=[updated if p.id == person_id else p for p in bill.people])


def cycle_person_color(bill: Bill, person_id: str, palette=PERSON_COLORS) -> Bill:
    """Move a person to the next palette color, wrapping around"""
    person = _require_person(bill, person_id)
    index = palette.index(person.color) if person.color in palette else -1
    return update_person(bill, person_id, color=palette[(index + 1) % len(palette)])


def remove_person(bill: Bill, person_id: str) -> Bill:
    """Drop a person and every assignment they hold, in one step"""
    _require_person(bill, person_id)
    items = [
        replace(item, assignments=[a for a in item.assignments if a.person_id != person_id])
        for item in bill.items
    ]
    return _touch(bill, people=[p for p in bill.people if p.id != person_id], items=items)


# --------- Items ---------

def add_item(bill: Bill, name: str = '', price=0.0) -> Bill:
    item = BillItem(id=generate_id(), name=name or '', price=to_float(price))
    return _touch(bill, items=list(bill.items) + [item])


def _require_item(bill: Bill, item_id: str) -> BillItem:
    item = bill.find_item(item_id)
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found")
    return item


def update_item(bill: Bill, item_id: str, name: Optional[str] = None, price=None) -> Bill:
    item = _require_item(bill, item_id)
    updated = replace(
        item,
        name=item.name if name is None else name,
        price=item.price if price is None else to_float(price),
    )
    return _touch(bill, items=[updated if i.id == item_id else i for i in bill.items])


def remove_item(bill: Bill, item_id: str) -> Bill:
    _require_item(bill, item_id)
    return _touch(bill, items=[i for i in bill.items if i.id != item_id])


def apply_item_change(bill: Bill, item_id: str, change: Callable[[BillItem], BillItem]) -> Bill:
    """Run a ledger mutator (toggle, set percentage, split evenly) on one item"""
    item = _require_item(bill, item_id)
    updated = change(item)
    return _touch(bill, items=[updated if i.id == item_id else i for i in bill.items])


# --------- Copies ---------

def duplicate_bill(bill: Bill) -> Bill:
    """Deep copy with fresh ids; assignments follow their people"""
    person_ids = {p.id: generate_id() for p in bill.people}
    now = datetime.utcnow()

    people = [BillPerson(id=person_ids[p.id], name=p.name, color=p.color) for p in bill.people]
    items = [
        BillItem(
            id=generate_id(),
            name=item.name,
            price=item.price,
            assignments=[
                ItemAssignment(person_id=person_ids.get(a.person_id, a.person_id),
                               split_percentage=a.split_percentage)
                for a in item.assignments
            ],
        )
        for item in bill.items
    ]

    duplicated = Bill(
        id=generate_id(),
        merchant_name=f"{bill.merchant_name} (Copy)",
        currency=bill.currency,
        items=items,
        people=people,
        subtotal=bill.subtotal,
        tax=bill.tax,
        total=bill.total,
        image_url=bill.image_url,
        created_at=now,
        updated_at=now,
    )
    logger.debug("Duplicated bill %s as %s", bill.id, duplicated.id)
    return duplicated

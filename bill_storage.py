"""
Persistence for bills, backed by Flask-SQLAlchemy.

Rows are converted to and from the plain ``bill_data`` values so the split
engine never sees ORM objects.
"""

import logging
from datetime import datetime
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from bill_data import Bill, BillItem, BillPerson, ItemAssignment
from bill_editing import duplicate_bill
from bill_splitting_logic import calculate_bill_totals
from config import DEFAULT_CURRENCY
from exceptions import BillNotFoundError, StorageError
from extensions import db
from models import BillRecord, BillItemRecord, BillPersonRecord, ItemAssignmentRecord

logger = logging.getLogger(__name__)


def _record_to_bill(record: BillRecord) -> Bill:
    items = [
        BillItem(
            id=item.id,
            name=item.name,
            price=float(item.price or 0.0),
            assignments=[
                ItemAssignment(person_id=a.person.id, split_percentage=float(a.split_percentage))
                for a in item.assignments
            ],
        )
        for item in record.items
    ]
    people = [BillPerson(id=p.id, name=p.name, color=p.color or '') for p in record.people]

    return Bill(
        id=record.id,
        merchant_name=record.merchant_name or '',
        currency=record.currency or DEFAULT_CURRENCY,
        items=items,
        people=people,
        subtotal=record.subtotal,
        tax=record.tax,
        total=record.total,
        image_url=record.image_url,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def load_bills() -> List[Bill]:
    """All stored bills, newest first"""
    try:
        records = BillRecord.query.order_by(BillRecord.created_at.desc()).all()
        return [_record_to_bill(r) for r in records]
    except SQLAlchemyError as e:
        logger.exception("Failed to load bills")
        raise StorageError('Failed to load bills') from e


def get_bill(bill_id: str) -> Bill:
    try:
        record = db.session.get(BillRecord, bill_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to load bill %s", bill_id)
        raise StorageError('Failed to load bill') from e

    if record is None:
        raise BillNotFoundError(f"Bill {bill_id} not found")
    return _record_to_bill(record)


def save_bill(bill: Bill) -> str:
    """Insert or replace a bill with its items, people and assignments.

    Subtotal and total are refreshed from the items before writing. The
    ``bill`` argument is not modified.
    """
    totals = calculate_bill_totals(bill)

    try:
        record = db.session.get(BillRecord, bill.id)
        if record is None:
            record = BillRecord(id=bill.id, created_at=bill.created_at or datetime.utcnow())
            db.session.add(record)
        else:
            # Children are replaced wholesale
            record.items.clear()
            record.people.clear()
            db.session.flush()

        record.merchant_name = bill.merchant_name
        record.currency = bill.currency
        record.subtotal = totals['subtotal']
        record.tax = bill.tax
        record.total = totals['total']
        record.image_url = bill.image_url
        record.updated_at = datetime.utcnow()

        person_records = {}
        for position, person in enumerate(bill.people):
            person_record = BillPersonRecord(id=person.id, position=position, name=person.name, color=person.color)
            person_records[person.id] = person_record
            record.people.append(person_record)

        for position, item in enumerate(bill.items):
            item_record = BillItemRecord(id=item.id, position=position, name=item.name, price=item.price)
            for assignment in item.assignments:
                person_record = person_records.get(assignment.person_id)
                if person_record is None:
                    logger.warning("Dropping assignment on item %s to unknown person %s",
                                   item.id, assignment.person_id)
                    continue
                item_record.assignments.append(ItemAssignmentRecord(
                    person=person_record,
                    split_percentage=assignment.split_percentage,
                ))
            record.items.append(item_record)

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to save bill %s", bill.id)
        raise StorageError('Failed to save bill') from e

    logger.info("Saved bill %s (%d items, %d people)", bill.id, len(bill.items), len(bill.people))
    return bill.id


def delete_bill(bill_id: str) -> None:
    try:
        record = db.session.get(BillRecord, bill_id)
        if record is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")
        db.session.delete(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to delete bill %s", bill_id)
        raise StorageError('Failed to delete bill') from e

    logger.info("Deleted bill %s", bill_id)


def duplicate_saved_bill(bill_id: str) -> str:
    """Store a copy of a saved bill and return the copy's id"""
    return save_bill(duplicate_bill(get_bill(bill_id)))

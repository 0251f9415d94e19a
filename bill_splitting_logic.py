from collections import namedtuple
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Callable, Dict, Iterable, List, Optional

from bill_data import Bill, BillItem, BillPerson, ItemAssignment, PersonLineItem, PersonSummary, to_float

STATUS_UNASSIGNED = 'unassigned'
STATUS_PARTIAL = 'partial'
STATUS_FULL = 'full'
STATUS_OVER = 'over'

# Tolerance for comparing percentage sums against 0 and 100
STATUS_EPSILON = 1e-9

CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
}

Resolved = namedtuple('Resolved', ['person', 'split_percentage'])
Dangling = namedtuple('Dangling', ['person_id', 'split_percentage'])


def round_currency(amount) -> float:
    """Round to 2 decimal places for currency.

    Uses ROUND_HALF_UP on the decimal string form of the float, which rounds
    half away from zero: 1.005 -> 1.01 and -1.005 -> -1.01.
    """
    if amount is None:
        return 0.0
    value = Decimal(str(amount))
    with localcontext() as ctx:
        # Enough digits for any finite float down to the cent
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        return float(value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def format_currency(amount: float, currency: str = 'USD') -> str:
    """Format an amount for display, e.g. ``$12.50`` or ``12.50 CHF``"""
    amount = round_currency(amount)
    code = (currency or 'USD').upper()
    sign = '-' if amount < 0 else ''
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{abs(amount):,.2f}"
    return f"{sign}{abs(amount):,.2f} {code}"


# --------- Assignment resolution ---------

def _people_by_id(people: Iterable[BillPerson]) -> Dict[str, BillPerson]:
    return {p.id: p for p in people}


def resolve_assignments(item: BillItem, people: Iterable[BillPerson]) -> List:
    """Tag each assignment on ``item`` as Resolved or Dangling.

    Dangling assignments point at a person id that is not on the bill. They
    are filtered out by every calculation instead of raising.
    """
    lookup = people if isinstance(people, dict) else _people_by_id(people)
    resolved = []
    for assignment in item.assignments:
        person = lookup.get(assignment.person_id)
        if person is None:
            resolved.append(Dangling(assignment.person_id, assignment.split_percentage))
        else:
            resolved.append(Resolved(person, assignment.split_percentage))
    return resolved


def _assigned_percentage(item: BillItem, people=None) -> float:
    if people is None:
        return sum(a.split_percentage for a in item.assignments)
    return sum(r.split_percentage for r in resolve_assignments(item, people) if isinstance(r, Resolved))


def item_assignment_status(item: BillItem, people: Optional[Iterable[BillPerson]] = None) -> str:
    """Classify an item as unassigned, partial, full or over.

    When ``people`` is given, assignments to unknown people are ignored.
    """
    total = _assigned_percentage(item, people)
    if abs(total) < STATUS_EPSILON:
        return STATUS_UNASSIGNED
    if abs(total - 100) < STATUS_EPSILON:
        return STATUS_FULL
    if total < 100:
        return STATUS_PARTIAL
    return STATUS_OVER


# --------- Assignment ledger ---------

def redistribute_equally(assignments: List[ItemAssignment]) -> List[ItemAssignment]:
    """Reset every assignee to an equal, unrounded share of 100%"""
    if not assignments:
        return []
    share = 100 / len(assignments)
    return [ItemAssignment(person_id=a.person_id, split_percentage=share) for a in assignments]


def toggle_assignment(item: BillItem, person_id: str,
                      redistribute: Callable[[List[ItemAssignment]], List[ItemAssignment]] = redistribute_equally) -> BillItem:
    """Add or remove ``person_id`` on the item, then rebalance the shares.

    Membership changes discard custom percentages: with the default policy
    every remaining assignee ends up at ``100 / count``.
    """
    if item.assignment_for(person_id) is not None:
        assignments = [a for a in item.assignments if a.person_id != person_id]
    else:
        assignments = list(item.assignments) + [ItemAssignment(person_id=person_id)]

    return replace(item, assignments=redistribute(assignments))


def set_split_percentage(item: BillItem, person_id: str, value) -> BillItem:
    """Overwrite one assignee's percentage, clamped to [0, 100].

    Other shares are left alone, so the sum may drift away from 100.
    """
    percentage = min(100.0, max(0.0, to_float(value)))
    assignments = [
        ItemAssignment(person_id=a.person_id, split_percentage=percentage) if a.person_id == person_id
        else ItemAssignment(person_id=a.person_id, split_percentage=a.split_percentage)
        for a in item.assignments
    ]
    return replace(item, assignments=assignments)


def split_evenly(item: BillItem) -> BillItem:
    """Explicit even split, rounding each share to 2 decimals"""
    if not item.assignments:
        return replace(item, assignments=[])

    even_percentage = round_currency(100 / len(item.assignments))
    assignments = [
        ItemAssignment(person_id=a.person_id, split_percentage=even_percentage)
        for a in item.assignments
    ]
    return replace(item, assignments=assignments)


# --------- Allocation ---------

def calculate_total_assigned(bill: Bill) -> float:
    """Sum of price * assigned fraction over all items, not capped at 100%"""
    people = _people_by_id(bill.people)
    return sum(item.price * _assigned_percentage(item, people) / 100 for item in bill.items)


def calculate_unassigned_amount(bill: Bill) -> float:
    """Sum of the unclaimed part of each item. Over-assigned items add 0"""
    people = _people_by_id(bill.people)
    total = 0.0
    for item in bill.items:
        unassigned_percentage = max(0.0, 100 - _assigned_percentage(item, people))
        total += item.price * unassigned_percentage / 100
    return total


def calculate_person_summaries(bill: Bill) -> List[PersonSummary]:
    """Break the bill down per person, in the order of ``bill.people``.

    Tax is shared in proportion to each person's part of the total assigned
    amount. Totals are accumulated unrounded and only rounded on output.
    """
    total_assigned = calculate_total_assigned(bill)
    summaries = []

    for person in bill.people:
        items_total = 0.0
        items = []

        for item in bill.items:
            assignment = item.assignment_for(person.id)
            if assignment is None:
                continue
            amount = item.price * assignment.split_percentage / 100
            items_total += amount
            items.append(PersonLineItem(
                name=item.name,
                amount=round_currency(amount),
                split_percentage=assignment.split_percentage,
            ))

        if bill.tax and total_assigned > 0:
            tax_share = (items_total / total_assigned) * bill.tax
        else:
            tax_share = 0.0

        summaries.append(PersonSummary(
            person=person,
            items_total=round_currency(items_total),
            tax_share=round_currency(tax_share),
            final_amount=round_currency(items_total + tax_share),
            items=items,
        ))

    return summaries


def calculate_bill_totals(bill: Bill) -> Dict[str, float]:
    """Derived display totals: item subtotal and subtotal plus tax"""
    subtotal = sum(item.price for item in bill.items)
    return {
        'subtotal': round_currency(subtotal),
        'total': round_currency(subtotal + (bill.tax or 0.0)),
    }


def build_split_report(bill: Bill) -> Dict:
    """Everything the summary view needs, as JSON-ready data"""
    people = _people_by_id(bill.people)
    summaries = calculate_person_summaries(bill)

    return {
        'currency': bill.currency,
        'summaries': [
            dict(s.to_dict(), final_amount_display=format_currency(s.final_amount, bill.currency))
            for s in summaries
        ],
        'total_assigned': round_currency(calculate_total_assigned(bill)),
        'unassigned_amount': round_currency(calculate_unassigned_amount(bill)),
        'item_statuses': {item.id: item_assignment_status(item, people) for item in bill.items},
        'totals': calculate_bill_totals(bill),
    }

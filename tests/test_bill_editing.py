import pytest
from bill_data import Bill, BillItem, ItemAssignment
from bill_editing import (
    add_item,
    add_person,
    apply_item_change,
    bill_from_scan,
    create_empty_bill,
    cycle_person_color,
    duplicate_bill,
    remove_item,
    remove_person,
    update_bill_details,
    update_item,
    update_person,
)
from bill_splitting_logic import toggle_assignment
from config import PERSON_COLORS
from exceptions import ItemNotFoundError, PersonLimitError, PersonNotFoundError


def test_create_empty_bill():
    bill = create_empty_bill('eur')

    assert bill.currency == 'EUR'
    assert bill.items == []
    assert bill.people == []
    assert bill.tax is None


def test_add_person_uses_default_name_and_free_color():
    bill = add_person(add_person(Bill()))

    assert [p.name for p in bill.people] == ['Person 1', 'Person 2']
    assert [p.color for p in bill.people] == PERSON_COLORS[:2]


def test_add_person_skips_colors_in_use():
    bill = add_person(Bill(), 'Alice')
    bill = update_person(bill, bill.people[0].id, color=PERSON_COLORS[0])
    bill = add_person(bill, 'Bob')
    bill = remove_person(bill, bill.people[0].id)

    bill = add_person(bill, 'Carol')

    assert [p.color for p in bill.people] == [PERSON_COLORS[1], PERSON_COLORS[0]]


def test_add_person_cap():
    bill = Bill()
    for _ in range(5):
        bill = add_person(bill)

    with pytest.raises(PersonLimitError):
        add_person(bill)


def test_add_person_does_not_mutate_input():
    bill = Bill()

    add_person(bill, 'Alice')

    assert bill.people == []


def test_cycle_person_color_wraps_around(dinner_bill):
    bill = update_person(dinner_bill, 'alice', color=PERSON_COLORS[-1])

    bill = cycle_person_color(bill, 'alice')

    assert bill.find_person('alice').color == PERSON_COLORS[0]


def test_update_unknown_person_raises(dinner_bill):
    with pytest.raises(PersonNotFoundError):
        update_person(dinner_bill, 'ghost', name='Casper')


def test_remove_person_strips_their_assignments(dinner_bill):
    bill = remove_person(dinner_bill, 'alice')

    assert [p.id for p in bill.people] == ['bob']
    for item in bill.items:
        assert all(a.person_id != 'alice' for a in item.assignments)
    assert bill.find_item('pizza').assignments == [ItemAssignment('bob', 50.0)]
    # Original is untouched
    assert len(dinner_bill.find_item('wine').assignments) == 1


def test_add_update_remove_item():
    bill = add_item(Bill(), 'Nachos', '8.50')
    item_id = bill.items[0].id

    bill = update_item(bill, item_id, price='not a number')
    assert bill.items[0].price == 0.0
    assert bill.items[0].name == 'Nachos'

    bill = update_item(bill, item_id, name='Loaded Nachos', price=9.25)
    assert (bill.items[0].name, bill.items[0].price) == ('Loaded Nachos', 9.25)

    bill = remove_item(bill, item_id)
    assert bill.items == []


def test_remove_unknown_item_raises():
    with pytest.raises(ItemNotFoundError):
        remove_item(Bill(), 'missing')


def test_apply_item_change(dinner_bill):
    bill = apply_item_change(dinner_bill, 'salad', lambda item: toggle_assignment(item, 'bob'))

    assert bill.find_item('salad').assignments == [ItemAssignment('bob', 100.0)]
    assert dinner_bill.find_item('salad').assignments == []


def test_update_bill_details(dinner_bill):
    bill = update_bill_details(dinner_bill, merchant_name='Mario', currency='gbp', tax='7.5')

    assert bill.merchant_name == 'Mario'
    assert bill.currency == 'GBP'
    assert bill.tax == 7.5


def test_bill_from_scan():
    scan = {
        'merchant_name': 'Corner Cafe',
        'currency': 'eur',
        'items': [{'name': 'Latte', 'price': 3.2}, {'name': 'Croissant', 'price': 'x'}],
        'subtotal': None,
        'tax': 0.5,
        'total': 5.7,
    }

    bill = bill_from_scan(scan, image_url='uploads/receipt.jpg')

    assert bill.merchant_name == 'Corner Cafe'
    assert bill.currency == 'EUR'
    assert [(i.name, i.price) for i in bill.items] == [('Latte', 3.2), ('Croissant', 0.0)]
    assert all(i.assignments == [] for i in bill.items)
    assert len({i.id for i in bill.items}) == 2
    assert bill.subtotal is None
    assert bill.tax == 0.5
    assert bill.image_url == 'uploads/receipt.jpg'


def test_bill_from_scan_defaults():
    bill = bill_from_scan({})

    assert bill.currency == 'USD'
    assert bill.items == []
    assert bill.tax is None


def test_duplicate_bill_remaps_ids(dinner_bill):
    copy = duplicate_bill(dinner_bill)

    assert copy.id != dinner_bill.id
    assert copy.merchant_name == "Luigi's (Copy)"
    assert {p.id for p in copy.people}.isdisjoint({p.id for p in dinner_bill.people})
    assert {i.id for i in copy.items}.isdisjoint({i.id for i in dinner_bill.items})

    new_alice = copy.people[0]
    pizza = copy.items[0]
    assert new_alice.name == 'Alice'
    assert pizza.assignment_for(new_alice.id).split_percentage == 50.0
    copy_person_ids = {p.id for p in copy.people}
    for item in copy.items:
        assert all(a.person_id in copy_person_ids for a in item.assignments)


def test_bill_from_dict_sanitizes_input():
    bill = Bill.from_dict({
        'merchant_name': None,
        'currency': 'cad',
        'tax': 'n/a',
        'items': [
            {'id': 'i1', 'name': 'Soup', 'price': '$1,250.00', 'assignments': [
                {'person_id': 'p1', 'split_percentage': '60'},
                {'person_id': 'p1', 'split_percentage': 40},
            ]},
            'garbage',
        ],
        'people': [{'id': 'p1', 'name': 'Pat'}],
    })

    assert bill.merchant_name == ''
    assert bill.currency == 'CAD'
    assert bill.tax is None
    assert len(bill.items) == 1
    assert bill.items[0] == BillItem(id='i1', name='Soup', price=1250.0,
                                     assignments=[ItemAssignment('p1', 60.0)])


def test_bill_from_dict_treats_non_finite_numbers_as_unparsable():
    bill = Bill.from_dict({
        'tax': 'Infinity',
        'items': [
            {'id': 'i1', 'name': 'Soup', 'price': 'inf', 'assignments': [
                {'person_id': 'p1', 'split_percentage': 'nan'},
            ]},
            {'id': 'i2', 'name': 'Bread', 'price': float('-inf')},
        ],
        'people': [{'id': 'p1', 'name': 'Pat'}],
    })

    assert bill.tax is None
    assert [i.price for i in bill.items] == [0.0, 0.0]
    assert bill.items[0].assignments == [ItemAssignment('p1', 0.0)]

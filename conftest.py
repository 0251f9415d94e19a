import os

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

import pytest
from PIL import Image
import io

from app import create_app
from config import TestingConfig
from extensions import db
from bill_data import Bill, BillItem, BillPerson, ItemAssignment
from bill_storage import save_bill


@pytest.fixture(scope='function')
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    flask_app = create_app(Config)

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture
def alice():
    return BillPerson(id='alice', name='Alice', color='#10B981')


@pytest.fixture
def bob():
    return BillPerson(id='bob', name='Bob', color='#3B82F6')


@pytest.fixture
def dinner_bill(alice, bob):
    """Two people sharing a pizza, Alice alone on the wine, salad unassigned"""
    return Bill(
        id='dinner',
        merchant_name="Luigi's",
        currency='USD',
        tax=6.00,
        people=[alice, bob],
        items=[
            BillItem(id='pizza', name='Pizza', price=30.00, assignments=[
                ItemAssignment('alice', 50.0),
                ItemAssignment('bob', 50.0),
            ]),
            BillItem(id='wine', name='Wine', price=20.00, assignments=[
                ItemAssignment('alice', 100.0),
            ]),
            BillItem(id='salad', name='Salad', price=10.00),
        ],
    )


@pytest.fixture
def saved_bill(app, dinner_bill):
    save_bill(dinner_bill)
    return dinner_bill


@pytest.fixture
def mock_extract_data(mocker):
    """Mocks the external receipt data extraction function."""
    return mocker.patch(
        'app.extract_receipt_data',
        return_value={
            'merchant_name': 'MockStore',
            'currency': 'USD',
            'items': [{'name': 'Coffee', 'price': 3.5}, {'name': 'Bagel', 'price': 2.25}],
            'subtotal': 5.75,
            'tax': 0.46,
            'total': 6.21,
        }
    )


@pytest.fixture
def receipt_image():
    """Return an in-memory JPEG image file."""
    img = Image.new('RGB', (100, 100), color='white')
    img_bytes = io.BytesIO()
    img.save(img_bytes, format='JPEG')
    img_bytes.seek(0)
    return img_bytes

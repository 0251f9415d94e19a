import io
import logging
import mimetypes
import os
from datetime import datetime

from flask import Blueprint, Flask, current_app, jsonify, request
from PIL import Image, UnidentifiedImageError

from bill_data import Bill
from bill_editing import (add_item, add_person, apply_item_change, bill_from_scan, cycle_person_color, remove_item,
                          remove_person, update_bill_details, update_item, update_person)
from bill_splitting_logic import build_split_report, set_split_percentage, split_evenly, toggle_assignment
from bill_storage import delete_bill, duplicate_saved_bill, get_bill, load_bills, save_bill
from config import get_config
from exceptions import (BillNotFoundError, ItemNotFoundError, PersonLimitError, PersonNotFoundError,
                        ScanError, StorageError)
from extensions import db, migrate
from receipt_scanner import extract_receipt_data

api = Blueprint('api', __name__, url_prefix='/api')


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(levelname)s [%(name)s] %(message)s')
    app.logger.setLevel(level)


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(api)

    # Create DB tables
    with app.app_context():
        db.create_all()

    return app


# --------- Error handlers ---------

@api.errorhandler(BillNotFoundError)
@api.errorhandler(ItemNotFoundError)
@api.errorhandler(PersonNotFoundError)
def handle_not_found(error):
    return jsonify({'error': str(error)}), 404


@api.errorhandler(PersonLimitError)
def handle_person_limit(error):
    return jsonify({'error': str(error)}), 409


@api.errorhandler(StorageError)
def handle_storage_error(error):
    return jsonify({
        'success': False,
        'error': f'{error}. Please try again.'
    }), 500


@api.app_errorhandler(413)
def handle_too_large(error):
    limit_mb = current_app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
    return jsonify({'error': f'File too large. Maximum upload size is {limit_mb}MB.'}), 413


def _bill_from_request():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    payload = data.get('bill', data)
    if not isinstance(payload, dict):
        return None
    return Bill.from_dict(payload)


def _save_and_report(bill):
    saved = get_bill(save_bill(bill))
    return jsonify({
        'success': True,
        'bill': saved.to_dict(),
        'split': build_split_report(saved)
    }), 200


# --------- Bills ---------

@api.route('/bills', methods=['GET'])
def list_bills():
    """Get all saved bills, newest first"""
    bills = load_bills()
    return jsonify({
        'success': True,
        'bills': [bill.to_dict() for bill in bills]
    }), 200


@api.route('/bills/<bill_id>', methods=['GET'])
def get_saved_bill(bill_id):
    bill = get_bill(bill_id)
    return jsonify({
        'success': True,
        'bill': bill.to_dict()
    }), 200


@api.route('/bills', methods=['POST'])
def save_bill_route():
    """Save a full bill payload (insert or replace)"""
    bill = _bill_from_request()
    if bill is None:
        return jsonify({'error': 'Bill data is required'}), 400

    bill_id = save_bill(bill)
    current_app.logger.info("Bill %s saved", bill_id)
    return jsonify({
        'success': True,
        'bill_id': bill_id,
        'bill': get_bill(bill_id).to_dict()
    }), 200


@api.route('/bills/<bill_id>', methods=['PATCH'])
def update_bill_route(bill_id):
    """Edit merchant name, currency or tax of a stored bill"""
    data = request.get_json(silent=True) or {}
    bill = update_bill_details(
        get_bill(bill_id),
        merchant_name=data.get('merchant_name'),
        currency=data.get('currency'),
        tax=data.get('tax'),
    )
    return _save_and_report(bill)


@api.route('/bills/<bill_id>', methods=['DELETE'])
def delete_bill_route(bill_id):
    delete_bill(bill_id)
    return jsonify({'success': True}), 200


@api.route('/bills/<bill_id>/duplicate', methods=['POST'])
def duplicate_bill_route(bill_id):
    new_id = duplicate_saved_bill(bill_id)
    return jsonify({
        'success': True,
        'bill_id': new_id,
        'bill': get_bill(new_id).to_dict()
    }), 201


# --------- Split summaries ---------

@api.route('/bills/summary', methods=['POST'])
def summarize_unsaved_bill():
    """Split an unsaved bill payload among its people"""
    bill = _bill_from_request()
    if bill is None:
        return jsonify({'error': 'Bill data is required'}), 400

    return jsonify({
        'success': True,
        'split': build_split_report(bill)
    }), 200


@api.route('/bills/<bill_id>/summary', methods=['GET'])
def summarize_saved_bill(bill_id):
    bill = get_bill(bill_id)
    return jsonify({
        'success': True,
        'split': build_split_report(bill)
    }), 200


# --------- Assignment ledger ---------

@api.route('/bills/<bill_id>/items/<item_id>/toggle', methods=['POST'])
def toggle_item_assignment(bill_id, item_id):
    data = request.get_json(silent=True) or {}
    person_id = data.get('person_id')
    if not person_id:
        return jsonify({'error': 'person_id is required'}), 400

    bill = get_bill(bill_id)
    if bill.find_person(person_id) is None:
        raise PersonNotFoundError(f"Person {person_id} not found")

    bill = apply_item_change(bill, item_id, lambda item: toggle_assignment(item, person_id))
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/items/<item_id>/assignments/<person_id>', methods=['PUT'])
def update_item_assignment(bill_id, item_id, person_id):
    data = request.get_json(silent=True) or {}
    if data.get('split_percentage') is None:
        return jsonify({'error': 'split_percentage is required'}), 400

    bill = get_bill(bill_id)
    item = bill.find_item(item_id)
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found")
    if item.assignment_for(person_id) is None:
        return jsonify({'error': 'Person is not assigned to this item'}), 404

    bill = apply_item_change(bill, item_id,
                             lambda item: set_split_percentage(item, person_id, data['split_percentage']))
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/items/<item_id>/split-evenly', methods=['POST'])
def split_item_evenly(bill_id, item_id):
    bill = apply_item_change(get_bill(bill_id), item_id, split_evenly)
    return _save_and_report(bill)


# --------- People and items ---------

@api.route('/bills/<bill_id>/people', methods=['POST'])
def add_bill_person(bill_id):
    data = request.get_json(silent=True) or {}
    bill = add_person(
        get_bill(bill_id),
        name=data.get('name'),
        max_people=current_app.config['MAX_PEOPLE'],
        palette=current_app.config['PERSON_COLORS'],
    )
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/people/<person_id>', methods=['PATCH'])
def update_bill_person(bill_id, person_id):
    data = request.get_json(silent=True) or {}
    bill = update_person(get_bill(bill_id), person_id, name=data.get('name'), color=data.get('color'))
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/people/<person_id>/cycle-color', methods=['POST'])
def cycle_bill_person_color(bill_id, person_id):
    bill = cycle_person_color(get_bill(bill_id), person_id, palette=current_app.config['PERSON_COLORS'])
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/people/<person_id>', methods=['DELETE'])
def remove_bill_person(bill_id, person_id):
    bill = remove_person(get_bill(bill_id), person_id)
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/items', methods=['POST'])
def add_bill_item(bill_id):
    data = request.get_json(silent=True) or {}
    bill = add_item(get_bill(bill_id), name=data.get('name', ''), price=data.get('price'))
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/items/<item_id>', methods=['PATCH'])
def update_bill_item(bill_id, item_id):
    data = request.get_json(silent=True) or {}
    bill = update_item(get_bill(bill_id), item_id, name=data.get('name'), price=data.get('price'))
    return _save_and_report(bill)


@api.route('/bills/<bill_id>/items/<item_id>', methods=['DELETE'])
def remove_bill_item(bill_id, item_id):
    bill = remove_item(get_bill(bill_id), item_id)
    return _save_and_report(bill)


# --------- Receipt scanning ---------

@api.route('/scan-bill', methods=['POST'])
def scan_bill():
    if 'image' not in request.files:
        return jsonify({'error': 'No image file provided'}), 400

    file = request.files['image']

    if file.filename == '':
        return jsonify({'error': 'No file selected'}), 400

    mime_type, _ = mimetypes.guess_type(file.filename)

    if mime_type not in current_app.config['ALLOWED_MIMETYPES']:
        return jsonify({'error': f'Unsupported file type: {mime_type}. Must be an image.'}), 415

    try:
        image_bytes = file.read()
        temp_image = Image.open(io.BytesIO(image_bytes)).convert('RGB')

        timestamp = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')
        filename = f"receipt_{timestamp}.jpg"
        filepath = os.path.join(current_app.config['UPLOAD_FOLDER'], filename)
        temp_image.save(filepath)
    except (OSError, UnidentifiedImageError):
        current_app.logger.exception("Could not store uploaded receipt image")
        return jsonify({
            'success': False,
            'error': 'Could not read the uploaded image.'
        }), 400

    try:
        result = extract_receipt_data(filepath, current_app.config.get('TESSERACT_CMD'))
    except ScanError as e:
        current_app.logger.warning("Receipt scan failed: %s", e)
        if os.path.exists(filepath):
            os.remove(filepath)
        return jsonify({
            'success': False,
            'error': 'Failed to scan the bill. Please try again.'
        }), 502

    bill = bill_from_scan(result, image_url=filepath)

    return jsonify({
        'success': True,
        'data': result,
        'image_url': filepath,
        'bill': bill.to_dict()
    }), 200


app = create_app()

# Run the app
if __name__ == "__main__":
    app.run(debug=True, host='0.0.0.0', port=5000)

import logging
import re

import pytesseract
from PIL import Image, UnidentifiedImageError

from bill_data import to_float
from config import DEFAULT_CURRENCY
from exceptions import ScanError

logger = logging.getLogger(__name__)

PRICE_PATTERN = re.compile(r'-?[0-9]+\.[0-9]{2}')
AMOUNT_PATTERN = re.compile(r'[0-9]+\.[0-9]{2}|[0-9]+')

# Lines carrying these words are totals, payments or store info, never items
SKIP_WORDS = ['TOTAL', 'SUBTOTAL', 'TAX', 'CASH', 'CHANGE', 'ITEMS SOLD', 'DISCOUNT',
              'VISA', 'MASTERCARD', 'BALANCE', 'T#', 'OPEN', 'HOURS', 'THANK']
STORE_KEYWORDS = ['STORE', 'MARKET', 'SHOP', 'GROCERY', 'SUPER', 'MART', 'FOOD',
                  'CAFE', 'RESTAURANT', 'BAR', 'GRILL', 'KITCHEN', 'PIZZA']
CURRENCY_MARKERS = [
    ('€', 'EUR'),
    ('EUR', 'EUR'),
    ('£', 'GBP'),
    ('GBP', 'GBP'),
    ('¥', 'JPY'),
    ('$', 'USD'),
    ('USD', 'USD'),
]


def _amount_on_line(line):
    amounts = AMOUNT_PATTERN.findall(line)
    return amounts[-1] if amounts else ''


def detect_currency(text, default=DEFAULT_CURRENCY):
    for marker, code in CURRENCY_MARKERS:
        if marker in text:
            return code
    return default


def parse_receipt_text(text):
    """
    Parse raw OCR text into the scan result shape:
    merchant_name, currency, items [{name, price}], subtotal, tax, total
    """
    cleaned_lines = []
    for line in text.split('\n'):
        line = line.strip()
        if line and len(line) > 1:
            cleaned_lines.append(line)

    parsed_data = {
        'merchant_name': '',
        'currency': detect_currency(text),
        'items': [],
        'subtotal': '',
        'tax': '',
        'total': '',
    }

    # Merchant is usually one of the first few lines, without prices
    for line in cleaned_lines[:5]:
        if 2 < len(line) < 50 and not PRICE_PATTERN.search(line) and (
                any(keyword in line.upper() for keyword in STORE_KEYWORDS) or
                (re.search(r'[A-Z][a-z]+', line) and not re.search(r'\d', line))):
            parsed_data['merchant_name'] = line
            break

    for i, line in enumerate(cleaned_lines):
        line_upper = line.upper()

        if 'SUBTOTAL' in line_upper or 'SUB TOTAL' in line_upper:
            parsed_data['subtotal'] = _amount_on_line(line)
            continue
        if 'TAX' in line_upper:
            parsed_data['tax'] = _amount_on_line(line)
            continue
        if 'TOTAL' in line_upper:
            parsed_data['total'] = _amount_on_line(line)
            continue

        if any(skip_word in line_upper for skip_word in SKIP_WORDS):
            continue

        if not (re.search(r'[A-Za-z]{3,}', line) and
                not re.search(r'[0-9]{5,}', line) and
                3 < len(line) < 50):
            continue

        # Price is on the same line or on the next one
        prices = PRICE_PATTERN.findall(line)
        if prices:
            item_name = PRICE_PATTERN.sub('', line).strip(' .:$€£')
            if len(item_name) > 2:
                parsed_data['items'].append({'name': item_name, 'price': prices[-1]})
        elif i + 1 < len(cleaned_lines):
            next_line = cleaned_lines[i + 1]
            next_prices = PRICE_PATTERN.findall(next_line)
            if next_prices and not re.search(r'[A-Za-z]{3,}', next_line):
                parsed_data['items'].append({'name': line, 'price': next_prices[0]})

    return normalize_scan_result(parsed_data)


def normalize_scan_result(raw):
    """
    Coerce any extraction payload into the scan result shape. Unparsable item
    prices become 0.0, unparsable totals become None and nameless items are
    dropped.
    """
    if not isinstance(raw, dict):
        raise ScanError('Receipt data is not an object')

    items = []
    for item in raw.get('items') or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get('name') or '').strip()
        if not name:
            continue
        items.append({'name': name, 'price': to_float(item.get('price'))})

    currency = str(raw.get('currency') or DEFAULT_CURRENCY).strip().upper()[:3] or DEFAULT_CURRENCY

    return {
        'merchant_name': str(raw.get('merchant_name') or raw.get('store_name') or '').strip(),
        'currency': currency,
        'items': items,
        'subtotal': to_float(raw.get('subtotal'), None),
        'tax': to_float(raw.get('tax'), None),
        'total': to_float(raw.get('total'), None),
    }


def extract_receipt_data(image_path, tesseract_cmd=None):
    """
    Complete receipt processing: OCR + parsing
    Returns structured scan data from a receipt image
    """
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    try:
        with Image.open(image_path) as image:
            text = pytesseract.image_to_string(image)
    except (OSError, UnidentifiedImageError, pytesseract.TesseractError) as e:
        logger.exception("OCR failed for %s", image_path)
        raise ScanError(f'Could not read receipt image: {e}') from e

    logger.debug("OCR produced %d characters for %s", len(text), image_path)
    result = parse_receipt_text(text)
    logger.info("Scanned %s: %d items, total=%s", image_path, len(result['items']), result['total'])
    return result

"""
Centralized configuration for Easy Split, overridable through the environment
"""

import os


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(',') if part.strip()]


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///easy_split.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Uploads
    UPLOAD_FOLDER = os.getenv('EASYSPLIT_UPLOAD_FOLDER', 'uploads')
    MAX_CONTENT_LENGTH = int(os.getenv('EASYSPLIT_MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))
    ALLOWED_MIMETYPES = _env_list('EASYSPLIT_ALLOWED_MIMETYPES', ['image/jpeg', 'image/png', 'image/webp'])

    # Bills
    DEFAULT_CURRENCY = os.getenv('EASYSPLIT_DEFAULT_CURRENCY', 'USD')
    MAX_PEOPLE = int(os.getenv('EASYSPLIT_MAX_PEOPLE', '5'))
    PERSON_COLORS = _env_list('EASYSPLIT_PERSON_COLORS', [
        '#10B981',  # Emerald
        '#3B82F6',  # Blue
        '#F59E0B',  # Amber
        '#EF4444',  # Red
        '#8B5CF6',  # Violet
    ])

    # OCR
    TESSERACT_CMD = os.getenv('TESSERACT_CMD')

    LOG_LEVEL = os.getenv('EASYSPLIT_LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    UPLOAD_FOLDER = os.getenv('EASYSPLIT_TEST_UPLOAD_FOLDER', os.path.join('instance', 'test_uploads'))
    LOG_LEVEL = 'DEBUG'


def get_config():
    """Pick the config class from FLASK_ENV"""
    if os.getenv('FLASK_ENV') == 'testing':
        return TestingConfig
    return Config


# Module-level defaults for code running outside an app context
DEFAULT_CURRENCY = Config.DEFAULT_CURRENCY
MAX_PEOPLE = Config.MAX_PEOPLE
PERSON_COLORS = Config.PERSON_COLORS

"""
Domain-specific exceptions for Easy Split.

These are raised by the editing, storage and scanning layers and turned into
HTTP responses by the views. The allocation engine itself never raises.
"""


class EasySplitError(Exception):
    """Base exception for all Easy Split errors."""
    pass


class BillNotFoundError(EasySplitError):
    """Raised when a bill does not exist in the store."""
    pass


class ItemNotFoundError(EasySplitError):
    """Raised when an item id is not on the bill."""
    pass


class PersonNotFoundError(EasySplitError):
    """Raised when a person id is not on the bill."""
    pass


class PersonLimitError(EasySplitError):
    """Raised when adding a person would exceed the per-bill cap."""
    pass


class StorageError(EasySplitError):
    """Raised when a database read or write fails. Safe to retry."""
    pass


class ScanError(EasySplitError):
    """Raised when a receipt image cannot be read or parsed. Safe to retry."""
    pass

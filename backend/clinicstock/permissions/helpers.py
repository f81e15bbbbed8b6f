# Overview: Utility functions for capability lookups and validation.

from .definitions import CATEGORY_RECORDS


def get_all_categories():
    """Get list of all feature category keys."""
    return list(CATEGORY_RECORDS.keys())


def get_capabilities_by_category(category):
    """Get all capability keys in a category (empty for unknown categories)."""
    record = CATEGORY_RECORDS.get(category)
    return record.capability_keys() if record else []


def get_all_capability_pairs():
    """Every known (category, capability) pair."""
    return [
        (category, key)
        for category, record in CATEGORY_RECORDS.items()
        for key in record.capability_keys()
    ]


def validate_capability(category, key):
    """Check if a (category, capability) pair is known."""
    record = CATEGORY_RECORDS.get(category)
    return bool(record and record.knows(key))


def is_numeric_capability(category, key):
    record = CATEGORY_RECORDS.get(category)
    return bool(record and record.is_numeric(key))

"""Shared utility functions for the inspection application.

This module contains small helpers used by the inspection engine, the
services and the API layer.
"""

import logging
import uuid
from shared.models import now

logger = logging.getLogger(__name__)


def generate_id():
    """Return a new random identifier (UUID4 string)."""
    return str(uuid.uuid4())


def today_string(at=None):
    """Date portion used for inspection dates and date field defaults (YYYY-MM-DD)."""
    return (at or now()).strftime('%Y-%m-%d')


def current_time_string(at=None):
    """Time portion used for inspection times and time field defaults (HH:MM)."""
    return (at or now()).strftime('%H:%M')


def build_response_lookup(responses):
    """Build a response lookup dictionary for O(1) access by field id.

    Later entries win when a field id appears more than once, matching the
    upsert semantics of recorded responses.

    Args:
        responses (list): InspectionResponse objects or dicts with 'field_id' and 'value'

    Returns:
        dict: Dictionary mapping field_id -> value
    """
    response_lookup = {}
    for r in responses or []:
        if isinstance(r, dict):
            field_id = r.get('field_id', r.get('fieldId'))
            value = r.get('value')
        else:
            field_id = r.field_id
            value = r.value
        if field_id is not None:
            response_lookup[str(field_id)] = value
    return response_lookup


def percentage(part, whole):
    """Percentage rounded to one decimal place; 0 when there is nothing to count."""
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)

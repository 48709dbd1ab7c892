"""
Form validation for pools and daily entries.

Both validators take the raw form dict (strings straight from the user or
numbers), return a cleaned dict with numbers parsed, and raise
ValidationError with one message per offending field.
"""
import math
from datetime import datetime
from typing import Dict, Optional

from lpdash.analysis.numbers import parse_locale_number
from lpdash.exceptions import ValidationError


# Platform choice that asks for a free-text name instead
OTHER_PLATFORM = 'Other'

POOL_TEXT_FIELDS = ('platform', 'name', 'token_a', 'token_b', 'token_a_id', 'token_b_id', 'fee_tier')
INITIAL_VALUE_FIELDS = (
    'initial_position_value_usd',
    'initial_fees_accumulated_token_a',
    'initial_fees_accumulated_token_b',
)


def _text(data: Dict, key: str) -> str:
    value = data.get(key)
    return str(value).strip() if value is not None else ''


def _optional_number(value) -> Optional[float]:
    """None for an empty field, NaN for garbage, the number otherwise."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_locale_number(value)


def validate_pool_form(data: Dict) -> Dict:
    """Validate a pool create/edit form.

    Create mode (no 'id') also requires the three initial values used for
    the pool's first daily entry.
    """
    errors = {}
    cleaned = {key: _text(data, key) for key in POOL_TEXT_FIELDS}
    pool_id = _text(data, 'id')
    if pool_id:
        cleaned['id'] = pool_id

    if not cleaned['platform']:
        errors['platform'] = "Platform is required."
    elif cleaned['platform'] == OTHER_PLATFORM:
        new_platform = _text(data, 'new_platform')
        if not new_platform:
            errors['new_platform'] = "Please enter the name of the new platform."
        cleaned['platform'] = new_platform

    if len(cleaned['name']) < 3:
        errors['name'] = "Name must have at least 3 characters."
    for key, label in (('token_a', 'Token A'), ('token_b', 'Token B')):
        if not cleaned[key]:
            errors[key] = f"{label} is required."
    for key, label in (('token_a_id', 'Token A'), ('token_b_id', 'Token B')):
        if not cleaned[key]:
            errors[key] = f"{label} id is required."
    if not cleaned['fee_tier']:
        errors['fee_tier'] = "Fee tier is required."

    for key, label in (('range_min', 'Minimum'), ('range_max', 'Maximum')):
        value = parse_locale_number(data.get(key))
        if math.isnan(value):
            errors[key] = "Must be a valid number."
        elif value < 0:
            errors[key] = f"{label} range must be positive."
        cleaned[key] = value

    if 'range_min' not in errors and 'range_max' not in errors:
        if cleaned['range_max'] <= cleaned['range_min']:
            errors['range_max'] = "Maximum range must be greater than the minimum range."

    for key in INITIAL_VALUE_FIELDS:
        value = _optional_number(data.get(key))
        if value is not None and math.isnan(value):
            errors[key] = "Must be a valid number."
        elif value is not None and value < 0:
            errors[key] = "Must be zero or positive."
        elif value is None and not pool_id:
            errors[key] = "Initial value is required (may be 0)."
        cleaned[key] = value

    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_entry_form(data: Dict) -> Dict:
    """Validate a daily entry form."""
    errors = {}
    cleaned = {}

    cleaned['pool_id'] = _text(data, 'pool_id')
    if not cleaned['pool_id']:
        errors['pool_id'] = "Pool id is required."

    cleaned['date'] = _text(data, 'date')
    if not cleaned['date']:
        errors['date'] = "Date is required."
    else:
        try:
            # Stored zero-padded: dates are compared and sorted as strings
            cleaned['date'] = datetime.strptime(cleaned['date'], '%Y-%m-%d').date().isoformat()
        except ValueError:
            errors['date'] = "Date must be in YYYY-MM-DD format."

    for key, label in (('position_value_usd', 'Position value'),
                       ('fees_accumulated_token_a', 'Token A fees'),
                       ('fees_accumulated_token_b', 'Token B fees')):
        value = _optional_number(data.get(key))
        if value is None or math.isnan(value):
            errors[key] = f"{label} must be a valid number."
        elif value < 0:
            errors[key] = f"{label} must be positive."
        cleaned[key] = value

    withdrawn = _optional_number(data.get('fees_withdrawn_usd'))
    if withdrawn is not None and math.isnan(withdrawn):
        errors['fees_withdrawn_usd'] = "Withdrawn fees must be a valid number."
    elif withdrawn is not None and withdrawn < 0:
        errors['fees_withdrawn_usd'] = "Withdrawn fees must be positive."
    cleaned['fees_withdrawn_usd'] = withdrawn

    cleaned['note'] = _text(data, 'note')

    if errors:
        raise ValidationError(errors)
    return cleaned

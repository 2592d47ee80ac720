import re
from datetime import date, datetime

from rentflow.errors import ValidationError
from rentflow.utils.sanitizers import sanitize_string


def validate_phone(phone):
    """Loose international phone check: optional +, 7 to 15 digits"""
    phone = re.sub(r'[\s\-()]', '', phone or '')
    return bool(re.match(r'^\+?\d{7,15}$', phone))


def parse_date(value, field, required=True):
    """Parse an ISO date (YYYY-MM-DD); full ISO datetimes are truncated"""
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date (YYYY-MM-DD)', field=field)


def parse_int(value, field, minimum=None, maximum=None, required=True, default=None):
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return default
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a whole number', field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a whole number', field=field)
    if isinstance(value, float) and value != number:
        raise ValidationError(f'{field} must be a whole number', field=field)

    if minimum is not None and number < minimum:
        raise ValidationError(f'{field} must be at least {minimum}', field=field)
    if maximum is not None and number > maximum:
        raise ValidationError(f'{field} must be at most {maximum}', field=field)
    return number


def parse_enum(value, enum_cls, field, required=True, default=None):
    """Return the enum member whose value matches ``value``"""
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f'{field} must be one of: {allowed}', field=field)


def parse_bool(value, field, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if str(value).lower() in ('true', '1', 'yes'):
        return True
    if str(value).lower() in ('false', '0', 'no'):
        return False
    raise ValidationError(f'{field} must be true or false', field=field)


def clean_text(value, field, required=False, max_length=None):
    """Strip markup and whitespace from free text"""
    text = sanitize_string(value) if value is not None else ''
    if required and not text:
        raise ValidationError(f'{field} is required', field=field)
    if max_length and len(text) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters', field=field)
    return text or None


def clean_identifier(value, field, required=False, max_length=None):
    """Opaque references (transaction codes, methods, URLs) are kept verbatim"""
    text = str(value).strip() if value is not None else ''
    if required and not text:
        raise ValidationError(f'{field} is required', field=field)
    if max_length and len(text) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters', field=field)
    return text or None

from decimal import Decimal, InvalidOperation

from rentflow.errors import ValidationError

CENT = Decimal('0.01')


def to_money(value, field='amount', allow_zero=False):
    """Parse a request value into a two-place Decimal.

    Floats are routed through ``str`` so 0.1 stays 0.1. Anything with more
    than two decimal places is rejected rather than rounded.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} is required', field=field)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number', field=field)

    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number', field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f'{field} cannot have more than two decimal places', field=field)
    if amount < 0 or (amount == 0 and not allow_zero):
        bound = 'zero or more' if allow_zero else 'greater than zero'
        raise ValidationError(f'{field} must be {bound}', field=field)

    return amount.quantize(CENT)


def money_str(value):
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT))

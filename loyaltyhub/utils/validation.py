"""
Input coercion helpers shared by services and API handlers.
"""
from .exceptions import InvalidParametersError


def coerce_id(value, field: str) -> int:
    """
    Coerce an identifier to a positive int.

    Accepts ints and numeric strings ("42", " 42 "). Anything else raises
    InvalidParametersError naming the field.
    """
    if value is None or isinstance(value, bool):
        raise InvalidParametersError(f'{field} is required', field=field)

    if isinstance(value, int):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise InvalidParametersError(f'{field} is required', field=field)
        try:
            result = int(text)
        except ValueError:
            raise InvalidParametersError(f'{field} must be numeric', field=field)

    if result <= 0:
        raise InvalidParametersError(f'{field} must be a positive integer', field=field)
    return result


def coerce_points(value, field: str = 'points', allow_zero: bool = False) -> int:
    """Coerce a points amount to int, rejecting negatives (and zero unless allowed)."""
    if value is None or isinstance(value, bool):
        raise InvalidParametersError(f'{field} is required', field=field)
    try:
        points = int(value)
    except (TypeError, ValueError):
        raise InvalidParametersError(f'{field} must be an integer', field=field)
    if points != value and not isinstance(value, str):
        # Reject 1.5 silently truncating to 1
        raise InvalidParametersError(f'{field} must be a whole number', field=field)
    if points < 0 or (points == 0 and not allow_zero):
        raise InvalidParametersError(f'{field} must be positive', field=field)
    return points

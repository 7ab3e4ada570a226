"""
Money helpers.

All ledger arithmetic happens on integers of the minor unit (paise, cents).
Decimal strings are only used at the HTTP boundary.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from splitledger.services.exceptions import ValidationError

DEFAULT_MINOR_UNIT_DIGITS = 2

# Balances and amounts live in signed 64-bit BIGINT columns
MAX_MINOR_UNITS = 2 ** 63 - 1


def _quantum(digits):
    return Decimal(1).scaleb(-digits)


def to_minor_units(value, digits=DEFAULT_MINOR_UNIT_DIGITS):
    """
    Convert a major-unit amount ("12.50", 12.5, Decimal) to minor units (1250).

    Rounds half up to the minor unit. Floats go through str() first so
    12.1 becomes 1210 and not 1209.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid amount: {value!r}")

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise ValidationError(f"Invalid amount: {value!r}")
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}") from None

    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")

    # Checked before quantize(), which fails past the context precision
    if abs(amount.scaleb(digits)) > MAX_MINOR_UNITS:
        raise ValidationError(f"Amount {value!r} is too large")

    minor = int(amount.quantize(_quantum(digits), rounding=ROUND_HALF_UP).scaleb(digits))
    if abs(minor) > MAX_MINOR_UNITS:
        raise ValidationError(f"Amount {value!r} is too large")
    return minor


def to_major_units(minor, digits=DEFAULT_MINOR_UNIT_DIGITS):
    """Convert minor units back to a Decimal with exactly `digits` places."""
    return Decimal(int(minor)).scaleb(-digits).quantize(_quantum(digits))


def format_amount(minor, digits=DEFAULT_MINOR_UNIT_DIGITS):
    return str(to_major_units(minor, digits))


def round_to_minor(value):
    """Round an arbitrary numeric balance to a whole number of minor units."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid balance: {value!r}")
    if isinstance(value, int):
        return value
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        return int(amount.to_integral_value(rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid balance: {value!r}") from None


def split_equally(total, user_ids):
    """
    Split `total` minor units between `user_ids`.

    Leftover units are handed out one by one starting from the first
    member, so the shares always add up to the total exactly.

    Returns: list of (user_id, amount) in the order given.
    """
    count = len(user_ids)
    if count == 0:
        raise ValidationError("Cannot split an expense between zero members")
    if len(set(user_ids)) != count:
        raise ValidationError("Duplicate members in equal split")
    if int(total) < count:
        raise ValidationError(f"Amount too small to split between {count} members")

    base, remainder = divmod(int(total), count)
    shares = []
    for index, user_id in enumerate(user_ids):
        shares.append((user_id, base + (1 if index < remainder else 0)))
    return shares

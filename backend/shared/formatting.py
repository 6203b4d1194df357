from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")


def format_brl(value) -> str:
    """Format ``value`` as Brazilian Real, e.g. ``R$ 1.234,56``."""
    amount = Decimal(str(value or 0)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    integer, _, cents = f"{abs(amount):.2f}".partition(".")
    groups = []
    while integer:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    return f"{sign}R$ {'.'.join(groups)},{cents}"

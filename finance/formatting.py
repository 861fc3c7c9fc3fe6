"""Display formatting for money. Nothing in the arithmetic core calls this."""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
TENTH = Decimal('0.1')


def _group_indian(digits):
    # 1234567 -> 12,34,567: last three digits, then groups of two
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups + [tail])


def format_inr(amount, symbol='₹'):
    amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    whole, frac = f'{abs(amount):.2f}'.split('.')
    return f'{sign}{symbol}{_group_indian(whole)}.{frac}'


def format_compact(amount, symbol='₹'):
    """Short label for chart axes: ₹1.2Cr, ₹4.5L, ₹12.0k."""
    amount = Decimal(amount)
    sign = '-' if amount < 0 else ''
    value = abs(amount)
    for size, suffix in ((Decimal(10000000), 'Cr'), (Decimal(100000), 'L'), (Decimal(1000), 'k')):
        if value >= size:
            return f'{sign}{symbol}{(value / size).quantize(TENTH, rounding=ROUND_HALF_UP)}{suffix}'
    return f'{sign}{symbol}{value.quantize(CENT, rounding=ROUND_HALF_UP)}'


def format_percent(rate):
    return f'{Decimal(rate).quantize(CENT, rounding=ROUND_HALF_UP)}%'

"""
Request payload parsing and record dumping.

Payloads arrive with camelCase keys (fdNumber, principalAmount, ...) and are
parsed into records keyed by column name (fd_number, principal_amount, ...).
Every offending field is reported at once in a single ValidationError.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from errors import ValidationError
from finance.reinvest import TENURE_TYPES, fd_terms, tenure_from_dates

CENT = Decimal('0.01')
MONEY_LIMIT = Decimal(10) ** 10

RECURRENCE_FREQUENCIES = ('daily', 'weekly', 'bi-weekly', 'monthly', 'quarterly', 'half-yearly', 'yearly')

EXPENSE_CATEGORIES = [
    'Housing', 'Utilities', 'Food', 'Transportation',
    'Medical', 'Insurance', 'Entertainment', 'Education',
    'Shopping', 'Investments', 'Travel', 'Debt', 'Other',
]

_MISSING = object()


def camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


# ---------------------- Field parsers ----------------------
def text(value):
    if not isinstance(value, str):
        raise ValueError('Must be a string')
    value = value.strip()
    if not value:
        raise ValueError('Must not be empty')
    return value


def optional_text(value):
    if not isinstance(value, str):
        raise ValueError('Must be a string')
    return value.strip() or None


def _decimal(value):
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError('Must be a number')
    if isinstance(value, str):
        value = value.replace(',', '').strip()
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError('Must be a number') from None
    if not number.is_finite():
        raise ValueError('Must be a finite number')
    # Numeric(12, 2) columns hold at most 10 integer digits
    if abs(number) >= MONEY_LIMIT:
        raise ValueError('Must be less than 10,000,000,000')
    try:
        return number.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError('Must be a number') from None


def signed_money(value):
    return _decimal(value)


def money(value):
    number = _decimal(value)
    if number < 0:
        raise ValueError('Must not be negative')
    return number


def integer(value):
    if isinstance(value, bool):
        raise ValueError('Must be an integer')
    if isinstance(value, str):
        value = value.strip()
        if not value.isascii():
            raise ValueError('Must be an integer')
        try:
            return int(value)
        except ValueError:
            raise ValueError('Must be an integer') from None
    if isinstance(value, int):
        return value
    raise ValueError('Must be an integer')


def positive_int(value):
    number = integer(value)
    if number < 1:
        raise ValueError('Must be at least 1')
    return number


def month_number(value):
    number = integer(value)
    if not 1 <= number <= 12:
        raise ValueError('Must be between 1 and 12')
    return number


def boolean(value):
    if not isinstance(value, bool):
        raise ValueError('Must be true or false')
    return value


def iso_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError('Must be a date in YYYY-MM-DD format')
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValueError('Must be a date in YYYY-MM-DD format') from None


def email(value):
    value = text(value).lower()
    if '@' not in value:
        raise ValueError('Must be an email address')
    return value


def choice(options):
    def parse(value):
        if value not in options:
            raise ValueError(f'Must be one of: {", ".join(options)}')
        return value
    return parse


# ---------------------- Entity field tables ----------------------
# (column, parser, required, default); a None default on an optional field means nullable
FD_FIELDS = [
    ('fd_number', text, True, None),
    ('bank_name', text, True, None),
    ('principal_amount', money, True, None),
    ('interest_rate', money, True, None),
    ('tenure', positive_int, True, None),
    ('tenure_type', choice(TENURE_TYPES), False, 'months'),
    ('start_date', iso_date, True, None),
    ('maturity_date', iso_date, True, None),
    ('interest_amount', money, False, None),
    ('maturity_amount', money, False, None),
    ('is_active', boolean, False, True),
    ('notes', optional_text, False, None),
]

INCOME_FIELDS = [
    ('source', text, True, None),
    ('amount', money, True, None),
    ('date', iso_date, True, None),
    ('is_recurring', boolean, False, False),
    ('recurrence_frequency', choice(RECURRENCE_FREQUENCIES), False, None),
    ('notes', optional_text, False, None),
]

EXPENSE_FIELDS = [('category', text, True, None)] + INCOME_FIELDS[1:]

GOAL_FIELDS = [
    ('name', text, True, None),
    ('target_amount', money, True, None),
    ('current_amount', money, False, Decimal('0.00')),
    ('target_date', iso_date, True, None),
    ('notes', optional_text, False, None),
]

USER_FIELDS = [
    ('username', text, True, None),
    ('password', text, True, None),
    ('name', text, True, None),
    ('email', email, True, None),
]

BUDGET_FIELDS = [
    ('month', month_number, True, None),
    ('year', positive_int, True, None),
    ('total_income', money, True, None),
    ('total_expense', money, True, None),
    ('savings', signed_money, True, None),
]

REINVEST_FIELDS = [
    ('bank_name', text, False, None),
    ('principal_amount', money, False, None),
    ('interest_rate', money, False, None),
    ('tenure', positive_int, False, None),
    ('tenure_type', choice(TENURE_TYPES), False, None),
]

GOAL_SEED_FIELDS = [f for f in GOAL_FIELDS if f[0] != 'current_amount']


def parse(fields, payload, partial=False, optional=()):
    """Parse `payload` against a field table.

    With partial=True only the keys present are parsed. Required fields can
    never be null; columns named in `optional` are exempt from that.
    """
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    data, errors = {}, []
    for column, parser, required, default in fields:
        key = camel(column)
        raw = payload.get(key, _MISSING)
        if raw is _MISSING and partial:
            continue
        if raw is _MISSING or raw is None:
            if required and column not in optional:
                errors.append({'field': key, 'message': 'Required'})
            elif partial and default is not None:
                errors.append({'field': key, 'message': 'Must not be null'})
            else:
                data[column] = None if partial else default
            continue
        try:
            data[column] = parser(raw)
        except ValueError as e:
            errors.append({'field': key, 'message': str(e)})
    if errors:
        raise ValidationError(errors=errors)
    return data


def _check_fd_amounts(fd):
    interest, maturity = fd.get('interest_amount'), fd.get('maturity_amount')
    if interest is None and maturity is None:
        return
    if interest is None or maturity is None:
        missing = 'interestAmount' if interest is None else 'maturityAmount'
        raise ValidationError('interestAmount and maturityAmount must be given together', field=missing)
    if maturity != fd['principal_amount'] + interest:
        raise ValidationError('maturityAmount must equal principalAmount + interestAmount', field='maturityAmount')


def parse_fixed_deposit(payload, existing=None):
    """Parse an FD create payload, or an update payload when `existing` is given.

    With "autoCalculate": true, a maturity date and interest/maturity amounts
    that are not supplied are derived from start date, tenure and rate.
    A new FD given both dates but no tenure has its tenure inferred from them.
    """
    auto = isinstance(payload, dict) and payload.get('autoCalculate') is True
    infer = (existing is None and isinstance(payload, dict) and payload.get('tenure') is None
             and payload.get('startDate') is not None and payload.get('maturityDate') is not None)
    optional = (('maturity_date',) if auto else ()) + (('tenure',) if infer else ())
    data = parse(FD_FIELDS, payload, partial=existing is not None, optional=optional)
    if infer:
        tenure, tenure_type = tenure_from_dates(data['start_date'], data['maturity_date'])
        if tenure < 1:
            raise ValidationError('maturityDate must be at least one month after startDate', field='maturityDate')
        data['tenure'], data['tenure_type'] = tenure, tenure_type
    merged = {**(existing or {}), **data}
    if auto:
        terms = fd_terms(merged['principal_amount'], merged['interest_rate'],
                         merged['tenure'], merged['tenure_type'], merged['start_date'])
        if data.get('maturity_date') is None:
            data['maturity_date'] = terms['maturity_date']
        if data.get('interest_amount') is None and data.get('maturity_amount') is None:
            data['interest_amount'] = terms['interest_amount']
            data['maturity_amount'] = terms['maturity_amount']
        merged = {**(existing or {}), **data}
    _check_fd_amounts(merged)
    return data


def dump(record, hidden=('password',)):
    return {camel(k): v for k, v in record.items() if k not in hidden}

"""
FD term arithmetic, reinvestment of a maturing FD, and seeding a savings goal
from one.

Reinvestment and goal seeding each perform two writes (close the source FD,
then create the new record). The store has no transactions, so a failure
between the writes leaves the source FD closed without its successor; that
case is logged and surfaces as an InternalError.
"""
import calendar
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd

from errors import AccessDenied, InternalError, NotFound, ValidationError
from finance.maturity import as_date

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')

TENURE_TYPES = ('months', 'years')
DEFAULT_RATE = Decimal('7.00')
DEFAULT_TENURE = 12
DEFAULT_TENURE_TYPE = 'months'


def add_tenure(start, tenure, tenure_type):
    """Calendar arithmetic; Jan 31 + 1 month lands on the last day of February."""
    offset = pd.DateOffset(months=tenure) if tenure_type == 'months' else pd.DateOffset(years=tenure)
    return (pd.Timestamp(start) + offset).date()


def tenure_in_years(tenure, tenure_type):
    return Decimal(tenure) / 12 if tenure_type == 'months' else Decimal(tenure)


def simple_interest(principal, rate, tenure, tenure_type):
    """Return (interest, maturity amount) for principal * rate * years / 100."""
    interest = principal * rate * tenure_in_years(tenure, tenure_type) / 100
    interest = interest.quantize(CENT, rounding=ROUND_HALF_UP)
    return interest, principal + interest


def fd_terms(principal, rate, tenure, tenure_type, start):
    interest, maturity_amount = simple_interest(principal, rate, tenure, tenure_type)
    return {
        'maturity_date': add_tenure(start, tenure, tenure_type),
        'interest_amount': interest,
        'maturity_amount': maturity_amount,
    }


def tenure_from_dates(start, maturity):
    """Infer (tenure, tenure_type) from two dates, preferring whole years."""
    months = (maturity.year - start.year) * 12 + (maturity.month - start.month)
    last_day = calendar.monthrange(maturity.year, maturity.month)[1]
    if maturity.day < start.day and maturity.day != last_day:
        months -= 1
    if months >= 12 and months % 12 == 0:
        return months // 12, 'years'
    return months, 'months'


def maturity_proceeds(fd):
    if fd.get('maturity_amount') is not None:
        return fd['maturity_amount']
    return fd['principal_amount'] + (fd.get('interest_amount') or ZERO)


def months_between(start, end):
    return (end.year - start.year) * 12 + (end.month - start.month)


def suggested_monthly_contribution(target_amount, current_amount, target_date, now):
    """None when the target date is not at least one calendar month away."""
    months = months_between(as_date(now), target_date)
    if months <= 0:
        return None
    needed = max(target_amount - current_amount, ZERO)
    return (needed / months).quantize(CENT, rounding=ROUND_HALF_UP)


def owned_fd(storage, owner_id, fd_id):
    fd = storage.fixed_deposits.get(fd_id)
    if fd is None:
        raise NotFound('Fixed deposit not found')
    if fd['user_id'] != owner_id:
        raise AccessDenied('Fixed deposit belongs to another user')
    return fd


def _open_fd(storage, owner_id, fd_id):
    fd = owned_fd(storage, owner_id, fd_id)
    if not fd['is_active']:
        raise ValidationError('Fixed deposit is already closed', field='isActive')
    return fd


def _append_note(existing, note):
    return f'{existing} - {note}' if existing else note


def _close_then_create(storage, fd, note, collection, record):
    closed = storage.fixed_deposits.update(fd['id'], {
        'is_active': False,
        'notes': _append_note(fd.get('notes'), note),
    })
    try:
        created = collection.create(record)
    except Exception as e:
        logger.exception('FD #%s was closed but the %s record replacing it was not created', fd['id'], collection.name)
        raise InternalError(f"Fixed deposit #{fd['id']} was closed but its replacement was not created") from e
    return created, closed


def reinvest_fd(storage, owner_id, fd_id, terms=None, now=None):
    """Close FD `fd_id` and open a new FD funded by its proceeds.

    `terms` may carry bank_name, principal_amount, interest_rate, tenure and
    tenure_type; missing ones default to the source FD's bank, its proceeds,
    7% and 12 months. Returns (new_fd, closed_fd).
    """
    today = as_date(now) if now is not None else date.today()
    fd = _open_fd(storage, owner_id, fd_id)
    terms = terms or {}

    principal = terms.get('principal_amount')
    if principal is None:
        principal = maturity_proceeds(fd)
    rate = terms.get('interest_rate')
    if rate is None:
        rate = DEFAULT_RATE
    tenure = terms.get('tenure') or DEFAULT_TENURE
    tenure_type = terms.get('tenure_type') or DEFAULT_TENURE_TYPE

    new_fd = {
        'user_id': owner_id,
        'fd_number': f"RE{fd.get('fd_number') or 'NEW'}",
        'bank_name': terms.get('bank_name') or fd['bank_name'],
        'principal_amount': principal,
        'interest_rate': rate,
        'tenure': tenure,
        'tenure_type': tenure_type,
        'start_date': today,
        **fd_terms(principal, rate, tenure, tenure_type, today),
        'is_active': True,
        'notes': f"Reinvested from FD {fd.get('fd_number')}" if fd.get('fd_number') else 'New investment',
    }
    created, closed = _close_then_create(
        storage, fd, f'Reinvested on {today.isoformat()}', storage.fixed_deposits, new_fd)
    logger.info('Reinvested FD #%s into FD #%s (%s)', fd_id, created['id'], created['fd_number'])
    return created, closed


def goal_from_fd(storage, owner_id, fd_id, goal, now=None):
    """Close FD `fd_id` and start a goal whose current amount is its proceeds.

    `goal` carries name, target_amount, target_date and optional notes.
    Returns (goal, closed_fd, suggested_monthly_contribution).
    """
    today = as_date(now) if now is not None else date.today()
    fd = _open_fd(storage, owner_id, fd_id)

    current = maturity_proceeds(fd)
    record = {
        'user_id': owner_id,
        'name': goal['name'],
        'target_amount': goal['target_amount'],
        'current_amount': current,
        'target_date': goal['target_date'],
        'notes': goal.get('notes') or f"Initial amount from FD {fd['fd_number']} ({fd['bank_name']})",
    }
    suggestion = suggested_monthly_contribution(goal['target_amount'], current, goal['target_date'], today)

    created, closed = _close_then_create(
        storage, fd, f'Used for goal "{goal["name"]}" on {today.isoformat()}', storage.goals, record)
    logger.info('Seeded goal #%s from FD #%s', created['id'], fd_id)
    return created, closed, suggestion

"""
Dashboard aggregates.

All totals are exact Decimals. Empty inputs produce zeros and empty
collections, never an error.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd

from finance.maturity import MATURITY_WINDOW_DAYS, as_date, is_maturing_soon

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')
ZERO_CENTS = Decimal('0.00')


def _dsum(values):
    return sum(values, ZERO)


def portfolio_rollup(fds, now, window_days=MATURITY_WINDOW_DAYS):
    active = [fd for fd in fds if fd.get('is_active')]
    maturing = [fd for fd in fds if is_maturing_soon(fd, now, window_days)]
    return {
        'totalInvestment': _dsum(fd['principal_amount'] for fd in active),
        'activeFDs': len(active),
        # Sums every active FD's recorded interest; no calendar-year filter is applied
        'interestEarnedYTD': _dsum(fd.get('interest_amount') or ZERO for fd in active),
        'maturingSoonCount': len(maturing),
        'maturingSoon': maturing,
    }


def _same_month(record, today):
    d = record['date']
    return d.year == today.year and d.month == today.month


def monthly_rollup(incomes, expenses, now):
    today = as_date(now)
    month_incomes = [i for i in incomes if _same_month(i, today)]
    month_expenses = [e for e in expenses if _same_month(e, today)]

    expenses_by_category = {}
    for expense in month_expenses:
        category = expense['category']
        expenses_by_category[category] = expenses_by_category.get(category, ZERO) + expense['amount']

    total_income = _dsum(i['amount'] for i in month_incomes)
    total_expenses = _dsum(e['amount'] for e in month_expenses)
    return {
        'totalIncome': total_income,
        'totalExpenses': total_expenses,
        'savings': total_income - total_expenses,
        'expensesByCategory': expenses_by_category,
    }


def dashboard_summary(storage, user_id, now, window_days=MATURITY_WINDOW_DAYS):
    """Portfolio rollup plus the current month's income/expense rollup for one user."""
    fds = storage.fixed_deposits.list_by_user(user_id)
    summary = portfolio_rollup(fds, now, window_days)
    summary['monthlyFinances'] = monthly_rollup(
        storage.incomes.list_by_user(user_id),
        storage.expenses.list_by_user(user_id),
        now,
    )
    logger.debug('Dashboard for user %s: %d FDs, %d maturing soon', user_id, len(fds), summary['maturingSoonCount'])
    return summary


def category_breakdown(monthly):
    """Categories by amount, largest first, with whole-number share of total expenses."""
    total = monthly['totalExpenses']
    rows = sorted(monthly['expensesByCategory'].items(), key=lambda item: item[1], reverse=True)
    breakdown = []
    for category, amount in rows:
        share = (amount / total * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP) if total else ZERO
        breakdown.append({'category': category, 'amount': amount, 'percentage': int(share)})
    return breakdown


def monthly_trend(incomes, expenses, year):
    """Return income/expense/savings per month of `year`; months with no records are zero."""
    # Summed as integer cents so the int64 columns stay exact
    rows = [{'date': r['date'], 'cents': int(r['amount'] * 100), 'kind': 'income'} for r in incomes]
    rows += [{'date': r['date'], 'cents': int(r['amount'] * 100), 'kind': 'expense'} for r in expenses]
    df = pd.DataFrame(rows, columns=['date', 'cents', 'kind'])
    df['date'] = pd.to_datetime(df['date'])
    df = df[df['date'].dt.year == year].copy()
    df['m'] = df['date'].dt.month

    totals = {}
    if not df.empty:
        grouped = df.groupby(['m', 'kind'])['cents'].sum()
        totals = {(int(m), kind): (Decimal(int(cents)) / 100).quantize(CENT) for (m, kind), cents in grouped.items()}

    trend = []
    for m in range(1, 13):
        income = totals.get((m, 'income'), ZERO_CENTS)
        expense = totals.get((m, 'expense'), ZERO_CENTS)
        trend.append({'month': f'{year}-{m:02d}', 'income': income, 'expense': expense, 'savings': income - expense})
    return trend

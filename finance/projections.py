"""
Portfolio growth projections.

Growth is simple interest on the pooled principal at the mean interest rate,
accruing linearly with elapsed months. There is no compounding and no per-FD
projection.
"""
from decimal import Decimal, ROUND_HALF_UP

from errors import ValidationError

HORIZONS = {'1Y': 1, '3Y': 3, '5Y': 5, '10Y': 10}
DEFAULT_HORIZON = '3Y'

ZERO = Decimal('0')
CENT = Decimal('0.01')


def horizon_years(horizon):
    try:
        return HORIZONS[horizon]
    except KeyError:
        raise ValidationError(f'Horizon must be one of {", ".join(HORIZONS)}', field='horizon') from None


def _mean_rate(fds):
    return sum((fd['interest_rate'] for fd in fds), ZERO) / len(fds)


def growth_series(fds, years):
    if not fds:
        return []
    total_principal = sum((fd['principal_amount'] for fd in fds), ZERO)
    avg_rate = _mean_rate(fds)
    months = years * 12
    step = 2 if months <= 24 else 6

    series = []
    for i in range(0, months + 1, step):
        interest = total_principal * (avg_rate / 100) * (Decimal(i) / 12)
        series.append({
            'label': 'Now' if i == 0 else f'{i}M',
            'month': i,
            'value': (total_principal + interest).quantize(CENT, rounding=ROUND_HALF_UP),
        })
    return series


def by_bank(fds):
    totals = {}
    for fd in fds:
        totals[fd['bank_name']] = totals.get(fd['bank_name'], ZERO) + fd['principal_amount']
    return [{'bank': bank, 'amount': amount} for bank, amount in totals.items()]


def by_maturity_quarter(fds):
    totals = {}
    for fd in fds:
        maturity = fd['maturity_date']
        period = f'{maturity.year} Q{(maturity.month - 1) // 3 + 1}'
        totals[period] = totals.get(period, ZERO) + fd['principal_amount']
    return [{'period': period, 'amount': totals[period]} for period in sorted(totals)]


def project(fds, horizon=DEFAULT_HORIZON, active_only=False):
    years = horizon_years(horizon)
    if active_only:
        fds = [fd for fd in fds if fd.get('is_active')]

    series = growth_series(fds, years)
    initial_value = series[0]['value'] if series else ZERO
    final_value = series[-1]['value'] if series else ZERO
    return {
        'horizon': horizon,
        'series': series,
        'initialValue': initial_value,
        'finalValue': final_value,
        'interestEarned': final_value - initial_value,
        'annualReturn': _mean_rate(fds).quantize(CENT, rounding=ROUND_HALF_UP) if fds else ZERO,
        'byBank': by_bank(fds),
        'byMaturityQuarter': by_maturity_quarter(fds),
    }

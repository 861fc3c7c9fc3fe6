from datetime import date
from decimal import Decimal

import pytest

from errors import ValidationError
from finance.projections import by_bank, by_maturity_quarter, growth_series, project


def test_single_fd_one_year_is_simple_interest(make_fd):
    fd = make_fd(principal_amount=Decimal('100000.00'), interest_rate=Decimal('10.00'))
    result = project([fd], '1Y')
    series = result['series']

    assert [p['label'] for p in series] == ['Now', '2M', '4M', '6M', '8M', '10M', '12M']
    assert series[0]['value'] == Decimal('100000.00')
    assert series[-1]['month'] == 12
    assert series[-1]['value'] == Decimal('110000.00')
    assert result['initialValue'] == Decimal('100000.00')
    assert result['finalValue'] == Decimal('110000.00')
    assert result['interestEarned'] == Decimal('10000.00')
    assert result['annualReturn'] == Decimal('10.00')


def test_growth_is_linear_not_compounded(make_fd):
    fd = make_fd(principal_amount=Decimal('100000.00'), interest_rate=Decimal('10.00'))
    series = growth_series([fd], 10)

    assert series[-1]['month'] == 120
    assert series[-1]['value'] == Decimal('200000.00')


@pytest.mark.parametrize('horizon, points, step', [('1Y', 7, 2), ('3Y', 7, 6), ('5Y', 11, 6), ('10Y', 21, 6)])
def test_sampling_step_by_horizon(make_fd, horizon, points, step):
    series = project([make_fd()], horizon)['series']
    assert len(series) == points
    assert [p['month'] for p in series] == list(range(0, points * step, step))


def test_pooled_principal_at_mean_rate(make_fd):
    fds = [
        make_fd(principal_amount=Decimal('60000.00'), interest_rate=Decimal('6.00')),
        make_fd(principal_amount=Decimal('40000.00'), interest_rate=Decimal('9.00')),
    ]
    result = project(fds, '3Y')

    # 100000 at the 7.5% mean for 3 years
    assert result['finalValue'] == Decimal('122500.00')
    assert result['annualReturn'] == Decimal('7.50')


def test_empty_collection():
    result = project([], '5Y')
    assert result['series'] == []
    assert result['initialValue'] == 0
    assert result['finalValue'] == 0
    assert result['interestEarned'] == 0
    assert result['annualReturn'] == 0
    assert result['byBank'] == []


def test_inactive_fds_included_unless_active_only(make_fd):
    fds = [make_fd(), make_fd(is_active=False, principal_amount=Decimal('50000.00'))]
    assert project(fds, '1Y')['initialValue'] == Decimal('150000.00')
    assert project(fds, '1Y', active_only=True)['initialValue'] == Decimal('100000.00')


def test_unknown_horizon_rejected(make_fd):
    with pytest.raises(ValidationError) as exc:
        project([make_fd()], '2Y')
    assert exc.value.field == 'horizon'


def test_by_bank_keeps_first_seen_order(make_fd):
    fds = [
        make_fd(bank_name='HDFC', principal_amount=Decimal('10.00')),
        make_fd(bank_name='Axis', principal_amount=Decimal('20.00')),
        make_fd(bank_name='HDFC', principal_amount=Decimal('5.00')),
    ]
    assert by_bank(fds) == [
        {'bank': 'HDFC', 'amount': Decimal('15.00')},
        {'bank': 'Axis', 'amount': Decimal('20.00')},
    ]


def test_by_maturity_quarter_sorted(make_fd):
    fds = [
        make_fd(maturity_date=date(2027, 11, 2), principal_amount=Decimal('1.00')),
        make_fd(maturity_date=date(2026, 12, 31), principal_amount=Decimal('2.00')),
        make_fd(maturity_date=date(2027, 1, 1), principal_amount=Decimal('3.00')),
        make_fd(maturity_date=date(2027, 3, 31), principal_amount=Decimal('4.00')),
    ]
    assert by_maturity_quarter(fds) == [
        {'period': '2026 Q4', 'amount': Decimal('2.00')},
        {'period': '2027 Q1', 'amount': Decimal('7.00')},
        {'period': '2027 Q4', 'amount': Decimal('1.00')},
    ]

from datetime import date, timedelta
from decimal import Decimal

import pytest

from errors import AccessDenied, InternalError, NotFound, ValidationError
from finance.reinvest import (
    add_tenure, goal_from_fd, maturity_proceeds, months_between, reinvest_fd, simple_interest,
    suggested_monthly_contribution, tenure_from_dates,
)


def test_add_tenure_months_and_years():
    assert add_tenure(date(2026, 1, 15), 12, 'months') == date(2027, 1, 15)
    assert add_tenure(date(2026, 1, 31), 1, 'months') == date(2026, 2, 28)
    assert add_tenure(date(2024, 2, 29), 1, 'years') == date(2025, 2, 28)
    assert add_tenure(date(2026, 5, 1), 5, 'years') == date(2031, 5, 1)


def test_simple_interest():
    assert simple_interest(Decimal('100000.00'), Decimal('7.00'), 12, 'months') == (
        Decimal('7000.00'), Decimal('107000.00'))
    assert simple_interest(Decimal('50000.00'), Decimal('6.50'), 18, 'months') == (
        Decimal('4875.00'), Decimal('54875.00'))
    assert simple_interest(Decimal('10000.00'), Decimal('8.00'), 2, 'years') == (
        Decimal('1600.00'), Decimal('11600.00'))


def test_tenure_from_dates():
    assert tenure_from_dates(date(2026, 1, 1), date(2028, 1, 1)) == (2, 'years')
    assert tenure_from_dates(date(2026, 1, 1), date(2026, 7, 1)) == (6, 'months')
    assert tenure_from_dates(date(2026, 1, 15), date(2027, 1, 14)) == (11, 'months')
    assert tenure_from_dates(date(2026, 1, 31), date(2026, 2, 28)) == (1, 'months')


def test_maturity_proceeds_fallback(make_fd):
    assert maturity_proceeds(make_fd()) == Decimal('107000.00')
    fd = make_fd(maturity_amount=None, interest_amount=Decimal('500.00'))
    assert maturity_proceeds(fd) == Decimal('100500.00')
    assert maturity_proceeds(make_fd(maturity_amount=None, interest_amount=None)) == Decimal('100000.00')


def test_suggested_monthly_contribution(today):
    target_date = date(2027, 10, 18)
    assert months_between(today, target_date) == 12
    assert suggested_monthly_contribution(
        Decimal('200000.00'), Decimal('107000.00'), target_date, today) == Decimal('7750.00')
    assert suggested_monthly_contribution(
        Decimal('100.00'), Decimal('500.00'), target_date, today) == Decimal('0.00')
    assert suggested_monthly_contribution(
        Decimal('100.00'), Decimal('0.00'), today + timedelta(days=5), today) is None
    assert suggested_monthly_contribution(
        Decimal('100.00'), Decimal('0.00'), date(2026, 1, 1), today) is None


def test_reinvest_closes_source_and_opens_new_fd(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(notes='Branch: MG Road'))

    new_fd, closed = reinvest_fd(storage, 1, source['id'], {}, today)

    assert closed['is_active'] is False
    assert closed['notes'] == 'Branch: MG Road - Reinvested on 2026-10-18'
    assert storage.fixed_deposits.get(source['id'])['is_active'] is False

    assert new_fd['is_active'] is True
    assert new_fd['fd_number'] == 'REFD001'
    assert new_fd['bank_name'] == 'SBI'
    assert new_fd['principal_amount'] == Decimal('107000.00')
    assert new_fd['interest_rate'] == Decimal('7.00')
    assert new_fd['start_date'] == today
    assert new_fd['maturity_date'] == date(2027, 10, 18)
    assert new_fd['interest_amount'] == Decimal('7490.00')
    assert new_fd['maturity_amount'] == Decimal('114490.00')
    assert new_fd['notes'] == 'Reinvested from FD FD001'
    assert storage.fixed_deposits.get(new_fd['id']) == new_fd


def test_reinvest_with_custom_terms(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(maturity_amount=None, interest_amount=None))
    terms = {'bank_name': 'HDFC', 'interest_rate': Decimal('8.00'), 'tenure': 2, 'tenure_type': 'years'}

    new_fd, closed = reinvest_fd(storage, 1, source['id'], terms, today)

    assert closed['notes'] == 'Reinvested on 2026-10-18'
    assert new_fd['bank_name'] == 'HDFC'
    assert new_fd['principal_amount'] == Decimal('100000.00')
    assert new_fd['maturity_date'] == date(2028, 10, 18)
    assert new_fd['interest_amount'] == Decimal('16000.00')


def test_reinvest_without_fd_number(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(fd_number=''))
    new_fd, _ = reinvest_fd(storage, 1, source['id'], None, today)
    assert new_fd['fd_number'] == 'RENEW'


def test_reinvest_missing_fd_is_not_found(storage, today):
    with pytest.raises(NotFound):
        reinvest_fd(storage, 1, 404, {}, today)
    assert len(storage.fixed_deposits) == 0


def test_reinvest_other_owner_is_denied_without_mutation(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(user_id=2))
    with pytest.raises(AccessDenied):
        reinvest_fd(storage, 1, source['id'], {}, today)
    assert storage.fixed_deposits.get(source['id']) == source
    assert len(storage.fixed_deposits) == 1


def test_reinvest_closed_fd_rejected(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(is_active=False))
    with pytest.raises(ValidationError):
        reinvest_fd(storage, 1, source['id'], {}, today)


def test_failure_between_writes_leaves_source_closed(storage, make_fd, today, monkeypatch):
    source = storage.fixed_deposits.create(make_fd())

    def broken_create(data):
        raise RuntimeError('disk full')

    monkeypatch.setattr(storage.fixed_deposits, 'create', broken_create)
    with pytest.raises(InternalError) as exc:
        reinvest_fd(storage, 1, source['id'], {}, today)
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert storage.fixed_deposits.get(source['id'])['is_active'] is False


def test_goal_from_fd(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd())
    fields = {'name': 'Car', 'target_amount': Decimal('200000.00'), 'target_date': date(2027, 10, 18), 'notes': None}

    goal, closed, suggestion = goal_from_fd(storage, 1, source['id'], fields, today)

    assert goal['current_amount'] == Decimal('107000.00')
    assert goal['notes'] == 'Initial amount from FD FD001 (SBI)'
    assert goal['user_id'] == 1
    assert storage.goals.get(goal['id']) == goal
    assert closed['is_active'] is False
    assert closed['notes'] == 'Used for goal "Car" on 2026-10-18'
    assert suggestion == Decimal('7750.00')


def test_goal_already_funded_suggests_zero(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd())
    fields = {'name': 'Trip', 'target_amount': Decimal('50000.00'), 'target_date': date(2027, 4, 1)}

    _, _, suggestion = goal_from_fd(storage, 1, source['id'], fields, today)
    assert suggestion == Decimal('0.00')


def test_goal_from_foreign_fd_denied(storage, make_fd, today):
    source = storage.fixed_deposits.create(make_fd(user_id=3))
    fields = {'name': 'Trip', 'target_amount': Decimal('50000.00'), 'target_date': date(2027, 4, 1)}
    with pytest.raises(AccessDenied):
        goal_from_fd(storage, 1, source['id'], fields, today)
    assert len(storage.goals) == 0

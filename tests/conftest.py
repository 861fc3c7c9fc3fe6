from datetime import date
from decimal import Decimal

import pytest

from app import create_app
from storage import MemStorage

TODAY = date(2026, 10, 18)


def fd_record(**overrides):
    record = {
        'user_id': 1,
        'fd_number': 'FD001',
        'bank_name': 'SBI',
        'principal_amount': Decimal('100000.00'),
        'interest_rate': Decimal('7.00'),
        'tenure': 12,
        'tenure_type': 'months',
        'start_date': date(2026, 1, 1),
        'maturity_date': date(2027, 1, 1),
        'interest_amount': Decimal('7000.00'),
        'maturity_amount': Decimal('107000.00'),
        'is_active': True,
        'notes': None,
    }
    record.update(overrides)
    return record


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_fd():
    return fd_record


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def app(storage):
    return create_app({'TESTING': True, 'SECRET_KEY': 'test'}, storage=storage)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(params=['memory', 'sqlalchemy'])
def any_storage(request):
    """Each store backend, fresh per test."""
    if request.param == 'memory':
        yield MemStorage()
        return
    sql_app = create_app({
        'TESTING': True,
        'STORAGE_BACKEND': 'sqlalchemy',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })
    with sql_app.app_context():
        yield sql_app.extensions['fd_storage']

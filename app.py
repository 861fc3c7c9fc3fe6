import logging
import os
from datetime import date, datetime
from decimal import Decimal

import click
from flask import Blueprint, Flask, current_app, jsonify, request, session
from flask.cli import with_appcontext
from flask.json.provider import DefaultJSONProvider
from werkzeug.security import generate_password_hash, check_password_hash

from errors import AccessDenied, NotFound, ValidationError, register_error_handlers
from finance import projections, rollups
from finance.formatting import format_compact, format_inr, format_percent
from finance.maturity import classify, days_to_maturity
from finance.reinvest import goal_from_fd, reinvest_fd, suggested_monthly_contribution
from schemas import (
    BUDGET_FIELDS, EXPENSE_CATEGORIES, EXPENSE_FIELDS, GOAL_FIELDS, GOAL_SEED_FIELDS,
    INCOME_FIELDS, REINVEST_FIELDS, USER_FIELDS, dump, iso_date, parse, parse_fixed_deposit,
)
from storage import build_storage

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


class FinanceJSONProvider(DefaultJSONProvider):
    """ISO dates and exact decimal strings; keys keep insertion order."""
    sort_keys = False

    @staticmethod
    def default(o):
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Decimal):
            return str(o)
        return DefaultJSONProvider.default(o)


def create_app(config=None, storage=None):
    app = Flask(__name__)
    app.json = FinanceJSONProvider(app)
    app.config['STORAGE_BACKEND'] = os.environ.get('STORAGE_BACKEND', 'memory')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///:memory:')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    app.config['DEFAULT_USER_ID'] = int(os.environ.get('DEFAULT_USER_ID', 1))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['MATURITY_WINDOW_DAYS'] = int(os.environ.get('MATURITY_WINDOW_DAYS', 30))
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    app.extensions['fd_storage'] = storage if storage is not None else build_storage(app)
    logger.info('Using %s storage', type(app.extensions['fd_storage']).__name__)

    register_error_handlers(app)
    app.register_blueprint(api)
    app.cli.add_command(summary_command)
    return app


# ---------------------- Request Helpers ----------------------
def get_storage():
    return current_app.extensions['fd_storage']


def current_owner_id():
    """Logged-in user if any, otherwise the configured single-user id."""
    uid = session.get('user_id')
    return uid if uid is not None else current_app.config['DEFAULT_USER_ID']


def window_days():
    return current_app.config['MATURITY_WINDOW_DAYS']


def json_body(optional=False):
    payload = request.get_json(silent=True)
    if payload is None:
        if optional and not request.get_data():
            return {}
        raise ValidationError('Request body must be a JSON object')
    return payload


def as_of():
    value = request.args.get('asOf')
    if not value:
        return date.today()
    try:
        return iso_date(value)
    except ValueError as e:
        raise ValidationError(str(e), field='asOf') from None


def owned(collection, entity_id, label):
    record = collection.get(entity_id)
    if record is None:
        raise NotFound(f'{label} not found')
    if record.get('user_id') != current_owner_id():
        raise AccessDenied(f'{label} belongs to another user')
    return record


def dump_fd(fd, today):
    out = dump(fd)
    status = classify(fd, today, window_days())
    out['status'] = status.value
    out['statusLabel'] = status.label
    out['daysToMaturity'] = days_to_maturity(fd, today)
    return out


def dump_goal(goal, today):
    out = dump(goal)
    out['suggestedMonthlyContribution'] = suggested_monthly_contribution(
        goal['target_amount'], goal['current_amount'], goal['target_date'], today)
    return out


def _list(collection):
    return jsonify([dump(r) for r in collection.list_by_user(current_owner_id())])


def _create(collection, fields):
    data = parse(fields, json_body())
    data['user_id'] = current_owner_id()
    return jsonify(dump(collection.create(data))), 201


def _update(collection, fields, entity_id, label):
    owned(collection, entity_id, label)
    data = parse(fields, json_body(), partial=True)
    return jsonify(dump(collection.update(entity_id, data)))


def _delete(collection, entity_id, label):
    owned(collection, entity_id, label)
    collection.delete(entity_id)
    return '', 204


# ---------------------- Routes: Users ----------------------
@api.route('/users', methods=['POST'])
def register():
    storage = get_storage()
    data = parse(USER_FIELDS, json_body())
    if storage.get_user_by_username(data['username']):
        raise ValidationError('Username already taken.', field='username')
    data['password'] = generate_password_hash(data['password'])
    user = storage.users.create(data)
    logger.info('Registered user #%s', user['id'])
    return jsonify(dump(user)), 201


@api.route('/users/me')
def me():
    user = get_storage().users.get(current_owner_id())
    if user is None:
        raise NotFound('User not found')
    return jsonify(dump(user))


@api.route('/login', methods=['POST'])
def login():
    payload = json_body()
    user = get_storage().get_user_by_username(str(payload.get('username', '')).strip())
    if not user or not check_password_hash(user['password'], str(payload.get('password', ''))):
        raise AccessDenied('Invalid credentials.')
    session['user_id'] = user['id']
    return jsonify(dump(user))


@api.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True})


# ---------------------- Routes: Fixed Deposits ----------------------
@api.route('/fixed-deposits')
def list_fixed_deposits():
    today = as_of()
    fds = get_storage().fixed_deposits.list_by_user(current_owner_id())
    return jsonify([dump_fd(fd, today) for fd in fds])


@api.route('/fixed-deposits', methods=['POST'])
def create_fixed_deposit():
    data = parse_fixed_deposit(json_body())
    data['user_id'] = current_owner_id()
    fd = get_storage().fixed_deposits.create(data)
    return jsonify(dump_fd(fd, date.today())), 201


@api.route('/fixed-deposits/<int:fd_id>')
def get_fixed_deposit(fd_id):
    fd = owned(get_storage().fixed_deposits, fd_id, 'Fixed deposit')
    return jsonify(dump_fd(fd, as_of()))


@api.route('/fixed-deposits/<int:fd_id>', methods=['PUT'])
def update_fixed_deposit(fd_id):
    storage = get_storage()
    fd = owned(storage.fixed_deposits, fd_id, 'Fixed deposit')
    data = parse_fixed_deposit(json_body(), existing=fd)
    return jsonify(dump_fd(storage.fixed_deposits.update(fd_id, data), date.today()))


@api.route('/fixed-deposits/<int:fd_id>', methods=['DELETE'])
def delete_fixed_deposit(fd_id):
    return _delete(get_storage().fixed_deposits, fd_id, 'Fixed deposit')


@api.route('/fixed-deposits/<int:fd_id>/reinvest', methods=['POST'])
def reinvest_fixed_deposit(fd_id):
    terms = parse(REINVEST_FIELDS, json_body(optional=True))
    today = date.today()
    new_fd, closed = reinvest_fd(get_storage(), current_owner_id(), fd_id, terms, today)
    return jsonify({'fixedDeposit': dump_fd(new_fd, today), 'source': dump_fd(closed, today)}), 201


@api.route('/fixed-deposits/<int:fd_id>/goal', methods=['POST'])
def goal_from_fixed_deposit(fd_id):
    fields = parse(GOAL_SEED_FIELDS, json_body())
    today = date.today()
    goal, closed, suggestion = goal_from_fd(get_storage(), current_owner_id(), fd_id, fields, today)
    return jsonify({
        'goal': dump(goal),
        'source': dump_fd(closed, today),
        'suggestedMonthlyContribution': suggestion,
    }), 201


# ---------------------- Routes: Income / Expense ----------------------
@api.route('/incomes')
def list_incomes():
    return _list(get_storage().incomes)


@api.route('/incomes', methods=['POST'])
def create_income():
    return _create(get_storage().incomes, INCOME_FIELDS)


@api.route('/incomes/<int:income_id>', methods=['PUT'])
def update_income(income_id):
    return _update(get_storage().incomes, INCOME_FIELDS, income_id, 'Income')


@api.route('/incomes/<int:income_id>', methods=['DELETE'])
def delete_income(income_id):
    return _delete(get_storage().incomes, income_id, 'Income')


@api.route('/expenses')
def list_expenses():
    return _list(get_storage().expenses)


@api.route('/expenses', methods=['POST'])
def create_expense():
    return _create(get_storage().expenses, EXPENSE_FIELDS)


@api.route('/expenses/<int:expense_id>', methods=['PUT'])
def update_expense(expense_id):
    return _update(get_storage().expenses, EXPENSE_FIELDS, expense_id, 'Expense')


@api.route('/expenses/<int:expense_id>', methods=['DELETE'])
def delete_expense(expense_id):
    return _delete(get_storage().expenses, expense_id, 'Expense')


@api.route('/expense-categories')
def expense_categories():
    return jsonify(EXPENSE_CATEGORIES)


# ---------------------- Routes: Goals / Budgets ----------------------
@api.route('/goals')
def list_goals():
    today = as_of()
    goals = get_storage().goals.list_by_user(current_owner_id())
    return jsonify([dump_goal(g, today) for g in goals])


@api.route('/goals', methods=['POST'])
def create_goal():
    return _create(get_storage().goals, GOAL_FIELDS)


@api.route('/goals/<int:goal_id>', methods=['PUT'])
def update_goal(goal_id):
    return _update(get_storage().goals, GOAL_FIELDS, goal_id, 'Goal')


@api.route('/goals/<int:goal_id>', methods=['DELETE'])
def delete_goal(goal_id):
    return _delete(get_storage().goals, goal_id, 'Goal')


@api.route('/budgets')
def list_budgets():
    return _list(get_storage().budgets)


@api.route('/budgets', methods=['POST'])
def create_budget():
    return _create(get_storage().budgets, BUDGET_FIELDS)


@api.route('/budgets/<int:budget_id>', methods=['PUT'])
def update_budget(budget_id):
    return _update(get_storage().budgets, BUDGET_FIELDS, budget_id, 'Budget')


# ---------------------- Routes: Dashboard / Projections ----------------------
@api.route('/dashboard/summary')
def dashboard_summary():
    today = as_of()
    summary = rollups.dashboard_summary(get_storage(), current_owner_id(), today, window_days())
    summary['maturingSoon'] = [dump_fd(fd, today) for fd in summary['maturingSoon']]
    return jsonify(summary)


@api.route('/dashboard/category-breakdown')
def category_breakdown():
    storage = get_storage()
    owner = current_owner_id()
    monthly = rollups.monthly_rollup(
        storage.incomes.list_by_user(owner), storage.expenses.list_by_user(owner), as_of())
    return jsonify(rollups.category_breakdown(monthly))


@api.route('/monthly-trend')
def monthly_trend():
    """Monthly income/expense for a year; defaults to the latest year with records."""
    storage = get_storage()
    owner = current_owner_id()
    incomes = storage.incomes.list_by_user(owner)
    expenses = storage.expenses.list_by_user(owner)
    year = request.args.get('year', type=int)
    if not year:
        years = [r['date'].year for r in incomes + expenses]
        year = max(years) if years else datetime.now().year
    return jsonify(rollups.monthly_trend(incomes, expenses, year))


@api.route('/projections')
def projection():
    horizon = request.args.get('horizon', projections.DEFAULT_HORIZON)
    active_only = request.args.get('activeOnly', 'false').lower() == 'true'
    fds = get_storage().fixed_deposits.list_by_user(current_owner_id())
    return jsonify(projections.project(fds, horizon, active_only))


# ---------------------- CLI ----------------------
@click.command('summary')
@click.option('--user', 'user_id', type=int, default=None, help='Owner id (defaults to DEFAULT_USER_ID).')
@click.option('--horizon', default=projections.DEFAULT_HORIZON, type=click.Choice(list(projections.HORIZONS)))
@with_appcontext
def summary_command(user_id, horizon):
    """Print a user's dashboard and growth projection."""
    owner = user_id or current_app.config['DEFAULT_USER_ID']
    storage = current_app.extensions['fd_storage']
    today = date.today()
    summary = rollups.dashboard_summary(storage, owner, today, current_app.config['MATURITY_WINDOW_DAYS'])
    monthly = summary['monthlyFinances']

    click.echo(f"Total investment:   {format_inr(summary['totalInvestment'])}")
    click.echo(f"Active FDs:         {summary['activeFDs']}")
    click.echo(f"Interest earned:    {format_inr(summary['interestEarnedYTD'])}")
    click.echo(f"Maturing soon:      {summary['maturingSoonCount']}")
    for fd in summary['maturingSoon']:
        click.echo(f"  {fd['fd_number']} {fd['bank_name']} on {fd['maturity_date'].isoformat()}"
                   f" ({days_to_maturity(fd, today)} days)")
    click.echo(f"Income this month:  {format_inr(monthly['totalIncome'])}")
    click.echo(f"Expenses this month: {format_inr(monthly['totalExpenses'])}")
    click.echo(f"Savings this month: {format_inr(monthly['savings'])}")
    for row in rollups.category_breakdown(monthly):
        click.echo(f"  {row['category']}: {format_inr(row['amount'])} ({row['percentage']}%)")

    projected = projections.project(storage.fixed_deposits.list_by_user(owner), horizon)
    click.echo(f"Projection ({horizon}): {format_compact(projected['initialValue'])} -> "
               f"{format_compact(projected['finalValue'])} at {format_percent(projected['annualReturn'])}")


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)

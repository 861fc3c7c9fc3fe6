"""
Entity store.

Every collection offers the same small contract: create, get, list_by_user,
update (partial merge) and delete. Records cross the contract as plain dicts
keyed by column name; ids are assigned by the store and increase per
collection. Unknown ids never raise: get/update return None, delete returns
False.

Two backends share that contract. `MemStorage` keeps everything in process
memory and is lost on restart. `SqlStorage` goes through Flask-SQLAlchemy and
must be used inside an application context.
"""
import logging
import threading
from datetime import datetime

from models import db, User, FixedDeposit, Income, Expense, Goal, MonthlyBudget

logger = logging.getLogger(__name__)

# Fields a partial update may never overwrite
_PROTECTED = {'id', 'created_at', 'updated_at'}

COLLECTIONS = ('users', 'fixed_deposits', 'incomes', 'expenses', 'goals', 'budgets')


class MemCollection:
    def __init__(self, name, has_updated_at=True):
        self.name = name
        self.has_updated_at = has_updated_at
        self._rows = {}
        self._next_id = 1
        # Guards reads and writes when the host serves requests on threads
        self._lock = threading.Lock()

    def create(self, data):
        with self._lock:
            record = {'id': self._next_id}
            record.update((k, v) for k, v in data.items() if k not in _PROTECTED)
            now = datetime.now()
            record['created_at'] = now
            if self.has_updated_at:
                record['updated_at'] = now
            self._rows[record['id']] = record
            self._next_id += 1
        logger.debug('Created %s #%s', self.name, record['id'])
        return dict(record)

    def get(self, entity_id):
        with self._lock:
            record = self._rows.get(entity_id)
            return dict(record) if record is not None else None

    def list_by_user(self, user_id):
        with self._lock:
            return [dict(r) for r in self._rows.values() if r.get('user_id') == user_id]

    def find_first(self, **criteria):
        with self._lock:
            for record in self._rows.values():
                if all(record.get(k) == v for k, v in criteria.items()):
                    return dict(record)
        return None

    def update(self, entity_id, data):
        with self._lock:
            current = self._rows.get(entity_id)
            if current is None:
                return None
            updated = dict(current)
            updated.update((k, v) for k, v in data.items() if k not in _PROTECTED)
            if self.has_updated_at:
                updated['updated_at'] = datetime.now()
            self._rows[entity_id] = updated
        logger.debug('Updated %s #%s', self.name, entity_id)
        return dict(updated)

    def delete(self, entity_id):
        with self._lock:
            removed = self._rows.pop(entity_id, None)
        if removed is not None:
            logger.debug('Deleted %s #%s', self.name, entity_id)
        return removed is not None

    def __len__(self):
        return len(self._rows)


class MemStorage:
    def __init__(self):
        self.users = MemCollection('users', has_updated_at=False)
        self.fixed_deposits = MemCollection('fixed_deposits')
        self.incomes = MemCollection('incomes')
        self.expenses = MemCollection('expenses')
        self.goals = MemCollection('goals')
        self.budgets = MemCollection('budgets')

    def get_user_by_username(self, username):
        return self.users.find_first(username=username)


def _to_record(obj):
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


class SqlCollection:
    def __init__(self, model):
        self.model = model
        self.name = model.__tablename__
        self.has_updated_at = 'updated_at' in model.__table__.columns

    def create(self, data):
        values = {k: v for k, v in data.items() if k not in _PROTECTED}
        now = datetime.now()
        values['created_at'] = now
        if self.has_updated_at:
            values['updated_at'] = now
        obj = self.model(**values)
        db.session.add(obj)
        db.session.commit()
        logger.debug('Created %s #%s', self.name, obj.id)
        return _to_record(obj)

    def get(self, entity_id):
        obj = db.session.get(self.model, entity_id)
        return _to_record(obj) if obj is not None else None

    def list_by_user(self, user_id):
        rows = self.model.query.filter_by(user_id=user_id).order_by(self.model.id).all()
        return [_to_record(r) for r in rows]

    def find_first(self, **criteria):
        obj = self.model.query.filter_by(**criteria).order_by(self.model.id).first()
        return _to_record(obj) if obj is not None else None

    def update(self, entity_id, data):
        obj = db.session.get(self.model, entity_id)
        if obj is None:
            return None
        for key, value in data.items():
            if key not in _PROTECTED:
                setattr(obj, key, value)
        if self.has_updated_at:
            obj.updated_at = datetime.now()
        db.session.commit()
        logger.debug('Updated %s #%s', self.name, entity_id)
        return _to_record(obj)

    def delete(self, entity_id):
        obj = db.session.get(self.model, entity_id)
        if obj is None:
            return False
        db.session.delete(obj)
        db.session.commit()
        logger.debug('Deleted %s #%s', self.name, entity_id)
        return True

    def __len__(self):
        return self.model.query.count()


class SqlStorage:
    def __init__(self):
        self.users = SqlCollection(User)
        self.fixed_deposits = SqlCollection(FixedDeposit)
        self.incomes = SqlCollection(Income)
        self.expenses = SqlCollection(Expense)
        self.goals = SqlCollection(Goal)
        self.budgets = SqlCollection(MonthlyBudget)

    def get_user_by_username(self, username):
        return self.users.find_first(username=username)


def build_storage(app):
    """Create the backend named by STORAGE_BACKEND for this app."""
    backend = app.config.get('STORAGE_BACKEND', 'memory')
    if backend == 'memory':
        return MemStorage()
    if backend == 'sqlalchemy':
        db.init_app(app)
        with app.app_context():
            db.create_all()
        return SqlStorage()
    raise ValueError(f'Unknown STORAGE_BACKEND: {backend!r}')

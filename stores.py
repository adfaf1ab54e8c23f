"""
Backing-store adapters.

All adapters speak the hosted backend's contract: records travel as wire
dicts (``Id`` plus ``*_c`` fields) and every call answers with
``{"success", "message", "data", "results"}``. Mutating calls report one
entry per record in ``results``. Exactly one adapter is active per app,
chosen by ``STORE_BACKEND``.
"""
import copy
import itertools
import logging
import threading
from collections import defaultdict

import requests
from sqlalchemy.exc import SQLAlchemyError

import errors
from lookups import coerce_id
from models import TABLES, db

logger = logging.getLogger(__name__)


def _success(data=None, results=None):
    response = {'success': True, 'message': '', 'data': data}
    if results is not None:
        response['results'] = results
    return response


def _failure(message):
    return {'success': False, 'message': message, 'data': None}


def _result(success, data=None, message=''):
    return {'success': success, 'data': data, 'message': message}


def wire_to_column(key):
    if key == 'Id':
        return 'id'
    if key.endswith('_c'):
        return key[:-2]
    return None


def column_to_wire(name):
    return 'Id' if name == 'id' else f'{name}_c'


class StoreQueryError(ValueError):
    """A query named a table, field or operator the store does not know."""


# ---------------- IN-MEMORY ----------------
class MemoryStore:
    """Fixture adapter holding wire records in process memory.

    Reads can come from several loader threads at once, so every table
    access happens under one lock.
    """

    def __init__(self, tables=None):
        self._lock = threading.Lock()
        self._tables = defaultdict(dict)
        self._ids = defaultdict(lambda: itertools.count(1))
        for table, records in (tables or {}).items():
            for record in records:
                self._insert(table, record)

    def _insert(self, table, record):
        record = copy.deepcopy(record)
        record_id = coerce_id(record.get('Id'))
        if record_id is None:
            record_id = next(self._ids[table])
            while record_id in self._tables[table]:
                record_id = next(self._ids[table])
        record['Id'] = record_id
        self._tables[table][record_id] = record
        return record

    @staticmethod
    def _project(record, fields):
        projected = {field: copy.deepcopy(record.get(field)) for field in fields}
        projected['Id'] = record['Id']
        return projected

    @staticmethod
    def _matches(record, where):
        for clause in where or []:
            if clause.get('Operator', 'EqualTo') != 'EqualTo':
                raise StoreQueryError(f"Unsupported operator {clause.get('Operator')}")
            if record.get(clause['FieldName']) not in clause.get('Values', []):
                return False
        return True

    def fetch_records(self, table, fields, where=None, order_by=None):
        with self._lock:
            try:
                rows = [r for r in self._tables[table].values() if self._matches(r, where)]
            except StoreQueryError as exc:
                return _failure(str(exc))
            # apply the least significant sort key first
            for order in reversed(order_by or []):
                field = order['fieldName']
                rows.sort(
                    key=lambda r: (r.get(field) is not None, r.get(field) if r.get(field) is not None else 0),
                    reverse=order.get('sorttype', 'ASC').upper() == 'DESC',
                )
            return _success([self._project(r, fields) for r in rows])

    def get_record_by_id(self, table, record_id, fields):
        with self._lock:
            record = self._tables[table].get(record_id)
            return _success(self._project(record, fields) if record else None)

    def create_record(self, table, records):
        with self._lock:
            created = []
            for record in records:
                record = dict(record)
                record.pop('Id', None)
                created.append(_result(True, copy.deepcopy(self._insert(table, record))))
            return _success(results=created)

    def update_record(self, table, records):
        with self._lock:
            results = []
            for record in records:
                current = self._tables[table].get(coerce_id(record.get('Id')))
                if current is None:
                    results.append(_result(False, message='Record not found'))
                    continue
                current.update({k: copy.deepcopy(v) for k, v in record.items() if k != 'Id'})
                results.append(_result(True, copy.deepcopy(current)))
            return _success(results=results)

    def delete_record(self, table, record_ids):
        with self._lock:
            results = []
            for record_id in record_ids:
                if self._tables[table].pop(record_id, None) is None:
                    results.append(_result(False, message='Record not found'))
                else:
                    results.append(_result(True, {'Id': record_id}))
            return _success(results=results)


# ---------------- SQL ----------------
class SqlStore:
    """Adapter over the Flask-SQLAlchemy tables in ``models``.

    Must be called inside an application context; each context has its own
    session.
    """

    def __init__(self, database=db, tables=None):
        self.db = database
        self.tables = tables or TABLES

    def _model(self, table):
        try:
            return self.tables[table]
        except KeyError:
            raise StoreQueryError(f'Unknown table {table}') from None

    @staticmethod
    def _column(model, wire_name):
        name = wire_to_column(wire_name)
        if name is None or name not in model.__table__.columns:
            raise StoreQueryError(f'Unknown field {wire_name}')
        return getattr(model, name)

    @staticmethod
    def _to_columns(model, record):
        columns = model.__table__.columns
        values = {}
        for key, value in record.items():
            name = wire_to_column(key)
            if name and name != 'id' and name in columns:
                values[name] = value
        return values

    @staticmethod
    def _to_wire(row, fields=None):
        names = row.__table__.columns.keys()
        if fields is not None:
            wanted = {wire_to_column(field) for field in fields}
            names = [name for name in names if name in wanted or name == 'id']
        return {column_to_wire(name): getattr(row, name) for name in names}

    def _commit(self):
        try:
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            logger.error('[DB] Commit failed: %s', exc)
            return str(exc)
        return None

    def fetch_records(self, table, fields, where=None, order_by=None):
        try:
            model = self._model(table)
            query = self.db.select(model)
            for clause in where or []:
                if clause.get('Operator', 'EqualTo') != 'EqualTo':
                    raise StoreQueryError(f"Unsupported operator {clause.get('Operator')}")
                query = query.where(self._column(model, clause['FieldName']).in_(clause.get('Values', [])))
            for order in order_by or []:
                column = self._column(model, order['fieldName'])
                descending = order.get('sorttype', 'ASC').upper() == 'DESC'
                query = query.order_by(column.desc() if descending else column.asc())
            query = query.order_by(model.id)
            rows = self.db.session.execute(query).scalars().all()
        except StoreQueryError as exc:
            return _failure(str(exc))
        except SQLAlchemyError as exc:
            logger.error('[DB] Query on %s failed: %s', table, exc)
            return _failure(str(exc))
        return _success([self._to_wire(row, fields) for row in rows])

    def get_record_by_id(self, table, record_id, fields):
        try:
            row = self.db.session.get(self._model(table), record_id)
        except StoreQueryError as exc:
            return _failure(str(exc))
        except SQLAlchemyError as exc:
            logger.error('[DB] Lookup of %s %s failed: %s', table, record_id, exc)
            return _failure(str(exc))
        return _success(self._to_wire(row, fields) if row is not None else None)

    def create_record(self, table, records):
        try:
            model = self._model(table)
        except StoreQueryError as exc:
            return _failure(str(exc))
        rows = [model(**self._to_columns(model, record)) for record in records]
        self.db.session.add_all(rows)
        error = self._commit()
        if error:
            return _failure(error)
        return _success(results=[_result(True, self._to_wire(row)) for row in rows])

    def update_record(self, table, records):
        try:
            model = self._model(table)
        except StoreQueryError as exc:
            return _failure(str(exc))
        outcome = []
        for record in records:
            record_id = coerce_id(record.get('Id'))
            row = self.db.session.get(model, record_id) if record_id is not None else None
            if row is None:
                outcome.append(None)
                continue
            for name, value in self._to_columns(model, record).items():
                setattr(row, name, value)
            outcome.append(row)
        error = self._commit()
        if error:
            return _failure(error)
        return _success(results=[
            _result(True, self._to_wire(row)) if row is not None else _result(False, message='Record not found')
            for row in outcome
        ])

    def delete_record(self, table, record_ids):
        try:
            model = self._model(table)
        except StoreQueryError as exc:
            return _failure(str(exc))
        results = []
        for record_id in record_ids:
            row = self.db.session.get(model, record_id)
            if row is None:
                results.append(_result(False, message='Record not found'))
                continue
            self.db.session.delete(row)
            results.append(_result(True, {'Id': record_id}))
        error = self._commit()
        if error:
            return _failure(error)
        return _success(results=results)


# ---------------- HOSTED BACKEND ----------------
class RemoteStore:
    """Adapter for the hosted backend-as-a-service REST API."""

    def __init__(self, base_url, project_id, public_key, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'X-Project-Id': project_id,
            'X-Public-Key': public_key,
        })

    def _call(self, method, path, **kwargs):
        url = f'{self.base_url}/{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.error('Backend request %s %s failed: %s', method, url, exc)
            raise errors.RemoteFailure(f'Backend request failed: {exc}') from exc
        except ValueError as exc:
            logger.error('Backend returned invalid JSON for %s %s', method, url)
            raise errors.RemoteFailure('Backend returned an invalid response') from exc

    def fetch_records(self, table, fields, where=None, order_by=None):
        params = {
            'fields': [{'field': {'Name': field}} for field in fields],
            'where': where or [],
            'orderBy': order_by or [],
        }
        return self._call('POST', f'tables/{table}/records/query', json=params)

    def get_record_by_id(self, table, record_id, fields):
        return self._call('GET', f'tables/{table}/records/{record_id}', params={'fields': ','.join(fields)})

    def create_record(self, table, records):
        return self._call('POST', f'tables/{table}/records', json={'records': records})

    def update_record(self, table, records):
        return self._call('PUT', f'tables/{table}/records', json={'records': records})

    def delete_record(self, table, record_ids):
        return self._call('DELETE', f'tables/{table}/records', json={'RecordIds': record_ids})


def build_store(config):
    backend = config['STORE_BACKEND']
    if backend == 'sql':
        return SqlStore()
    if backend == 'memory':
        return MemoryStore()
    if backend == 'remote':
        if not config['REMOTE_BASE_URL']:
            raise RuntimeError('STORE_BACKEND is remote but REMOTE_BASE_URL is not set')
        return RemoteStore(
            config['REMOTE_BASE_URL'],
            config['REMOTE_PROJECT_ID'],
            config['REMOTE_PUBLIC_KEY'],
            timeout=config['REMOTE_TIMEOUT'],
        )
    raise ValueError(f'Unknown STORE_BACKEND {backend!r}')

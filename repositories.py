"""
Entity repositories over the active store adapter.

Every repository offers the same five calls (``get_all``, ``get_by_id``,
``create``, ``update``, ``delete``). Mutations always answer with a fresh
read from the store rather than a locally patched copy.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import date

from pydantic import ValidationError as PydanticValidationError

import errors
import schemas
from lookups import coerce_id
from stock_service import stock_evaluator

logger = logging.getLogger(__name__)


class EntityRepository:
    table_name = ''
    entity = 'record'
    schema = None
    draft_schema = None

    def __init__(self, store):
        self.store = store

    @property
    def fields(self):
        return schemas.wire_fields(self.schema)

    def _record_id(self, record_id) -> int:
        coerced = coerce_id(record_id)
        if coerced is None:
            raise errors.NotFound(self.entity, record_id)
        return coerced

    def _checked(self, response, action):
        if not response.get('success'):
            message = response.get('message') or f'Failed to {action}'
            logger.error('Failed to %s: %s', action, message)
            raise errors.RemoteFailure(message)
        return response

    def _checked_results(self, response, action):
        self._checked(response, action)
        results = response.get('results')
        if results is None:
            return [response.get('data')]
        failed = [result for result in results if not result.get('success')]
        if failed:
            logger.error('Failed to %s %d records: %s', action, len(failed), failed)
            raise errors.PartialBatchFailure(f'Failed to {action}', failed)
        return [result.get('data') for result in results]

    def _parse(self, record):
        try:
            return schemas.from_wire(self.schema, record)
        except PydanticValidationError as exc:
            logger.error('Malformed %s record from store: %s', self.entity, exc)
            raise errors.RemoteFailure(f'Backend returned a malformed {self.entity}') from exc

    def _fetch(self, where=None, order_by=None):
        response = self._checked(
            self.store.fetch_records(self.table_name, self.fields, where=where, order_by=order_by),
            f'fetch {self.entity} list',
        )
        return [self._parse(record) for record in response.get('data') or []]

    def get_all(self):
        return self._fetch()

    def get_by_id(self, record_id):
        record_id = self._record_id(record_id)
        response = self._checked(
            self.store.get_record_by_id(self.table_name, record_id, self.fields),
            f'fetch {self.entity} {record_id}',
        )
        if not response.get('data'):
            raise errors.NotFound(self.entity, record_id)
        return self._parse(response['data'])

    def create(self, draft):
        if not isinstance(draft, self.draft_schema):
            raise TypeError(f'{type(self).__name__}.create expects a {self.draft_schema.__name__}')
        created = self._checked_results(
            self.store.create_record(self.table_name, [schemas.to_wire(draft)]),
            f'create {self.entity}',
        )
        new_id = coerce_id((created[0] or {}).get('Id'))
        if new_id is None:
            raise errors.RemoteFailure(f'Backend did not return the new {self.entity}')
        return self.get_by_id(new_id)

    def update(self, record_id, patch):
        wire = schemas.patch_to_wire(self.draft_schema, patch)
        record_id = self.get_by_id(record_id).id
        wire['Id'] = record_id
        self._checked_results(self.store.update_record(self.table_name, [wire]), f'update {self.entity}')
        return self.get_by_id(record_id)

    def delete(self, record_id) -> bool:
        record_id = self.get_by_id(record_id).id
        self._checked_results(self.store.delete_record(self.table_name, [record_id]), f'delete {self.entity}')
        return True


class _PatientScoped:
    """Lookup of an entity's rows for one patient, newest first."""

    def for_patient(self, patient_id):
        patient_id = coerce_id(patient_id)
        if patient_id is None:
            return []
        return self._fetch(
            where=[{'FieldName': 'patient_id_c', 'Operator': 'EqualTo', 'Values': [patient_id]}],
            order_by=[{'fieldName': 'date_c', 'sorttype': 'DESC'}],
        )


class PatientRepository(EntityRepository):
    table_name = 'patient_c'
    entity = 'patient'
    schema = schemas.Patient
    draft_schema = schemas.PatientDraft


class DoctorRepository(EntityRepository):
    table_name = 'doctor_c'
    entity = 'doctor'
    schema = schemas.Doctor
    draft_schema = schemas.DoctorDraft


class AppointmentRepository(EntityRepository):
    table_name = 'appointment_c'
    entity = 'appointment'
    schema = schemas.Appointment
    draft_schema = schemas.AppointmentDraft

    def set_status(self, appointment_id, status):
        return self.update(appointment_id, {'status': status})


class BillRepository(_PatientScoped, EntityRepository):
    table_name = 'bill_c'
    entity = 'bill'
    schema = schemas.Bill
    draft_schema = schemas.BillDraft

    def set_status(self, bill_id, status, today=None):
        """Move a bill to ``status``; paid_at is stamped only for paid bills."""
        paid_at = (today or date.today()) if status == 'paid' else None
        return self.update(bill_id, {'status': status, 'paid_at': paid_at})


class MedicineRepository(EntityRepository):
    table_name = 'medicine_c'
    entity = 'medicine'
    schema = schemas.Medicine
    draft_schema = schemas.MedicineDraft

    def low_stock(self):
        return [medicine for medicine in self.get_all() if stock_evaluator.is_low_stock(medicine)]

    def adjust_stock(self, medicine_id, quantity: int):
        current = self.get_by_id(medicine_id)
        return self.update(current.id, {'stock': max(0, current.stock + quantity)})


class RecordRepository(_PatientScoped, EntityRepository):
    table_name = 'record_c'
    entity = 'record'
    schema = schemas.MedicalRecord
    draft_schema = schemas.MedicalRecordDraft


class Repositories:
    """One repository per entity, all sharing a single store adapter."""

    def __init__(self, store):
        self.store = store
        self.patients = PatientRepository(store)
        self.doctors = DoctorRepository(store)
        self.appointments = AppointmentRepository(store)
        self.bills = BillRepository(store)
        self.medicines = MedicineRepository(store)
        self.records = RecordRepository(store)


def load_collections(loaders, context=None, max_workers=None):
    """Run several fetches concurrently and return their results by name.

    ``loaders`` maps a name to a zero-argument callable. ``context`` is an
    optional factory for a context manager entered around each call inside
    its worker thread (Flask's ``app.app_context``). The join waits for every
    fetch to settle; if any failed, a single ``CollectionLoadError`` naming
    all the failures is raised and no partial result is returned.
    """
    if not loaders:
        return {}

    def run(loader):
        if context is None:
            return loader()
        with context():
            return loader()

    workers = min(max_workers or len(loaders), len(loaders))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {name: executor.submit(run, loader) for name, loader in loaders.items()}
        wait(futures.values())

    failures = {name: future.exception() for name, future in futures.items() if future.exception() is not None}
    if failures:
        for name, exc in failures.items():
            logger.error('Loading %s failed: %s', name, exc)
        raise errors.CollectionLoadError(failures)
    return {name: future.result() for name, future in futures.items()}

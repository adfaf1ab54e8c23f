"""
Search and filtering over loaded collections.

A text query keeps an item when any of its searchable fields contains the
query, ignoring case. Categorical filters are exact matches and every
active one must hold. Source order is kept. Nothing here caches: each call
recomputes from the collections it is given.
"""
from typing import Callable, Iterable, List, Optional, Sequence

from lookups import find_by_id, full_name, index_by_id
from stock_service import stock_evaluator

Field = Callable[[object], Optional[str]]
Predicate = Callable[[object], bool]


def matches_query(item, query: str, fields: Sequence[Field]) -> bool:
    needle = query.lower()
    for field in fields:
        value = field(item)
        if value is None:
            continue
        if needle in str(value).lower():
            return True
    return False


def exact(attribute: str, value) -> Optional[Predicate]:
    """Predicate for ``item.<attribute> == value``; None when the filter is unset."""
    if value is None or value == '':
        return None
    return lambda item: getattr(item, attribute, None) == value


def filter_items(items: Iterable, query: str = '', fields: Sequence[Field] = (),
                 filters: Sequence[Optional[Predicate]] = ()) -> List:
    active = [predicate for predicate in filters if predicate is not None]
    result = []
    for item in items:
        if query and not matches_query(item, query, fields):
            continue
        if all(predicate(item) for predicate in active):
            result.append(item)
    return result


def _attr(name: str) -> Field:
    return lambda item: getattr(item, name, None)


def _resolved_name(index, key) -> Optional[str]:
    # bare name only; display titles and unresolved references add no searchable text
    person = find_by_id(index, key)
    return full_name(person) if person is not None else None


def search_patients(patients, query=''):
    return filter_items(patients, query, [full_name, _attr('phone'), _attr('email')])


def search_doctors(doctors, query='', specialization=None):
    return filter_items(
        doctors, query,
        [full_name, _attr('specialization'), _attr('phone'), _attr('email')],
        [exact('specialization', specialization)],
    )


def search_appointments(appointments, query='', status=None, patients=(), doctors=()):
    patient_index = index_by_id(patients)
    doctor_index = index_by_id(doctors)
    fields = [
        lambda a: _resolved_name(patient_index, a.patient_id),
        lambda a: _resolved_name(doctor_index, a.doctor_id),
        _attr('notes'),
    ]
    return filter_items(appointments, query, fields, [exact('status', status)])


def search_records(records, query='', patients=(), doctors=()):
    patient_index = index_by_id(patients)
    doctor_index = index_by_id(doctors)
    fields = [
        lambda r: _resolved_name(patient_index, r.patient_id),
        lambda r: _resolved_name(doctor_index, r.doctor_id),
        _attr('diagnosis'),
        _attr('treatment'),
    ]
    return filter_items(records, query, fields)


def search_bills(bills, query='', status=None, patients=()):
    patient_index = index_by_id(patients)
    fields = [
        lambda b: _resolved_name(patient_index, b.patient_id),
        lambda b: str(b.id),
    ]
    return filter_items(bills, query, fields, [exact('status', status)])


STOCK_FILTERS = {
    'low': stock_evaluator.is_low_stock,
    'out': stock_evaluator.is_out_of_stock,
}


def search_medicines(medicines, query='', category=None, stock=None):
    """``stock`` is 'low' (at or under threshold, out of stock included) or 'out'."""
    if stock and stock not in STOCK_FILTERS:
        raise ValueError(f'Unknown stock filter {stock!r}')
    return filter_items(
        medicines, query,
        [_attr('name'), _attr('category')],
        [exact('category', category), STOCK_FILTERS.get(stock) if stock else None],
    )

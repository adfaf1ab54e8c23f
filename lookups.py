"""Resolve foreign keys against loaded collections into display labels."""
from typing import Dict, Iterable, Optional

UNKNOWN_PATIENT = 'Unknown Patient'
UNKNOWN_DOCTOR = 'Unknown Doctor'


def coerce_id(value) -> Optional[int]:
    """Numeric form of an id, or None when it has none.

    Accepts ints, numeric strings and the ``{"Id": n, "Name": ...}`` objects
    the hosted backend returns for reference fields.
    """
    if isinstance(value, dict):
        value = value.get('Id')
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        value = value.strip()
        try:
            return int(value)
        except ValueError:
            try:
                number = float(value)
            except ValueError:
                return None
            return int(number) if number.is_integer() else None
    return None


def index_by_id(collection: Iterable) -> Dict[int, object]:
    return {item.id: item for item in collection}


def find_by_id(collection, key):
    """Entity whose id equals the numeric form of ``key``, else None.

    ``collection`` may be a sequence of entities or a dict from ``index_by_id``.
    """
    record_id = coerce_id(key)
    if record_id is None:
        return None
    if isinstance(collection, dict):
        return collection.get(record_id)
    for item in collection:
        if item.id == record_id:
            return item
    return None


def full_name(person) -> str:
    return f'{person.first_name} {person.last_name}'


def patient_label(patients, key) -> str:
    patient = find_by_id(patients, key)
    return full_name(patient) if patient else UNKNOWN_PATIENT


def doctor_label(doctors, key) -> str:
    doctor = find_by_id(doctors, key)
    return f'Dr. {full_name(doctor)}' if doctor else UNKNOWN_DOCTOR

from datetime import date, timedelta

import pytest

from app import create_app
from auth import StaticAuth
from repositories import Repositories
from stores import MemoryStore


def wire_patient(record_id, first, last, **extra):
    record = {
        'Id': record_id,
        'first_name_c': first,
        'last_name_c': last,
        'date_of_birth_c': '1990-01-01',
        'gender_c': 'female',
        'phone_c': '555-0100',
        'email_c': f'{first.lower()}@example.com',
        'registration_date_c': date.today().isoformat(),
    }
    record.update(extra)
    return record


def wire_doctor(record_id, first, last, specialization='Cardiology', **extra):
    record = {
        'Id': record_id,
        'first_name_c': first,
        'last_name_c': last,
        'specialization_c': specialization,
        'consultation_fee_c': 500,
    }
    record.update(extra)
    return record


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repos(store):
    return Repositories(store)


@pytest.fixture
def auth():
    return StaticAuth(authenticated=True)


@pytest.fixture
def app(store, auth):
    return create_app(
        {'TESTING': True, 'STORE_BACKEND': 'memory', 'SEED_SAMPLE_DATA': False, 'FETCH_MAX_WORKERS': 4},
        store=store,
        auth=auth,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tomorrow():
    return (date.today() + timedelta(days=1)).isoformat()


@pytest.fixture
def populated(store):
    """Two patients, two doctors and a handful of dependent records."""
    today = date.today().isoformat()
    tables = {
        'patient_c': [
            wire_patient(1, 'Asha', 'Verma', phone_c='555-1111'),
            wire_patient(2, 'Rahul', 'Nair', gender_c='male', email_c='rahul@clinic.org'),
        ],
        'doctor_c': [
            wire_doctor(1, 'Arjun', 'Mehta', 'Cardiology'),
            wire_doctor(2, 'Priya', 'Sharma', 'Neurology'),
        ],
        'appointment_c': [
            {'Id': 1, 'patient_id_c': 1, 'doctor_id_c': 1, 'date_c': today, 'time_c': '09:00',
             'status_c': 'scheduled', 'notes_c': 'chest pain follow-up', 'created_at_c': today},
            {'Id': 2, 'patient_id_c': 2, 'doctor_id_c': 2, 'date_c': today, 'time_c': '10:00',
             'status_c': 'confirmed', 'created_at_c': today},
            {'Id': 3, 'patient_id_c': 99, 'doctor_id_c': 1, 'date_c': today, 'time_c': '11:00',
             'status_c': 'scheduled', 'created_at_c': today},
        ],
        'bill_c': [
            {'Id': 1, 'patient_id_c': 1, 'services_c': ['Consultation'], 'total_amount_c': 100,
             'status_c': 'paid', 'date_c': today, 'paid_at_c': today},
            {'Id': 2, 'patient_id_c': 2, 'services_c': ['X-Ray'], 'total_amount_c': 50,
             'status_c': 'pending', 'date_c': today},
        ],
        'medicine_c': [
            {'Id': 1, 'name_c': 'Paracetamol', 'category_c': 'Analgesic', 'stock_c': 50,
             'min_threshold_c': 10, 'price_c': 2},
            {'Id': 2, 'name_c': 'Amoxicillin', 'category_c': 'Antibiotic', 'stock_c': 5,
             'min_threshold_c': 10, 'price_c': 6},
            {'Id': 3, 'name_c': 'Insulin', 'category_c': 'Hormone', 'stock_c': 0,
             'min_threshold_c': 5, 'price_c': 30},
        ],
        'record_c': [
            {'Id': 1, 'patient_id_c': 1, 'doctor_id_c': 1, 'date_c': today,
             'diagnosis_c': 'Hypertension', 'treatment_c': 'ACE inhibitor', 'prescription_c': ['Lisinopril']},
        ],
    }
    for table, records in tables.items():
        for record in records:
            store._insert(table, record)
    return store

import pytest

from schemas import Appointment, Bill, Doctor, MedicalRecord, Medicine, Patient
from search import (
    exact, filter_items, search_appointments, search_bills, search_doctors, search_medicines, search_patients,
    search_records,
)


@pytest.fixture
def patients():
    return [
        Patient(Id=1, first_name_c='John', last_name_c='Smith', phone_c='555-1234', email_c='john@x.com'),
        Patient(Id=2, first_name_c='Jane', last_name_c='Doe', phone_c='555-9876', email_c='jane@y.org'),
    ]


@pytest.fixture
def doctors():
    return [
        Doctor(Id=1, first_name_c='Arjun', last_name_c='Mehta', specialization_c='Cardiology'),
        Doctor(Id=2, first_name_c='Priya', last_name_c='Sharma', specialization_c='Neurology'),
    ]


class TestFilterItems:
    def test_empty_query_keeps_everything_in_order(self, patients):
        assert filter_items(patients, '', [lambda p: p.phone]) == patients
        assert filter_items(patients, None, [lambda p: p.phone]) == patients

    def test_whitespace_query_is_matched_literally(self, patients):
        assert filter_items(patients, '   ', [lambda p: p.phone]) == []
        assert [p.id for p in search_patients(patients, ' ')] == [1, 2]
        assert search_patients(patients, 'smith ') == []

    def test_query_is_case_insensitive(self, patients):
        found = search_patients(patients, 'SMI')
        assert [p.id for p in found] == [1]

    def test_full_name_matches_across_parts(self, patients):
        assert [p.id for p in search_patients(patients, 'jane doe')] == [2]

    def test_phone_and_email(self, patients):
        assert [p.id for p in search_patients(patients, '9876')] == [2]
        assert [p.id for p in search_patients(patients, '.com')] == [1]

    def test_absent_field_never_matches(self):
        items = [Appointment(Id=1, notes_c=None), Appointment(Id=2, notes_c='fever')]
        assert [a.id for a in filter_items(items, 'fev', [lambda a: a.notes])] == [2]

    def test_unset_filter_is_ignored(self, patients):
        assert exact('gender', '') is None
        assert exact('gender', None) is None
        assert filter_items(patients, filters=[None]) == patients

    @pytest.mark.parametrize('query', ['', 'j', 'smith', '555', '.org', 'zzz'])
    def test_filtering_twice_changes_nothing(self, patients, query):
        fields = [lambda p: p.first_name, lambda p: p.phone, lambda p: p.email]
        once = filter_items(patients, query, fields)
        assert filter_items(once, query, fields) == once
        assert filter_items(once, '', fields) == once

    @pytest.mark.parametrize('query', ['', 'j', '555', '.com'])
    @pytest.mark.parametrize('gender', ['male', 'female'])
    def test_query_and_filter_intersect(self, query, gender):
        people = [
            Patient(Id=1, first_name_c='John', gender_c='male', phone_c='555-1234', email_c='john@x.com'),
            Patient(Id=2, first_name_c='Jane', gender_c='female', phone_c='555-9876', email_c='jane@y.org'),
            Patient(Id=3, first_name_c='Jo', gender_c='female', phone_c='444-0000', email_c='jo@z.com'),
        ]
        fields = [lambda p: p.first_name, lambda p: p.phone, lambda p: p.email]
        by_query = filter_items(people, query, fields)
        by_gender = filter_items(people, filters=[exact('gender', gender)])
        both = filter_items(people, query, fields, [exact('gender', gender)])
        assert both == [p for p in by_query if p in by_gender]


class TestScreenSearches:
    def test_doctor_specialization_filter_and_query(self, doctors):
        assert [d.id for d in search_doctors(doctors, specialization='Neurology')] == [2]
        assert search_doctors(doctors, 'arjun', specialization='Neurology') == []
        assert [d.id for d in search_doctors(doctors, 'cardio')] == [1]

    def test_appointments_search_resolved_labels(self, patients, doctors):
        appointments = [
            Appointment(Id=1, patient_id_c=1, doctor_id_c=2, status_c='scheduled'),
            Appointment(Id=2, patient_id_c='2', doctor_id_c=1, status_c='completed'),
            Appointment(Id=3, patient_id_c=42, doctor_id_c=1, status_c='scheduled'),
        ]
        assert [a.id for a in search_appointments(appointments, 'jane', patients=patients, doctors=doctors)] == [2]
        assert [a.id for a in search_appointments(appointments, 'sharma', patients=patients, doctors=doctors)] == [1]
        found = search_appointments(appointments, 'mehta', status='scheduled', patients=patients, doctors=doctors)
        assert [a.id for a in found] == [3]

    def test_unresolved_reference_is_not_searchable(self, patients, doctors):
        appointments = [Appointment(Id=3, patient_id_c=42, doctor_id_c=1)]
        assert search_appointments(appointments, 'unknown', patients=patients, doctors=doctors) == []

    def test_doctor_title_is_not_searchable(self, patients, doctors):
        appointments = [Appointment(Id=1, patient_id_c=1, doctor_id_c=1, notes_c='Follow-up')]
        records = [MedicalRecord(Id=1, patient_id_c=2, doctor_id_c=1, diagnosis_c='Hypertension')]
        assert search_appointments(appointments, 'dr.', patients=patients, doctors=doctors) == []
        assert search_records(records, 'dr.', patients=patients, doctors=doctors) == []
        assert search_records(records, 'dr. arjun', patients=patients, doctors=doctors) == []
        assert [r.id for r in search_records(records, 'arjun mehta', patients=patients, doctors=doctors)] == [1]
        assert [a.id for a in search_appointments(appointments, 'mehta', patients=patients, doctors=doctors)] == [1]

    def test_bills_search_by_id_and_status(self, patients):
        bills = [
            Bill(Id=12, patient_id_c=1, status_c='pending'),
            Bill(Id=7, patient_id_c=2, status_c='paid'),
        ]
        assert [b.id for b in search_bills(bills, '12', patients=patients)] == [12]
        assert [b.id for b in search_bills(bills, status='paid', patients=patients)] == [7]
        assert [b.id for b in search_bills(bills, 'john', patients=patients)] == [12]


class TestMedicineSearch:
    @pytest.fixture
    def medicines(self):
        return [
            Medicine(Id=1, name_c='Paracetamol', category_c='Analgesic', stock_c=50, min_threshold_c=10),
            Medicine(Id=2, name_c='Amoxicillin', category_c='Antibiotic', stock_c=5, min_threshold_c=10),
            Medicine(Id=3, name_c='Insulin', category_c=None, stock_c=0, min_threshold_c=5),
        ]

    def test_stock_filters(self, medicines):
        assert [m.id for m in search_medicines(medicines, stock='low')] == [2, 3]
        assert [m.id for m in search_medicines(medicines, stock='out')] == [3]

    def test_category_and_query(self, medicines):
        assert [m.id for m in search_medicines(medicines, category='Antibiotic')] == [2]
        assert [m.id for m in search_medicines(medicines, 'anal')] == [1]
        assert [m.id for m in search_medicines(medicines, 'insulin')] == [3]

    def test_unknown_stock_filter(self, medicines):
        with pytest.raises(ValueError):
            search_medicines(medicines, stock='plenty')

import pytest

from lookups import (
    UNKNOWN_DOCTOR, UNKNOWN_PATIENT, coerce_id, doctor_label, find_by_id, index_by_id, patient_label,
)
from schemas import Doctor, Patient


@pytest.fixture
def patients():
    return [
        Patient(Id=1, first_name_c='Asha', last_name_c='Verma'),
        Patient(Id=2, first_name_c='Rahul', last_name_c='Nair'),
    ]


@pytest.fixture
def doctors():
    return [Doctor(Id=5, first_name_c='Arjun', last_name_c='Mehta')]


class TestCoerceId:
    @pytest.mark.parametrize('value, expected', [
        (3, 3),
        ('3', 3),
        (' 7 ', 7),
        (4.0, 4),
        ('4.0', 4),
        ({'Id': 9, 'Name': 'Asha'}, 9),
    ])
    def test_numeric_forms(self, value, expected):
        assert coerce_id(value) == expected

    @pytest.mark.parametrize('value', [None, '', 'abc', 2.5, True, [], {'Name': 'x'}])
    def test_non_numeric_forms(self, value):
        assert coerce_id(value) is None


class TestLabels:
    def test_patient_label_resolves_string_key(self, patients):
        assert patient_label(patients, '2') == 'Rahul Nair'

    def test_patient_label_missing(self, patients):
        assert patient_label(patients, 99) == UNKNOWN_PATIENT
        assert patient_label(patients, None) == UNKNOWN_PATIENT
        assert patient_label([], 1) == UNKNOWN_PATIENT

    def test_doctor_label(self, doctors):
        assert doctor_label(doctors, 5) == 'Dr. Arjun Mehta'
        assert doctor_label(doctors, 'nope') == UNKNOWN_DOCTOR

    def test_lookup_accepts_index(self, patients):
        index = index_by_id(patients)
        assert find_by_id(index, '1').first_name == 'Asha'
        assert patient_label(index, 1) == 'Asha Verma'
        assert find_by_id(index, 3) is None

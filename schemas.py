"""
Entity schemas and their mapping to the backing store's wire format.

Each entity has a permissive read model, parsed from whatever the store
returns, and a strict draft carrying the form constraints checked before
anything is written. Wire names are the attribute names with the store's
``_c`` custom-field suffix; the id travels as ``Id``.
"""
import datetime as dt
import math
import re
from datetime import date, datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, field_validator
from pydantic import ValidationError as PydanticValidationError

import errors
from lookups import coerce_id

Gender = Literal['male', 'female', 'other']
BloodType = Literal['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']
AppointmentStatus = Literal['scheduled', 'confirmed', 'completed', 'cancelled']
BillStatus = Literal['pending', 'paid', 'overdue']
TimeSlot = Literal[
    '09:00', '09:30', '10:00', '10:30', '11:00', '11:30', '12:00', '12:30',
    '14:00', '14:30', '15:00', '15:30', '16:00', '16:30', '17:00', '17:30',
]

GENDERS = get_args(Gender)
BLOOD_TYPES = get_args(BloodType)
APPOINTMENT_STATUSES = get_args(AppointmentStatus)
BILL_STATUSES = get_args(BillStatus)
TIME_SLOTS = get_args(TimeSlot)

APPOINTMENT_TRANSITIONS = {
    'scheduled': ('confirmed', 'cancelled'),
    'confirmed': ('completed',),
}
BILL_TRANSITIONS = {
    'pending': ('paid', 'overdue'),
}

_EMAIL_RE = re.compile(r'\S+@\S+\.\S+')


# ---------------- LENIENT PARSERS ----------------
def parse_date(value) -> Optional[date]:
    """Calendar date of ``value``; None when it is missing or unparseable."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _lenient_float(value) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _lenient_int(value) -> int:
    return int(_lenient_float(value))


def _text(value) -> str:
    return '' if value is None else str(value)


def _optional_text(value) -> Optional[str]:
    return None if value is None else str(value)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _str_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    return [str(item).strip() for item in items if str(item).strip()]


def _as_list(value) -> list:
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


LenientDate = Annotated[Optional[date], BeforeValidator(parse_date)]
LenientText = Annotated[str, BeforeValidator(_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_optional_text)]
LenientFloat = Annotated[float, BeforeValidator(_lenient_float)]
LenientInt = Annotated[int, BeforeValidator(_lenient_int)]
RefId = Annotated[Optional[int], BeforeValidator(coerce_id)]
StrList = Annotated[List[str], BeforeValidator(_str_list)]
AnyList = Annotated[List[Any], BeforeValidator(_as_list)]

Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Amount = Annotated[float, BeforeValidator(_lenient_float), Field(ge=0)]
Quantity = Annotated[int, BeforeValidator(_lenient_int), Field(ge=0)]
ForeignKey = Annotated[int, BeforeValidator(coerce_id)]


def _wire(name):
    return Field(alias=f'{name}_c')


def _wire_default(name, default=None, **kwargs):
    if 'default_factory' in kwargs:
        return Field(alias=f'{name}_c', **kwargs)
    return Field(default, alias=f'{name}_c', **kwargs)


class _ReadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: int = Field(alias='Id')


class _Draft(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True, extra='ignore')

    # field name -> message shown for a missing or malformed value
    messages: ClassVar[Dict[str, str]] = {}


# ---------------- READ MODELS ----------------
class Patient(_ReadModel):
    first_name: LenientText = _wire_default('first_name', '')
    last_name: LenientText = _wire_default('last_name', '')
    date_of_birth: LenientDate = _wire_default('date_of_birth')
    gender: LenientText = _wire_default('gender', '')
    phone: LenientText = _wire_default('phone', '')
    email: LenientText = _wire_default('email', '')
    address: LenientText = _wire_default('address', '')
    emergency_contact_name: LenientText = _wire_default('emergency_contact_name', '')
    emergency_contact_phone: LenientText = _wire_default('emergency_contact_phone', '')
    emergency_contact_relationship: LenientText = _wire_default('emergency_contact_relationship', '')
    blood_type: OptionalText = _wire_default('blood_type')
    allergies: StrList = _wire_default('allergies', default_factory=list)
    medications: StrList = _wire_default('medications', default_factory=list)
    registration_date: LenientDate = _wire_default('registration_date')


class Doctor(_ReadModel):
    first_name: LenientText = _wire_default('first_name', '')
    last_name: LenientText = _wire_default('last_name', '')
    specialization: LenientText = _wire_default('specialization', '')
    phone: LenientText = _wire_default('phone', '')
    email: LenientText = _wire_default('email', '')
    availability: AnyList = _wire_default('availability', default_factory=list)
    consultation_fee: LenientFloat = _wire_default('consultation_fee', 0.0)


class Appointment(_ReadModel):
    patient_id: RefId = _wire_default('patient_id')
    doctor_id: RefId = _wire_default('doctor_id')
    date: LenientDate = _wire_default('date')
    time: LenientText = _wire_default('time', '')
    status: LenientText = _wire_default('status', '')
    notes: OptionalText = _wire_default('notes')
    created_at: LenientDate = _wire_default('created_at')


class Bill(_ReadModel):
    patient_id: RefId = _wire_default('patient_id')
    services: StrList = _wire_default('services', default_factory=list)
    total_amount: LenientFloat = _wire_default('total_amount', 0.0)
    status: LenientText = _wire_default('status', '')
    date: LenientDate = _wire_default('date')
    paid_at: LenientDate = _wire_default('paid_at')


class Medicine(_ReadModel):
    name: LenientText = _wire_default('name', '')
    category: OptionalText = _wire_default('category')
    stock: LenientInt = _wire_default('stock', 0)
    min_threshold: LenientInt = _wire_default('min_threshold', 0)
    price: LenientFloat = _wire_default('price', 0.0)
    expiry_date: LenientDate = _wire_default('expiry_date')


class MedicalRecord(_ReadModel):
    patient_id: RefId = _wire_default('patient_id')
    doctor_id: RefId = _wire_default('doctor_id')
    date: LenientDate = _wire_default('date')
    diagnosis: LenientText = _wire_default('diagnosis', '')
    treatment: LenientText = _wire_default('treatment', '')
    prescription: StrList = _wire_default('prescription', default_factory=list)
    notes: OptionalText = _wire_default('notes')


# ---------------- DRAFTS ----------------
class PatientDraft(_Draft):
    messages = {
        'first_name': 'First name is required',
        'last_name': 'Last name is required',
        'date_of_birth': 'Date of birth is required',
        'gender': 'Gender is required',
        'phone': 'Phone number is required',
        'email': 'Email is required',
        'address': 'Address is required',
        'emergency_contact_name': 'Emergency contact name is required',
        'emergency_contact_phone': 'Emergency contact phone is required',
        'emergency_contact_relationship': 'Relationship is required',
    }

    first_name: Required = _wire('first_name')
    last_name: Required = _wire('last_name')
    date_of_birth: dt.date = _wire('date_of_birth')
    gender: Gender = _wire('gender')
    phone: Required = _wire('phone')
    email: Required = _wire('email')
    address: Required = _wire('address')
    emergency_contact_name: Required = _wire('emergency_contact_name')
    emergency_contact_phone: Required = _wire('emergency_contact_phone')
    emergency_contact_relationship: Required = _wire('emergency_contact_relationship')
    blood_type: Annotated[Optional[BloodType], BeforeValidator(_blank_to_none)] = _wire_default('blood_type')
    allergies: StrList = _wire_default('allergies', default_factory=list)
    medications: StrList = _wire_default('medications', default_factory=list)
    registration_date: dt.date = _wire_default('registration_date', default_factory=dt.date.today)

    @field_validator('email')
    @classmethod
    def _valid_email(cls, value):
        if not _EMAIL_RE.search(value):
            raise ValueError('Please enter a valid email address')
        return value


class DoctorDraft(_Draft):
    messages = {
        'first_name': 'First name is required',
        'last_name': 'Last name is required',
        'specialization': 'Specialization is required',
        'consultation_fee': 'Consultation fee cannot be negative',
    }

    first_name: Required = _wire('first_name')
    last_name: Required = _wire('last_name')
    specialization: Required = _wire('specialization')
    phone: str = _wire_default('phone', '')
    email: str = _wire_default('email', '')
    availability: AnyList = _wire_default('availability', default_factory=list)
    consultation_fee: Amount = _wire_default('consultation_fee', 0.0)


class AppointmentDraft(_Draft):
    messages = {
        'patient_id': 'Please select a patient',
        'doctor_id': 'Please select a doctor',
        'date': 'Please select a date',
        'time': 'Please select a time',
    }

    patient_id: ForeignKey = _wire('patient_id')
    doctor_id: ForeignKey = _wire('doctor_id')
    date: dt.date = _wire('date')
    time: TimeSlot = _wire('time')
    status: AppointmentStatus = _wire_default('status', 'scheduled')
    notes: Optional[str] = _wire_default('notes')
    created_at: dt.date = _wire_default('created_at', default_factory=dt.date.today)

    @field_validator('date')
    @classmethod
    def _not_in_past(cls, value):
        if value < date.today():
            raise ValueError('Appointment date cannot be in the past')
        return value


class BillDraft(_Draft):
    messages = {
        'patient_id': 'Please select a patient',
        'total_amount': 'Total amount cannot be negative',
    }

    patient_id: ForeignKey = _wire('patient_id')
    services: StrList = _wire_default('services', default_factory=list)
    total_amount: Amount = _wire_default('total_amount', 0.0)
    status: BillStatus = _wire_default('status', 'pending')
    date: dt.date = _wire_default('date', default_factory=dt.date.today)
    paid_at: Optional[dt.date] = _wire_default('paid_at')


class MedicineDraft(_Draft):
    messages = {
        'name': 'Medicine name is required',
        'stock': 'Stock cannot be negative',
        'min_threshold': 'Minimum threshold cannot be negative',
        'price': 'Price cannot be negative',
    }

    name: Required = _wire('name')
    category: str = _wire_default('category', '')
    stock: Quantity = _wire_default('stock', 0)
    min_threshold: Quantity = _wire_default('min_threshold', 0)
    price: Amount = _wire_default('price', 0.0)
    expiry_date: Annotated[Optional[dt.date], BeforeValidator(_blank_to_none)] = _wire_default('expiry_date')


class MedicalRecordDraft(_Draft):
    messages = {
        'patient_id': 'Please select a patient',
        'doctor_id': 'Please select a doctor',
        'diagnosis': 'Diagnosis is required',
    }

    patient_id: ForeignKey = _wire('patient_id')
    doctor_id: ForeignKey = _wire('doctor_id')
    date: dt.date = _wire_default('date', default_factory=dt.date.today)
    diagnosis: Required = _wire('diagnosis')
    treatment: str = _wire_default('treatment', '')
    prescription: StrList = _wire_default('prescription', default_factory=list)
    notes: Optional[str] = _wire_default('notes')


# ---------------- WIRE MAPPING ----------------
def wire_fields(model_cls) -> List[str]:
    """Wire names of every field of ``model_cls``, the only names ever requested."""
    return [info.alias or name for name, info in model_cls.model_fields.items()]


def to_wire(draft: _Draft) -> dict:
    return draft.model_dump(by_alias=True, mode='json')


def from_wire(model_cls, record: dict):
    return model_cls.model_validate(record)


def dump(entity, **extra) -> dict:
    """JSON-ready dict of a read model using attribute names."""
    data = entity.model_dump(mode='json')
    data.update(extra)
    return data


def _collect_errors(exc: PydanticValidationError, draft_cls, fallback=None) -> Dict[str, str]:
    names = {(info.alias or name): name for name, info in draft_cls.model_fields.items()}
    problems = {}
    for error in exc.errors():
        loc = error.get('loc') or ()
        field = names.get(loc[0], loc[0]) if loc else fallback
        if error['type'] == 'value_error':
            message = error['msg'].removeprefix('Value error, ')
        else:
            message = draft_cls.messages.get(field, error['msg'])
        problems.setdefault(str(field), message)
    return problems


def validate_draft(draft_cls, data):
    """Build a draft from submitted form data or raise ``errors.ValidationError``."""
    if not isinstance(data, dict):
        raise errors.ValidationError({'form': 'Expected a JSON object'})
    try:
        return draft_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise errors.ValidationError(_collect_errors(exc, draft_cls)) from None


def patch_to_wire(draft_cls, patch) -> dict:
    """Validate each patched attribute against ``draft_cls`` and map it to wire names."""
    if not isinstance(patch, dict):
        raise errors.ValidationError({'form': 'Expected a JSON object'})
    unknown = sorted(set(patch) - set(draft_cls.model_fields))
    if unknown:
        raise errors.ValidationError({name: 'Unknown field' for name in unknown})

    draft = draft_cls.model_construct()
    problems = {}
    for name, value in patch.items():
        try:
            setattr(draft, name, value)
        except PydanticValidationError as exc:
            problems.update(_collect_errors(exc, draft_cls, fallback=name))
    if problems:
        raise errors.ValidationError(problems)
    return draft.model_dump(by_alias=True, mode='json', include=set(patch))


def check_transition(transitions, current: str, new: str):
    if new not in transitions.get(current, ()):
        raise errors.ValidationError({'status': f'Cannot change status from {current} to {new}'})

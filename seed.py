"""Sample records loaded into an empty store on first start."""
import logging
from datetime import date, timedelta

from schemas import DoctorDraft, MedicineDraft

logger = logging.getLogger(__name__)

# first name, last name, specialization, consultation fee
SAMPLE_DOCTORS = [
    ('Arjun', 'Mehta', 'Cardiology', 1200),
    ('Priya', 'Sharma', 'Neurology', 1100),
    ('Ramesh', 'Iyer', 'Pediatrics', 700),
    ('Anjali', 'Rao', 'Orthopedics', 900),
    ('Vikram', 'Singh', 'General Surgery', 1000),
    ('Sneha', 'Patel', 'Gynecology', 800),
    ('Karan', 'Gupta', 'Dermatology', 600),
    ('Neha', 'Kapoor', 'ENT', 600),
    ('Amit', 'Desai', 'Radiology', 900),
    ('Suman', 'Reddy', 'Oncology', 1500),
]

# name, category, stock, min threshold, price, days until expiry
SAMPLE_MEDICINES = [
    ('Paracetamol 500mg', 'Analgesic', 25, 10, 2.5, 365),
    ('Amoxicillin 250mg', 'Antibiotic', 8, 10, 6.0, 180),
    ('Antiseptic Solution', 'Antiseptic', 12, 10, 4.75, 20),
    ('Insulin Glargine', 'Hormone', 0, 5, 32.0, 90),
    ('Cetirizine 10mg', 'Antihistamine', 40, 15, 1.2, 540),
]


def sample_doctors():
    return [
        DoctorDraft(
            first_name=first,
            last_name=last,
            specialization=specialization,
            email=f'{first.lower()}.{last.lower()}@meditrack.example',
            consultation_fee=fee,
        )
        for first, last, specialization, fee in SAMPLE_DOCTORS
    ]


def sample_medicines(today=None):
    today = today or date.today()
    return [
        MedicineDraft(
            name=name,
            category=category,
            stock=stock,
            min_threshold=threshold,
            price=price,
            expiry_date=today + timedelta(days=days),
        )
        for name, category, stock, threshold, price, days in SAMPLE_MEDICINES
    ]


def seed_sample_data(repos):
    """Fill the doctor roster and inventory when they are empty."""
    if not repos.doctors.get_all():
        for draft in sample_doctors():
            repos.doctors.create(draft)
        logger.info('[DB] Seeded %d sample doctors', len(SAMPLE_DOCTORS))

    if not repos.medicines.get_all():
        for draft in sample_medicines():
            repos.medicines.create(draft)
        logger.info('[DB] Seeded %d sample medicines', len(SAMPLE_MEDICINES))

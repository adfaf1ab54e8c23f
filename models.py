from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Dates are kept as ISO strings, the same shape the hosted backend returns.


class Patient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.String(20))
    gender = db.Column(db.String(10))
    phone = db.Column(db.String(30))
    email = db.Column(db.String(120))
    address = db.Column(db.String(255))
    emergency_contact_name = db.Column(db.String(100))
    emergency_contact_phone = db.Column(db.String(30))
    emergency_contact_relationship = db.Column(db.String(50))
    blood_type = db.Column(db.String(3))
    allergies = db.Column(db.JSON, default=list)
    medications = db.Column(db.JSON, default=list)
    registration_date = db.Column(db.String(20))


class Doctor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    specialization = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    email = db.Column(db.String(120))
    # shape owned by the scheduling front end
    availability = db.Column(db.JSON, default=list)
    consultation_fee = db.Column(db.Float, default=0)


class Appointment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patient.id'))
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctor.id'))
    date = db.Column(db.String(20))
    time = db.Column(db.String(5))
    status = db.Column(db.String(20), default='scheduled')
    notes = db.Column(db.Text)
    created_at = db.Column(db.String(20))


class Bill(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patient.id'))
    services = db.Column(db.JSON, default=list)
    total_amount = db.Column(db.Float, default=0)
    status = db.Column(db.String(20), default='pending')
    date = db.Column(db.String(20))
    paid_at = db.Column(db.String(20))


class Medicine(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(50))
    stock = db.Column(db.Integer, default=0)
    min_threshold = db.Column(db.Integer, default=10)
    price = db.Column(db.Float, default=0)
    expiry_date = db.Column(db.String(20))


class MedicalRecord(db.Model):
    __tablename__ = 'medical_record'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patient.id'))
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctor.id'))
    date = db.Column(db.String(20))
    diagnosis = db.Column(db.Text)
    treatment = db.Column(db.Text)
    prescription = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text)


# wire table name -> model
TABLES = {
    'patient_c': Patient,
    'doctor_c': Doctor,
    'appointment_c': Appointment,
    'bill_c': Bill,
    'medicine_c': Medicine,
    'record_c': MedicalRecord,
}

import logging
from datetime import datetime

from flask import Flask, jsonify, request

import errors
import reports
import schemas
import search
from auth import build_auth, login_required
from config import Config
from lookups import doctor_label, full_name, index_by_id, patient_label
from repositories import Repositories, load_collections
from seed import seed_sample_data
from stock_service import stock_evaluator
from stores import RemoteStore, SqlStore, build_store


# ---------------- HELPER FUNCTIONS ----------------
def _configure_logging(app):
    level = app.config['LOG_LEVEL']
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.logger.setLevel(level)


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise errors.ValidationError({'form': 'Expected a JSON object'})
    return data


def _quantity(value):
    if isinstance(value, bool) or value is None:
        raise errors.ValidationError({'quantity': 'Quantity must be a whole number'})
    try:
        return int(str(value).strip())
    except ValueError:
        raise errors.ValidationError({'quantity': 'Quantity must be a whole number'}) from None


def _patient_view(patient):
    return schemas.dump(patient, full_name=full_name(patient))


def _doctor_view(doctor):
    return schemas.dump(doctor, full_name=f'Dr. {full_name(doctor)}')


def _appointment_view(appointment, patients, doctors):
    return schemas.dump(
        appointment,
        patient_name=patient_label(patients, appointment.patient_id),
        doctor_name=doctor_label(doctors, appointment.doctor_id),
    )


def _record_view(record, patients, doctors):
    return schemas.dump(
        record,
        patient_name=patient_label(patients, record.patient_id),
        doctor_name=doctor_label(doctors, record.doctor_id),
    )


def _bill_view(bill, patients):
    return schemas.dump(bill, patient_name=patient_label(patients, bill.patient_id))


def _medicine_view(medicine, now=None):
    return schemas.dump(medicine, **stock_evaluator.describe(medicine, now))


def create_app(test_config=None, store=None, auth=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    _configure_logging(app)

    if store is None:
        store = build_store(app.config)
    if isinstance(store, SqlStore):
        store.db.init_app(app)
        with app.app_context():
            store.db.create_all()
        app.logger.info('[DB] Using database at: %s', app.config['SQLALCHEMY_DATABASE_URI'])
    app.logger.info('Store backend: %s', type(store).__name__)

    repos = Repositories(store)
    auth = auth or build_auth(app.config)
    app.extensions['meditrack.repos'] = repos
    app.extensions['meditrack.auth'] = auth

    if app.config['SEED_SAMPLE_DATA'] and not isinstance(store, RemoteStore):
        with app.app_context():
            try:
                seed_sample_data(repos)
            except errors.MediTrackError as e:
                app.logger.error('Error seeding data: %s', e.message)

    def load(screen, **loaders):
        try:
            return load_collections(loaders, context=app.app_context, max_workers=app.config['FETCH_MAX_WORKERS'])
        except errors.CollectionLoadError as e:
            raise errors.CollectionLoadError(e.failures, screen=screen) from e

    # ---------------- ERROR HANDLERS ----------------
    @app.errorhandler(errors.MediTrackError)
    def handle_error(e):
        if e.status_code >= 500:
            app.logger.warning('%s %s failed: %s', request.method, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    # ---------------- AUTH ----------------
    @app.route('/api/auth/status')
    def auth_status():
        return jsonify({'authenticated': bool(auth.is_authenticated())})

    @app.route('/api/auth/logout', methods=['POST'])
    def auth_logout():
        auth.logout()
        return jsonify({'ok': True})

    # ---------------- DASHBOARD ----------------
    @app.route('/api/dashboard')
    @login_required
    def dashboard():
        data = load(
            'dashboard',
            patients=repos.patients.get_all,
            appointments=repos.appointments.get_all,
            doctors=repos.doctors.get_all,
            bills=repos.bills.get_all,
            medicines=repos.medicines.get_all,
        )
        return jsonify({
            'stats': reports.dashboard_stats(
                data['patients'], data['appointments'], data['doctors'], data['bills'], data['medicines'],
            ),
            'recent_activity': reports.recent_activity(data['patients'], data['appointments'], data['medicines']),
        })

    # ---------------- PATIENTS ----------------
    @app.route('/api/patients')
    @login_required
    def list_patients():
        data = load('patients', patients=repos.patients.get_all)
        found = search.search_patients(data['patients'], request.args.get('q', ''))
        return jsonify([_patient_view(p) for p in found])

    @app.route('/api/patients', methods=['POST'])
    @login_required
    def create_patient():
        draft = schemas.validate_draft(schemas.PatientDraft, _payload())
        patient = repos.patients.create(draft)
        app.logger.info('Registered patient %s', patient.id)
        return jsonify(_patient_view(patient)), 201

    @app.route('/api/patients/<patient_id>')
    @login_required
    def get_patient(patient_id):
        return jsonify(_patient_view(repos.patients.get_by_id(patient_id)))

    @app.route('/api/patients/<patient_id>', methods=['PUT'])
    @login_required
    def update_patient(patient_id):
        return jsonify(_patient_view(repos.patients.update(patient_id, _payload())))

    @app.route('/api/patients/<patient_id>', methods=['DELETE'])
    @login_required
    def delete_patient(patient_id):
        repos.patients.delete(patient_id)
        return jsonify({'ok': True})

    @app.route('/api/patients/<patient_id>/bills')
    @login_required
    def patient_bills(patient_id):
        patient = repos.patients.get_by_id(patient_id)
        bills = repos.bills.for_patient(patient.id)
        return jsonify({
            'bills': [_bill_view(b, [patient]) for b in bills],
            'summary': reports.billing_summary(bills),
        })

    @app.route('/api/patients/<patient_id>/records')
    @login_required
    def patient_records(patient_id):
        patient = repos.patients.get_by_id(patient_id)
        data = load(
            'records',
            records=lambda: repos.records.for_patient(patient.id),
            doctors=repos.doctors.get_all,
        )
        doctors = index_by_id(data['doctors'])
        return jsonify([_record_view(r, [patient], doctors) for r in data['records']])

    # ---------------- APPOINTMENTS ----------------
    def _appointment_detail(appointment):
        data = load('appointments', patients=repos.patients.get_all, doctors=repos.doctors.get_all)
        return _appointment_view(appointment, data['patients'], data['doctors'])

    @app.route('/api/appointments')
    @login_required
    def list_appointments():
        data = load(
            'appointments',
            appointments=repos.appointments.get_all,
            patients=repos.patients.get_all,
            doctors=repos.doctors.get_all,
        )
        patients = index_by_id(data['patients'])
        doctors = index_by_id(data['doctors'])
        found = search.search_appointments(
            data['appointments'],
            request.args.get('q', ''),
            status=request.args.get('status'),
            patients=data['patients'],
            doctors=data['doctors'],
        )
        return jsonify([_appointment_view(a, patients, doctors) for a in found])

    @app.route('/api/appointments/slots')
    @login_required
    def appointment_slots():
        """Return the booking slots still free for a doctor on a date"""
        doctor_id = request.args.get('doctor_id')
        day = schemas.parse_date(request.args.get('date'))
        if day is None:
            raise errors.ValidationError({'date': 'Please select a date'})
        doctor = repos.doctors.get_by_id(doctor_id)
        occupied = {
            a.time for a in repos.appointments.get_all()
            if a.doctor_id == doctor.id and a.date == day and a.status != 'cancelled'
        }
        free = [slot for slot in schemas.TIME_SLOTS if slot not in occupied]
        return jsonify({'doctor_id': doctor.id, 'date': day.isoformat(), 'slots': free})

    @app.route('/api/appointments', methods=['POST'])
    @login_required
    def create_appointment():
        draft = schemas.validate_draft(schemas.AppointmentDraft, _payload())
        appointment = repos.appointments.create(draft)
        app.logger.info('Booked appointment %s', appointment.id)
        return jsonify(_appointment_detail(appointment)), 201

    @app.route('/api/appointments/<appointment_id>')
    @login_required
    def get_appointment(appointment_id):
        return jsonify(_appointment_detail(repos.appointments.get_by_id(appointment_id)))

    @app.route('/api/appointments/<appointment_id>', methods=['PUT'])
    @login_required
    def update_appointment(appointment_id):
        patch = _payload()
        if 'status' in patch:
            current = repos.appointments.get_by_id(appointment_id)
            if patch['status'] != current.status:
                schemas.check_transition(schemas.APPOINTMENT_TRANSITIONS, current.status, patch['status'])
        return jsonify(_appointment_detail(repos.appointments.update(appointment_id, patch)))

    @app.route('/api/appointments/<appointment_id>/status', methods=['POST'])
    @login_required
    def change_appointment_status(appointment_id):
        status = _payload().get('status')
        current = repos.appointments.get_by_id(appointment_id)
        schemas.check_transition(schemas.APPOINTMENT_TRANSITIONS, current.status, status)
        appointment = repos.appointments.set_status(current.id, status)
        app.logger.info('Appointment %s moved from %s to %s', current.id, current.status, status)
        return jsonify(_appointment_detail(appointment))

    @app.route('/api/appointments/<appointment_id>', methods=['DELETE'])
    @login_required
    def delete_appointment(appointment_id):
        repos.appointments.delete(appointment_id)
        return jsonify({'ok': True})

    # ---------------- DOCTORS ----------------
    @app.route('/api/doctors')
    @login_required
    def list_doctors():
        data = load('doctors', doctors=repos.doctors.get_all)
        found = search.search_doctors(
            data['doctors'], request.args.get('q', ''), specialization=request.args.get('specialization'),
        )
        return jsonify([_doctor_view(d) for d in found])

    @app.route('/api/doctors', methods=['POST'])
    @login_required
    def create_doctor():
        draft = schemas.validate_draft(schemas.DoctorDraft, _payload())
        return jsonify(_doctor_view(repos.doctors.create(draft))), 201

    @app.route('/api/doctors/<doctor_id>')
    @login_required
    def get_doctor(doctor_id):
        return jsonify(_doctor_view(repos.doctors.get_by_id(doctor_id)))

    @app.route('/api/doctors/<doctor_id>', methods=['PUT'])
    @login_required
    def update_doctor(doctor_id):
        return jsonify(_doctor_view(repos.doctors.update(doctor_id, _payload())))

    @app.route('/api/doctors/<doctor_id>', methods=['DELETE'])
    @login_required
    def delete_doctor(doctor_id):
        repos.doctors.delete(doctor_id)
        return jsonify({'ok': True})

    # ---------------- MEDICAL RECORDS ----------------
    def _record_detail(record):
        data = load('records', patients=repos.patients.get_all, doctors=repos.doctors.get_all)
        return _record_view(record, data['patients'], data['doctors'])

    @app.route('/api/records')
    @login_required
    def list_records():
        data = load(
            'records',
            records=repos.records.get_all,
            patients=repos.patients.get_all,
            doctors=repos.doctors.get_all,
        )
        patients = index_by_id(data['patients'])
        doctors = index_by_id(data['doctors'])
        found = search.search_records(
            data['records'], request.args.get('q', ''), patients=data['patients'], doctors=data['doctors'],
        )
        return jsonify([_record_view(r, patients, doctors) for r in found])

    @app.route('/api/records', methods=['POST'])
    @login_required
    def create_record():
        draft = schemas.validate_draft(schemas.MedicalRecordDraft, _payload())
        return jsonify(_record_detail(repos.records.create(draft))), 201

    @app.route('/api/records/<record_id>')
    @login_required
    def get_record(record_id):
        return jsonify(_record_detail(repos.records.get_by_id(record_id)))

    @app.route('/api/records/<record_id>', methods=['PUT'])
    @login_required
    def update_record(record_id):
        return jsonify(_record_detail(repos.records.update(record_id, _payload())))

    @app.route('/api/records/<record_id>', methods=['DELETE'])
    @login_required
    def delete_record(record_id):
        repos.records.delete(record_id)
        return jsonify({'ok': True})

    # ---------------- BILLING ----------------
    def _bill_detail(bill):
        data = load('billing', patients=repos.patients.get_all)
        return _bill_view(bill, data['patients'])

    @app.route('/api/bills')
    @login_required
    def list_bills():
        data = load('billing', bills=repos.bills.get_all, patients=repos.patients.get_all)
        patients = index_by_id(data['patients'])
        found = search.search_bills(
            data['bills'], request.args.get('q', ''), status=request.args.get('status'), patients=data['patients'],
        )
        return jsonify({
            'bills': [_bill_view(b, patients) for b in found],
            'summary': reports.billing_summary(data['bills']),
        })

    @app.route('/api/bills', methods=['POST'])
    @login_required
    def create_bill():
        draft = schemas.validate_draft(schemas.BillDraft, _payload())
        bill = repos.bills.create(draft)
        app.logger.info('Created bill %s for %.2f', bill.id, bill.total_amount)
        return jsonify(_bill_detail(bill)), 201

    @app.route('/api/bills/<bill_id>')
    @login_required
    def get_bill(bill_id):
        return jsonify(_bill_detail(repos.bills.get_by_id(bill_id)))

    @app.route('/api/bills/<bill_id>/payment', methods=['POST'])
    @login_required
    def record_payment(bill_id):
        status = (request.get_json(silent=True) or {}).get('status', 'paid')
        current = repos.bills.get_by_id(bill_id)
        schemas.check_transition(schemas.BILL_TRANSITIONS, current.status, status)
        bill = repos.bills.set_status(current.id, status)
        app.logger.info('Bill %s marked %s', bill.id, status)
        return jsonify(_bill_detail(bill))

    @app.route('/api/bills/<bill_id>', methods=['DELETE'])
    @login_required
    def delete_bill(bill_id):
        repos.bills.delete(bill_id)
        return jsonify({'ok': True})

    # ---------------- INVENTORY ----------------
    @app.route('/api/inventory')
    @login_required
    def list_inventory():
        stock = request.args.get('stock') or None
        if stock and stock not in search.STOCK_FILTERS:
            raise errors.ValidationError({'stock': f"Unknown stock filter '{stock}'"})
        data = load('inventory', medicines=repos.medicines.get_all)
        found = search.search_medicines(
            data['medicines'], request.args.get('q', ''), category=request.args.get('category'), stock=stock,
        )
        now = datetime.now()
        return jsonify({
            'medicines': [_medicine_view(m, now) for m in found],
            'summary': stock_evaluator.inventory_summary(data['medicines']),
        })

    @app.route('/api/inventory', methods=['POST'])
    @login_required
    def create_medicine():
        draft = schemas.validate_draft(schemas.MedicineDraft, _payload())
        return jsonify(_medicine_view(repos.medicines.create(draft))), 201

    @app.route('/api/inventory/alerts')
    @login_required
    def inventory_alerts():
        data = load('inventory', medicines=repos.medicines.get_all)
        alerts = stock_evaluator.check_alerts(data['medicines'])
        return jsonify({
            'alerts': alerts,
            'count': len(alerts),
        })

    @app.route('/api/inventory/<medicine_id>')
    @login_required
    def get_medicine(medicine_id):
        return jsonify(_medicine_view(repos.medicines.get_by_id(medicine_id)))

    @app.route('/api/inventory/<medicine_id>', methods=['PUT'])
    @login_required
    def update_medicine(medicine_id):
        return jsonify(_medicine_view(repos.medicines.update(medicine_id, _payload())))

    @app.route('/api/inventory/<medicine_id>/stock', methods=['POST'])
    @login_required
    def adjust_stock(medicine_id):
        quantity = _quantity(_payload().get('quantity'))
        medicine = repos.medicines.adjust_stock(medicine_id, quantity)
        app.logger.info('Stock of medicine %s adjusted by %d to %d', medicine.id, quantity, medicine.stock)
        return jsonify(_medicine_view(medicine))

    @app.route('/api/inventory/<medicine_id>', methods=['DELETE'])
    @login_required
    def delete_medicine(medicine_id):
        repos.medicines.delete(medicine_id)
        return jsonify({'ok': True})

    # ---------------- REPORTS ----------------
    @app.route('/api/reports')
    @login_required
    def report():
        data = load(
            'reports',
            patients=repos.patients.get_all,
            appointments=repos.appointments.get_all,
            bills=repos.bills.get_all,
            medicines=repos.medicines.get_all,
        )
        return jsonify(reports.build_report(
            data['patients'], data['appointments'], data['bills'], data['medicines'],
            timeframe=request.args.get('timeframe', reports.DEFAULT_TIMEFRAME),
        ))

    return app


# ---------------- MAIN ----------------
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, host='127.0.0.1', port=5000)

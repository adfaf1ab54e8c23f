from datetime import date, datetime, timedelta

import pytest

import reports
from schemas import Appointment, Bill, Medicine, Patient

NOW = datetime(2024, 6, 15, 14, 30)
TODAY = NOW.date()


def patient(record_id, registered=None, born=None, gender='female'):
    return Patient(
        Id=record_id,
        first_name_c=f'First{record_id}',
        last_name_c=f'Last{record_id}',
        gender_c=gender,
        registration_date_c=registered,
        date_of_birth_c=born,
    )


def bill(record_id, status, amount, day=None):
    return Bill(Id=record_id, status_c=status, total_amount_c=amount, date_c=day)


class TestPeriods:
    def test_week(self):
        start, end = reports.period_bounds('week', NOW)
        assert start == NOW - timedelta(days=7)
        assert end == NOW

    @pytest.mark.parametrize('timeframe, expected', [
        ('month', datetime(2024, 5, 15, 14, 30)),
        ('quarter', datetime(2024, 3, 15, 14, 30)),
        ('year', datetime(2023, 6, 15, 14, 30)),
        ('decade', datetime(2024, 5, 15, 14, 30)),
    ])
    def test_month_based(self, timeframe, expected):
        assert reports.period_bounds(timeframe, NOW)[0] == expected

    def test_month_subtraction_clamps_day(self):
        assert reports.subtract_months(datetime(2024, 3, 31), 1) == datetime(2024, 2, 29)
        assert reports.subtract_months(datetime(2024, 1, 31), 3) == datetime(2023, 10, 31)
        assert reports.subtract_months(datetime(2023, 5, 31), 3) == datetime(2023, 2, 28)

    def test_in_period_ignores_bad_dates(self):
        start, end = reports.period_bounds('week', NOW)
        assert reports.in_period('2024-06-10', start, end)
        assert not reports.in_period('2024-06-01', start, end)
        assert not reports.in_period(None, start, end)
        assert not reports.in_period('not a date', start, end)


class TestDashboard:
    def test_todays_appointments(self):
        appointments = [
            Appointment(Id=1, date_c=TODAY.isoformat(), status_c='scheduled'),
            Appointment(Id=2, date_c=(TODAY - timedelta(days=1)).isoformat(), status_c='completed'),
        ]
        stats = reports.dashboard_stats([], appointments, [], [], [], today=TODAY)
        assert stats['todays_appointments'] == 1

    def test_counts(self):
        stats = reports.dashboard_stats(
            [patient(1), patient(2)],
            [],
            [object()],
            [bill(1, 'pending', 10), bill(2, 'paid', 5), bill(3, 'pending', 1)],
            [Medicine(Id=1, stock_c=5, min_threshold_c=5), Medicine(Id=2, stock_c=6, min_threshold_c=5)],
            today=TODAY,
        )
        assert stats == {
            'total_patients': 2,
            'todays_appointments': 0,
            'total_doctors': 1,
            'pending_bills': 2,
            'low_stock_medicines': 1,
        }

    def test_recent_activity_order(self):
        patients = [patient(i, registered='2024-06-0%d' % i) for i in range(1, 6)]
        appointments = [
            Appointment(Id=1, patient_id_c=1, status_c='scheduled'),
            Appointment(Id=2, patient_id_c=2, status_c='completed'),
            Appointment(Id=3, patient_id_c=3, status_c='scheduled'),
            Appointment(Id=4, patient_id_c=77, status_c='scheduled'),
        ]
        medicines = [
            Medicine(Id=1, name_c='A', stock_c=1, min_threshold_c=5),
            Medicine(Id=2, name_c='B', stock_c=2, min_threshold_c=5),
            Medicine(Id=3, name_c='C', stock_c=3, min_threshold_c=5),
        ]
        activity = reports.recent_activity(patients, appointments, medicines)
        assert [a['id'] for a in activity] == [
            'patient-3', 'patient-4', 'patient-5',
            'appointment-3', 'appointment-4',
            'stock-2', 'stock-3',
        ]
        assert activity[0]['date'] == '2024-06-03'
        assert activity[3]['message'] == 'Appointment scheduled for First3 Last3'
        assert activity[4]['message'] == 'Appointment scheduled for Unknown Patient'

    def test_recent_activity_cap(self):
        patients = [patient(i) for i in range(1, 4)]
        appointments = [Appointment(Id=i, patient_id_c=1, status_c='scheduled') for i in range(1, 4)]
        medicines = [Medicine(Id=i, name_c='M', stock_c=0, min_threshold_c=1) for i in range(1, 4)]
        activity = reports.recent_activity(patients, appointments, medicines, limit=6)
        assert len(activity) == 6
        assert activity[-1]['id'] == 'stock-2'


class TestPatientReport:
    def test_week_excludes_older_registrations(self):
        patients = [
            patient(1, registered=(TODAY - timedelta(days=10)).isoformat()),
            patient(2, registered=(TODAY - timedelta(days=2)).isoformat()),
            patient(3, registered=None),
        ]
        start, end = reports.period_bounds('week', NOW)
        result = reports.patient_report(patients, start, end)
        assert result['total'] == 3
        assert result['new_patients'] == 1

    def test_age_uses_year_subtraction(self):
        born = date(TODAY.year - 40, 12, 31).isoformat()
        assert reports.age_group(born, TODAY) == '36-60'
        assert reports.age_group(date(TODAY.year - 40, 1, 1).isoformat(), TODAY) == '36-60'

    @pytest.mark.parametrize('years, group', [(0, '0-18'), (18, '0-18'), (19, '19-35'), (35, '19-35'),
                                              (36, '36-60'), (60, '36-60'), (61, '60+'), (-2, '0-18')])
    def test_age_bands(self, years, group):
        assert reports.age_group(date(TODAY.year - years, 6, 1), TODAY) == group

    def test_breakdowns(self):
        patients = [
            patient(1, born='1950-03-03', gender='male'),
            patient(2, born='2010-01-01'),
            patient(3, born=None, gender='other'),
        ]
        result = reports.patient_report(patients, NOW - timedelta(days=7), NOW)
        assert result['by_gender'] == {'male': 1, 'female': 1, 'other': 1}
        assert result['by_age_group'] == {'0-18': 1, '19-35': 0, '36-60': 0, '60+': 1}


class TestAppointmentReport:
    def test_rates_and_statuses(self):
        appointments = [
            Appointment(Id=1, status_c='completed', date_c='2024-06-14'),
            Appointment(Id=2, status_c='completed', date_c='2024-01-01'),
            Appointment(Id=3, status_c='cancelled', date_c='2024-06-01'),
        ]
        start, end = reports.period_bounds('month', NOW)
        result = reports.appointment_report(appointments, start, end)
        assert result['total'] == 3
        assert result['period'] == 2
        assert result['by_status'] == {'scheduled': 0, 'confirmed': 0, 'completed': 2, 'cancelled': 1}
        assert result['completion_rate'] == 67

    def test_empty(self):
        result = reports.appointment_report([], NOW, NOW)
        assert result['completion_rate'] == 0


class TestFinancialReport:
    def test_revenue_and_collection(self):
        bills = [bill(1, 'paid', 100, '2024-06-10'), bill(2, 'pending', 50, '2024-06-10')]
        start, end = reports.period_bounds('month', NOW)
        result = reports.financial_report(bills, start, end)
        assert result['total_revenue'] == 100
        assert result['pending_amount'] == 50
        assert result['collection_rate'] == 50
        assert result['period_revenue'] == 100

    def test_period_revenue_is_bounded(self):
        bills = [bill(1, 'paid', 100, '2023-01-01'), bill(2, 'paid', 40, None), bill(3, 'overdue', 5)]
        start, end = reports.period_bounds('year', NOW)
        result = reports.financial_report(bills, start, end)
        assert result['total_revenue'] == 140
        assert result['period_revenue'] == 0
        assert result['collection_rate'] == 67

    def test_no_bills(self):
        result = reports.financial_report([], NOW, NOW)
        assert result['collection_rate'] == 0
        assert result['total_revenue'] == 0

    def test_rounding_halves_up(self):
        assert reports.percent(1, 8) == 13
        assert reports.percent(5, 8) == 63
        assert reports.percent(0, 0) == 0

    def test_billing_summary(self):
        summary = reports.billing_summary([bill(1, 'paid', 100), bill(2, 'pending', 50), bill(3, 'overdue', 9)])
        assert summary['total_revenue'] == 100
        assert summary['pending_amount'] == 50
        assert summary['overdue_bills'] == 1


class TestInventoryReport:
    def test_figures(self):
        medicines = [
            Medicine(Id=1, stock_c=0, min_threshold_c=5, price_c=10, category_c='A', expiry_date_c='2024-06-20'),
            Medicine(Id=2, stock_c=3, min_threshold_c=5, price_c=2, category_c='A', expiry_date_c='2025-01-01'),
            Medicine(Id=3, stock_c=10, min_threshold_c=5, price_c=1.5, category_c='B'),
        ]
        result = reports.inventory_report(medicines, NOW)
        assert result == {
            'total_items': 3,
            'total_value': 21.0,
            'low_stock_count': 2,
            'out_of_stock_count': 1,
            'expiring_soon_count': 1,
            'categories': 2,
        }


def test_build_report_falls_back_to_month():
    result = reports.build_report([], [], [], [], timeframe='fortnight', now=NOW)
    assert result['timeframe'] == 'month'
    assert result['period_start'] == '2024-05-15T14:30:00'

"""
Dashboard figures and period reports.

All functions are pure: they take the loaded collections (read models from
``schemas``) plus the current moment and derive counts, sums and rates.
Records whose date is missing or unparseable drop out of period-bounded
figures without raising.
"""
import calendar
import math
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from lookups import full_name, index_by_id, patient_label
from schemas import APPOINTMENT_STATUSES, GENDERS, parse_date
from stock_service import stock_evaluator

TIMEFRAMES = ('week', 'month', 'quarter', 'year')
DEFAULT_TIMEFRAME = 'month'
AGE_GROUPS = ('0-18', '19-35', '36-60', '60+')
RECENT_ACTIVITY_LIMIT = 8


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def subtract_months(moment: datetime, months: int) -> datetime:
    # clamp the day so Mar 31 minus one month lands on the last day of February
    index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_bounds(timeframe: str, now: datetime) -> Tuple[datetime, datetime]:
    """Start and end of the reporting window ending at ``now``.

    Unknown keywords fall back to the month window.
    """
    if timeframe == 'week':
        return now - timedelta(days=7), now
    months = {'month': 1, 'quarter': 3, 'year': 12}.get(timeframe, 1)
    return subtract_months(now, months), now


def in_period(value, start: datetime, end: datetime) -> bool:
    day = parse_date(value)
    if day is None:
        return False
    moment = datetime.combine(day, datetime.min.time())
    return start <= moment <= end


def age_group(date_of_birth, today: date) -> Optional[str]:
    """Age band by calendar-year subtraction, birthdays not taken into account."""
    born = parse_date(date_of_birth)
    if born is None:
        return None
    age = today.year - born.year
    if age <= 18:
        return '0-18'
    if age <= 35:
        return '19-35'
    if age <= 60:
        return '36-60'
    return '60+'


# ---------------- DASHBOARD ----------------
def dashboard_stats(patients, appointments, doctors, bills, medicines, today: Optional[date] = None) -> Dict:
    today = today or date.today()
    return {
        'total_patients': len(patients),
        'todays_appointments': sum(1 for a in appointments if a.date == today),
        'total_doctors': len(doctors),
        'pending_bills': sum(1 for b in bills if b.status == 'pending'),
        'low_stock_medicines': sum(1 for m in medicines if stock_evaluator.is_low_stock(m)),
    }


def recent_activity(patients, appointments, medicines, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict]:
    """Latest registrations, bookings and stock alerts, in that order.

    Takes the last three patients, the last two scheduled appointments and
    the last two low-stock medicines in collection order. A booking whose
    patient cannot be found is labelled with the unknown-patient sentinel.
    """
    activities = []

    for patient in patients[-3:]:
        activities.append({
            'id': f'patient-{patient.id}',
            'type': 'patient',
            'message': f'New patient registered: {full_name(patient)}',
            'date': _iso(patient.registration_date),
        })

    patient_index = index_by_id(patients)
    scheduled = [a for a in appointments if a.status == 'scheduled']
    for appointment in scheduled[-2:]:
        activities.append({
            'id': f'appointment-{appointment.id}',
            'type': 'appointment',
            'message': f'Appointment scheduled for {patient_label(patient_index, appointment.patient_id)}',
            'date': _iso(appointment.created_at),
        })

    low_stock = [m for m in medicines if stock_evaluator.is_low_stock(m)]
    for medicine in low_stock[-2:]:
        activities.append({
            'id': f'stock-{medicine.id}',
            'type': 'inventory',
            'message': f'Low stock alert: {medicine.name} ({medicine.stock} remaining)',
            'date': None,
        })

    return activities[:limit]


def billing_summary(bills) -> Dict:
    paid = [b for b in bills if b.status == 'paid']
    pending = [b for b in bills if b.status == 'pending']
    return {
        'total_revenue': sum(b.total_amount for b in paid),
        'pending_amount': sum(b.total_amount for b in pending),
        'paid_bills': len(paid),
        'pending_bills': len(pending),
        'overdue_bills': sum(1 for b in bills if b.status == 'overdue'),
    }


# ---------------- PERIOD REPORTS ----------------
def patient_report(patients, start: datetime, now: datetime) -> Dict:
    by_age_group = dict.fromkeys(AGE_GROUPS, 0)
    for patient in patients:
        group = age_group(patient.date_of_birth, now.date())
        if group:
            by_age_group[group] += 1
    return {
        'total': len(patients),
        'new_patients': sum(1 for p in patients if in_period(p.registration_date, start, now)),
        'by_gender': {gender: sum(1 for p in patients if p.gender == gender) for gender in GENDERS},
        'by_age_group': by_age_group,
    }


def appointment_report(appointments, start: datetime, now: datetime) -> Dict:
    by_status = {status: sum(1 for a in appointments if a.status == status) for status in APPOINTMENT_STATUSES}
    return {
        'total': len(appointments),
        'period': sum(1 for a in appointments if in_period(a.date, start, now)),
        'by_status': by_status,
        'completion_rate': percent(by_status['completed'], len(appointments)),
    }


def financial_report(bills, start: datetime, now: datetime) -> Dict:
    paid = [b for b in bills if b.status == 'paid']
    pending = [b for b in bills if b.status == 'pending']
    return {
        'total_revenue': sum(b.total_amount for b in paid),
        'period_revenue': sum(b.total_amount for b in paid if in_period(b.date, start, now)),
        'pending_amount': sum(b.total_amount for b in pending),
        'total_bills': len(bills),
        'paid_bills': len(paid),
        'pending_bills': len(pending),
        'collection_rate': percent(len(paid), len(bills)),
    }


def inventory_report(medicines, now: datetime) -> Dict:
    summary = stock_evaluator.inventory_summary(medicines)
    return {
        'total_items': summary['total_items'],
        'total_value': summary['total_value'],
        'low_stock_count': summary['low_stock_count'],
        'out_of_stock_count': summary['out_of_stock_count'],
        'expiring_soon_count': sum(1 for m in medicines if stock_evaluator.is_expiring_soon(m.expiry_date, now)),
        'categories': len(summary['categories']),
    }


def build_report(patients, appointments, bills, medicines, timeframe: str = DEFAULT_TIMEFRAME,
                 now: Optional[datetime] = None) -> Dict:
    now = now or datetime.now()
    if timeframe not in TIMEFRAMES:
        timeframe = DEFAULT_TIMEFRAME
    start, end = period_bounds(timeframe, now)
    return {
        'timeframe': timeframe,
        'period_start': start.isoformat(),
        'period_end': end.isoformat(),
        'patients': patient_report(patients, start, end),
        'appointments': appointment_report(appointments, start, end),
        'financial': financial_report(bills, start, end),
        'inventory': inventory_report(medicines, end),
    }

from datetime import datetime, date, time, timedelta
from .helpers import parse_iso, utcnow

APPOINTMENT_TABS = ('upcoming', 'pending', 'history', 'all')
BOOKING_MINUTES = 60
DEFAULT_CLASS_MINUTES = 60
# ==============================================================================
# --- APPOINTMENTS ---
# ==============================================================================
def filter_appointments(appointments, tab='upcoming'):
    if tab == 'upcoming': return [a for a in appointments if a.get('status') == 'confirmed']
    if tab == 'pending': return [a for a in appointments if a.get('status') == 'pending']
    if tab == 'history': return [a for a in appointments if a.get('status') in ('completed', 'cancelled')]
    return list(appointments)

def parse_slot_start(slot):
    """Start time of an "HH:MM-HH:MM" slot, or None when the slot is malformed."""
    try:
        hours, minutes = (int(part) for part in slot.split('-')[0].strip().split(':'))
        return time(hours, minutes)
    except (AttributeError, ValueError): return None

def slots_for_date(day, schedule, date_overrides=(), now=None):
    """Bookable slots ("HH:MM-HH:MM") for ``day`` from a tutor's weekly schedule.

    A date override wins over the weekly schedule: a blocked date has no slots,
    custom slots replace the day's slots. Slots already started today are dropped.
    """
    now = now or datetime.now().astimezone()
    override = next((o for o in date_overrides if (o.get('date') or '')[:10] == day.isoformat()), None)
    if override and override.get('isBlocked'): return []
    if override and override.get('customSlots'): day_slots = override['customSlots']
    else:
        weekly = next((s for s in schedule if s.get('day') == day.strftime('%A')), None)
        day_slots = weekly.get('slots', []) if weekly else []
    day_slots = [slot for slot in day_slots if parse_slot_start(slot) is not None]
    if day != now.date(): return day_slots
    return [slot for slot in day_slots if datetime.combine(day, parse_slot_start(slot), tzinfo=now.tzinfo) >= now]

def booking_payload(tutor_id, day, slot, notes='', tz=None):
    tz = tz or datetime.now().astimezone().tzinfo
    start = datetime.combine(day, parse_slot_start(slot), tzinfo=tz)
    return {'tutorId': tutor_id, 'dateTime': start.isoformat(), 'duration': BOOKING_MINUTES, 'notes': notes}

def parse_day(value, default=None):
    try: return date.fromisoformat(value)
    except (TypeError, ValueError): return default
# ==============================================================================
# --- LIVE CLASSES ---
# ==============================================================================
def class_end(live_class):
    start = parse_iso(live_class.get('dateTime'))
    if not start: return None
    return start + timedelta(minutes=int(live_class.get('duration') or DEFAULT_CLASS_MINUTES))

def upcoming_live_classes(live_classes, now=None):
    now = now or utcnow()
    pending = [c for c in live_classes if c.get('status') == 'live' or (class_end(c) is not None and now < class_end(c))]
    return sorted(pending, key=lambda c: parse_iso(c.get('dateTime')) or now)

def is_live(live_class, now=None):
    now = now or utcnow()
    start, end = parse_iso(live_class.get('dateTime')), class_end(live_class)
    return live_class.get('status') == 'live' or bool(start and end and start <= now < end)

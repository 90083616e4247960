"""
Booking slot grid and availability.

A provider's day is a fixed grid of equal-length slots between opening and
closing time. A slot is taken when a non-cancelled booking exists for the
provider at that exact date and "HH:MM" time. The database enforces the
one-booking-per-slot rule; this module only answers availability questions
for display and early validation.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta

from models import Booking

DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "18:00"
DEFAULT_SLOT_MINUTES = 30


def _to_minutes(hhmm):
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def generate_slot_grid(open_time=DEFAULT_OPEN_TIME, close_time=DEFAULT_CLOSE_TIME,
                       step_minutes=DEFAULT_SLOT_MINUTES):
    """Return the ordered "HH:MM" start times from open (inclusive) to close (exclusive)."""
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    start = _to_minutes(open_time)
    end = _to_minutes(close_time)
    return [f"{m // 60:02d}:{m % 60:02d}" for m in range(start, end, step_minutes)]


def _date_key(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)


def group_taken_slots(rows):
    """Group (booking_date, booking_time) rows into {date_iso: [times]}.

    Accepts Booking instances, mappings, or plain tuples. Rows with status
    "cancelled" are skipped when a status is present.
    """
    taken = defaultdict(list)
    for row in rows:
        if isinstance(row, dict):
            booking_date, booking_time = row["booking_date"], row["booking_time"]
            status = row.get("status")
        elif isinstance(row, (tuple, list)):
            booking_date, booking_time = row[0], row[1]
            status = row[2] if len(row) > 2 else None
        else:
            booking_date, booking_time = row.booking_date, row.booking_time
            status = getattr(row, "status", None)
        if status == "cancelled":
            continue
        times = taken[_date_key(booking_date)]
        if booking_time not in times:
            times.append(booking_time)
    for times in taken.values():
        times.sort()
    return dict(taken)


class SlotAvailability:
    """Availability view over a slot grid and the taken slots per date."""

    def __init__(self, grid, taken=None):
        self.grid = list(grid)
        self.taken = {k: list(v) for k, v in (taken or {}).items()}

    def taken_for(self, day):
        return self.taken.get(_date_key(day), [])

    def is_fully_booked(self, day):
        return len(self.taken_for(day)) >= len(self.grid)

    def is_partially_booked(self, day):
        count = len(self.taken_for(day))
        return 0 < count < len(self.grid)

    def is_slot_available(self, day, time_value):
        return time_value in self.grid and time_value not in self.taken_for(day)

    def available_slots(self, day):
        taken = set(self.taken_for(day))
        return [t for t in self.grid if t not in taken]

    def fully_booked_dates(self):
        return sorted(d for d in self.taken if self.is_fully_booked(d))

    def partially_booked_dates(self):
        return sorted(d for d in self.taken if self.is_partially_booked(d))

    def to_dict(self, day=None):
        data = {
            "slots": self.grid,
            "taken": self.taken,
            "fully_booked_dates": self.fully_booked_dates(),
            "partially_booked_dates": self.partially_booked_dates(),
        }
        if day is not None:
            data["date"] = _date_key(day)
            data["available_slots"] = self.available_slots(day)
        return data


def grid_from_config(config):
    return generate_slot_grid(
        config.get("BOOKING_OPEN_TIME", DEFAULT_OPEN_TIME),
        config.get("BOOKING_CLOSE_TIME", DEFAULT_CLOSE_TIME),
        config.get("BOOKING_SLOT_MINUTES", DEFAULT_SLOT_MINUTES),
    )


def load_availability(provider_id, grid, start_date=None, end_date=None):
    """Build a SlotAvailability for a provider from its non-cancelled bookings."""
    query = Booking.query.with_entities(Booking.booking_date, Booking.booking_time).filter(
        Booking.provider_id == provider_id,
        Booking.status != "cancelled",
    )
    if start_date is not None:
        query = query.filter(Booking.booking_date >= start_date)
    if end_date is not None:
        query = query.filter(Booking.booking_date <= end_date)
    return SlotAvailability(grid, group_taken_slots(query.all()))


def default_window(start_date, days=60):
    return start_date, start_date + timedelta(days=days)

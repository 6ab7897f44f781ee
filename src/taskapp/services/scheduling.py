"""Free meeting slot suggestions.

Busy periods (e.g. from a calendar free/busy query) are matched against
business hours to list slots of a given length that are completely free.
Only weekdays are considered. Wall-clock times are interpreted at the
configured UTC offset.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from ..utils.datetime import date_range, parse_date, parse_timestamp


@dataclass
class BusyPeriod:
    start: datetime
    end: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BusyPeriod":
        return cls(start=parse_timestamp(data["start"]), end=parse_timestamp(data["end"]))


@dataclass
class AvailableSlot:
    """A free slot in local wall-clock time."""
    start_at: datetime
    end_at: datetime

    @property
    def day_of_week(self) -> int:
        """0 = Monday ... 6 = Sunday."""
        return self.start_at.weekday()

    @property
    def date_key(self) -> str:
        return self.start_at.date().isoformat()

    def label(self) -> str:
        """Human-readable label such as ``Fri 2/16 10:00-11:00``."""
        return (f"{self.start_at:%a} {self.start_at.month}/{self.start_at.day} "
                f"{self.start_at:%H:%M}-{self.end_at:%H:%M}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_at': self.start_at.strftime("%Y-%m-%dT%H:%M"),
            'end_at': self.end_at.strftime("%Y-%m-%dT%H:%M"),
            'day_of_week': self.day_of_week,
            'date_key': self.date_key,
        }


def compute_available_slots(busy_periods: Sequence[BusyPeriod],
                            start_date: Union[date, str],
                            end_date: Union[date, str],
                            duration_minutes: int,
                            business_hour_start: int = 9,
                            business_hour_end: int = 18,
                            step_minutes: int = 30,
                            max_results: int = 100,
                            utc_offset: timedelta = timedelta(0)) -> List[AvailableSlot]:
    """List free slots between two dates, both inclusive.

    Business hours must satisfy ``0 <= start < end <= 24``. Invalid input
    (non-positive duration/step/limit, out-of-range business hours, an
    inverted date range, unparseable dates) yields an empty list instead
    of an error.
    """
    if duration_minutes <= 0 or step_minutes <= 0 or max_results <= 0:
        return []
    if not 0 <= business_hour_start < business_hour_end <= 24:
        return []

    try:
        start = parse_date(start_date)
        end = parse_date(end_date)
    except ValueError:
        return []
    if start is None or end is None or start > end:
        return []

    tz = timezone(utc_offset)
    busy = sorted(
        ((b.start.astimezone(tz), b.end.astimezone(tz)) for b in busy_periods if b.start and b.end),
        key=lambda b: b[0],
    )

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    results: List[AvailableSlot] = []

    for day in date_range(start, end):
        if len(results) >= max_results:
            break
        if day.weekday() >= 5:
            continue

        # an end hour of 24 means the following midnight
        midnight = datetime(day.year, day.month, day.day, tzinfo=tz)
        day_start = midnight + timedelta(hours=business_hour_start)
        day_end = midnight + timedelta(hours=business_hour_end)
        day_busy = [(s, e) for s, e in busy if s < day_end and e > day_start]

        slot_start = day_start
        while slot_start + duration <= day_end and len(results) < max_results:
            slot_end = slot_start + duration
            if not any(s < slot_end and e > slot_start for s, e in day_busy):
                results.append(AvailableSlot(
                    start_at=slot_start.replace(tzinfo=None),
                    end_at=slot_end.replace(tzinfo=None),
                ))
            slot_start += step

    return results


def parse_busy_periods(rows: Optional[Sequence[Dict[str, Any]]]) -> List[BusyPeriod]:
    """Parse ``{"start", "end"}`` rows, skipping ones with invalid timestamps."""
    periods: List[BusyPeriod] = []
    for row in rows or []:
        try:
            period = BusyPeriod.from_dict(row)
        except (KeyError, TypeError, ValueError):
            continue
        if period.start and period.end:
            periods.append(period)
    return periods

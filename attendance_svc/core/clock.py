from __future__ import annotations
from datetime import date, datetime, time, timezone, tzinfo
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import get_settings
from .errors import InvalidInstant

DATE_FORMAT = "%Y-%m-%d"
END_OF_DAY = time(23, 59, 59, 999000)


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` calendar date, rejecting anything else."""
    if not isinstance(value, str) or len(value) != 10:
        raise InvalidInstant(f"malformed date: {value!r}")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidInstant(f"malformed date: {value!r}") from exc


def coerce_instant(value: datetime | str) -> datetime:
    """Accept a datetime or an ISO-8601 string; naive values stay naive."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInstant(f"malformed instant: {value!r}") from exc
    raise InvalidInstant(f"malformed instant: {value!r}")


def as_utc(value: datetime) -> datetime:
    # some drivers (sqlite) hand back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """Single source of "now" and "today" for every component.

    Calendar dates are resolved in the company's zone: an explicit entry in
    ``company_zones`` wins, then ``default_zone``, then the server's local
    time.
    """

    def __init__(self, default_zone: str | None = None, company_zones: Mapping[str, str] | None = None):
        self._default = self._load_zone(default_zone) if default_zone else None
        self._zones = {cid: self._load_zone(name) for cid, name in (company_zones or {}).items()}

    @staticmethod
    def _load_zone(name: str) -> tzinfo:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {name!r}") from exc

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def zone_for(self, company_id: str | None = None) -> tzinfo | None:
        """Configured zone, or None for the server's local time."""
        if company_id is not None and company_id in self._zones:
            return self._zones[company_id]
        if self._default is not None:
            return self._default
        return None

    def local(self, instant: datetime | str, company_id: str | None = None) -> datetime:
        dt = coerce_instant(instant)
        zone = self.zone_for(company_id)
        if zone is None:
            # system rules, so the offset is the one in force at that instant
            return dt.astimezone()
        if dt.tzinfo is None:
            return dt.replace(tzinfo=zone)
        return dt.astimezone(zone)

    def date_for(self, instant: datetime | str, company_id: str | None = None) -> str:
        return self.local(instant, company_id).strftime(DATE_FORMAT)

    def today(self, company_id: str | None = None) -> str:
        return self.date_for(self.now(), company_id)

    def end_of_day(self, day: str, company_id: str | None = None) -> datetime:
        """Last millisecond of ``day`` in the company's zone, as UTC."""
        d = parse_date(day)
        zone = self.zone_for(company_id)
        if zone is None:
            local_end = datetime.combine(d, END_OF_DAY).astimezone()
        else:
            local_end = datetime.combine(d, END_OF_DAY, tzinfo=zone)
        return local_end.astimezone(timezone.utc)


def get_clock() -> Clock:
    settings = get_settings()
    return Clock(settings.attendance_timezone, settings.company_timezones)

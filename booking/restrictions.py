# booking/restrictions.py
"""
Structured access restrictions.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

Zones and rules persist their restrictions as JSON. Everything that reads
them goes through the parsers below, so a malformed shape is rejected when
it is saved or submitted rather than when a door is being opened.
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import FrozenSet, Optional

from django.core import exceptions as django_exceptions
from django.utils import timezone

from .exceptions import ValidationError


WEEKDAYS = range(7)  # 0 = Monday ... 6 = Sunday


def _parse_clock(value, field):
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a 'HH:MM' string.")
    try:
        hours, minutes = value.split(':')
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValidationError(f"{field} must be a 'HH:MM' string, got '{value}'.")


def local_moment(at: datetime) -> datetime:
    """Express an aware datetime in the site's time zone; naive values pass through."""
    if timezone.is_aware(at):
        return timezone.localtime(at)
    return at


@dataclass(frozen=True)
class TimeWindow:
    """Daily window, inclusive at both ends. A window whose end precedes its
    start wraps past midnight."""
    start: time
    end: time

    @classmethod
    def parse(cls, data) -> Optional['TimeWindow']:
        if data in (None, {}):
            return None
        if not isinstance(data, dict):
            raise ValidationError("Time restriction must be an object with 'start' and 'end'.")
        unknown = set(data) - {'start', 'end'}
        if unknown:
            raise ValidationError(f"Unknown time restriction keys: {', '.join(sorted(unknown))}.")
        if 'start' not in data or 'end' not in data:
            raise ValidationError("Time restriction requires both 'start' and 'end'.")
        return cls(_parse_clock(data['start'], 'start'), _parse_clock(data['end'], 'end'))

    def contains(self, at: datetime) -> bool:
        moment = local_moment(at).time().replace(second=0, microsecond=0)
        if self.start <= self.end:
            return self.start <= moment <= self.end
        return moment >= self.start or moment <= self.end

    def to_dict(self):
        return {'start': self.start.strftime('%H:%M'), 'end': self.end.strftime('%H:%M')}

    def __str__(self):
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class DaySet:
    """Allowed weekdays. An empty set places no restriction."""
    days: FrozenSet[int]

    @classmethod
    def parse(cls, data) -> 'DaySet':
        if data is None:
            return cls(frozenset())
        if not isinstance(data, (list, tuple)):
            raise ValidationError('Day restrictions must be a list of weekday numbers.')
        days = set()
        for day in data:
            if isinstance(day, bool) or not isinstance(day, int) or day not in WEEKDAYS:
                raise ValidationError(f"Invalid weekday '{day}'; use 0 (Monday) to 6 (Sunday).")
            days.add(day)
        return cls(frozenset(days))

    def contains(self, at: datetime) -> bool:
        if not self.days:
            return True
        return local_moment(at).weekday() in self.days

    def to_list(self):
        return sorted(self.days)


@dataclass(frozen=True)
class ZonePolicy:
    allowed_hours: Optional[TimeWindow] = None
    capacity: Optional[int] = None

    @classmethod
    def parse(cls, data) -> 'ZonePolicy':
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError('Zone restrictions must be an object.')
        unknown = set(data) - {'allowed_hours', 'capacity'}
        if unknown:
            raise ValidationError(f"Unknown zone restriction keys: {', '.join(sorted(unknown))}.")
        capacity = data.get('capacity')
        if capacity is not None and (isinstance(capacity, bool)
                                     or not isinstance(capacity, int) or capacity < 1):
            raise ValidationError('Zone capacity must be a positive integer.')
        return cls(TimeWindow.parse(data.get('allowed_hours')), capacity)

    def to_dict(self):
        data = {}
        if self.allowed_hours:
            data['allowed_hours'] = self.allowed_hours.to_dict()
        if self.capacity is not None:
            data['capacity'] = self.capacity
        return data


def parse_string_list(data, field):
    if data is None:
        return []
    if not isinstance(data, (list, tuple)) or not all(isinstance(v, str) and v for v in data):
        raise ValidationError(f'{field} must be a list of non-empty strings.')
    return list(data)


# Model field validators. Module-level so migrations can reference them.

def validate_time_window(value):
    try:
        TimeWindow.parse(value)
    except ValidationError as exc:
        raise django_exceptions.ValidationError(exc.message)


def validate_day_set(value):
    try:
        DaySet.parse(value)
    except ValidationError as exc:
        raise django_exceptions.ValidationError(exc.message)


def validate_zone_policy(value):
    try:
        ZonePolicy.parse(value)
    except ValidationError as exc:
        raise django_exceptions.ValidationError(exc.message)


def validate_string_list(value):
    try:
        parse_string_list(value, 'Value')
    except ValidationError as exc:
        raise django_exceptions.ValidationError(exc.message)

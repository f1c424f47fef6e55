# booking/availability.py
"""
Space availability and booking conflict detection for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from dataclasses import dataclass, field
from typing import List

from .models import Booking
from .states import ACTIVE_BOOKING_STATUSES


def intervals_overlap(start1, end1, start2, end2):
    """Half-open overlap test: [s1, e1) and [s2, e2) share at least one instant."""
    return start1 < end2 and start2 < end1


class BookingConflict:
    """Represents a clash between a requested interval and an existing booking."""

    def __init__(self, start_time, end_time, booking):
        self.booking = booking
        self.conflict_type = 'overlap'
        self.overlap_start = max(start_time, booking.start_time)
        self.overlap_end = min(end_time, booking.end_time)
        self.overlap_duration = self.overlap_end - self.overlap_start

    def __str__(self):
        return (f"Conflict with '{self.booking.title}' "
                f"from {self.overlap_start} to {self.overlap_end}")

    def to_dict(self):
        """Convert conflict to dictionary for JSON serialization."""
        return {
            'booking': {
                'id': self.booking.pk,
                'title': self.booking.title,
                'user': self.booking.user.get_full_name() or self.booking.user.username,
                'start_time': self.booking.start_time.isoformat(),
                'end_time': self.booking.end_time.isoformat(),
                'status': self.booking.status,
            },
            'conflict_type': self.conflict_type,
            'overlap_start': self.overlap_start.isoformat(),
            'overlap_end': self.overlap_end.isoformat(),
            'overlap_duration_minutes': int(self.overlap_duration.total_seconds() / 60),
        }


@dataclass
class AvailabilityResult:
    is_available: bool
    conflicts: List[BookingConflict] = field(default_factory=list)

    def to_dict(self):
        return {
            'is_available': self.is_available,
            'conflicts': [c.to_dict() for c in self.conflicts],
        }


def find_conflicts(tenant, space, start_time, end_time, exclude_booking_id=None):
    """
    Return bookings holding any part of ``[start_time, end_time)`` on the space.

    Only PENDING and CONFIRMED bookings hold an interval.
    """
    overlapping = Booking.objects.filter(
        tenant=tenant,
        space=space,
        status__in=ACTIVE_BOOKING_STATUSES,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).select_related('user')

    if exclude_booking_id is not None:
        overlapping = overlapping.exclude(pk=exclude_booking_id)

    return [BookingConflict(start_time, end_time, booking)
            for booking in overlapping.order_by('start_time')]


def check_availability(tenant, space, start_time, end_time, exclude_booking_id=None):
    """
    Check whether a space is free for an interval.

    Args:
        tenant: Tenant owning the space
        space: Space instance to check
        start_time: Start of the requested interval (inclusive)
        end_time: End of the requested interval (exclusive)
        exclude_booking_id: Booking to ignore, used when moving a booking

    Returns:
        AvailabilityResult listing every conflicting booking
    """
    conflicts = find_conflicts(tenant, space, start_time, end_time, exclude_booking_id)
    return AvailabilityResult(is_available=not conflicts, conflicts=conflicts)

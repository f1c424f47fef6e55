# booking/states.py
"""
Lifecycle state machines for bookings and access credentials.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.db import models

from .exceptions import InvalidTransition


class BookingStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending Approval'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    CHECKED_IN = 'CHECKED_IN', 'Checked In'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    NO_SHOW = 'NO_SHOW', 'No Show'


class CredentialStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    EXPIRED = 'EXPIRED', 'Expired'
    USED_UP = 'USED_UP', 'Scan Limit Reached'
    REVOKED = 'REVOKED', 'Revoked'


# Statuses that hold a space's interval.
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
})

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.CHECKED_IN: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}

CREDENTIAL_TRANSITIONS = {
    CredentialStatus.ACTIVE: {
        CredentialStatus.EXPIRED,
        CredentialStatus.USED_UP,
        CredentialStatus.REVOKED,
    },
    CredentialStatus.EXPIRED: {CredentialStatus.REVOKED},
    CredentialStatus.USED_UP: {CredentialStatus.REVOKED},
    CredentialStatus.REVOKED: set(),
}


def can_transition(table, current, target):
    """Return True if ``current -> target`` is a legal move in ``table``."""
    return target in table.get(current, set())


def ensure_booking_transition(current, target):
    """Raise InvalidTransition unless a booking may move from current to target."""
    if not can_transition(BOOKING_TRANSITIONS, current, target):
        raise InvalidTransition(
            f"Booking cannot move from {BookingStatus(current).label} "
            f"to {BookingStatus(target).label}.",
            current=current,
            target=target,
        )


def ensure_credential_transition(current, target):
    if not can_transition(CREDENTIAL_TRANSITIONS, current, target):
        raise InvalidTransition(
            f"Credential cannot move from {CredentialStatus(current).label} "
            f"to {CredentialStatus(target).label}.",
            current=current,
            target=target,
        )

"""Tests for booking and credential lifecycles and restriction parsing."""
from datetime import datetime, time

import pytest
from django.core import exceptions as django_exceptions

from booking.exceptions import InvalidTransition, ValidationError
from booking.restrictions import (
    DaySet, TimeWindow, ZonePolicy, parse_string_list,
    validate_day_set, validate_time_window, validate_zone_policy,
)
from booking.states import (
    BOOKING_TRANSITIONS, BookingStatus, CredentialStatus, TERMINAL_BOOKING_STATUSES,
    ensure_booking_transition, ensure_credential_transition,
)


class TestBookingTransitions:

    @pytest.mark.parametrize('current,target', [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW),
        (BookingStatus.CHECKED_IN, BookingStatus.COMPLETED),
    ])
    def test_allowed(self, current, target):
        ensure_booking_transition(current, target)

    @pytest.mark.parametrize('current,target', [
        (BookingStatus.PENDING, BookingStatus.CHECKED_IN),
        (BookingStatus.CHECKED_IN, BookingStatus.CANCELLED),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.NO_SHOW, BookingStatus.CHECKED_IN),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition) as excinfo:
            ensure_booking_transition(current, target)
        assert excinfo.value.status_code == 400
        assert excinfo.value.extra == {'current': current, 'target': target}

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_BOOKING_STATUSES:
            assert BOOKING_TRANSITIONS[status] == set()

    def test_invalid_transition_is_a_validation_error(self):
        assert issubclass(InvalidTransition, ValidationError)


class TestCredentialTransitions:

    def test_active_can_expire_use_up_or_be_revoked(self):
        for target in (CredentialStatus.EXPIRED, CredentialStatus.USED_UP, CredentialStatus.REVOKED):
            ensure_credential_transition(CredentialStatus.ACTIVE, target)

    def test_revoked_is_final(self):
        with pytest.raises(InvalidTransition):
            ensure_credential_transition(CredentialStatus.REVOKED, CredentialStatus.ACTIVE)

    def test_expired_cannot_reactivate(self):
        with pytest.raises(InvalidTransition):
            ensure_credential_transition(CredentialStatus.EXPIRED, CredentialStatus.ACTIVE)


class TestTimeWindow:

    def test_empty_means_unrestricted(self):
        assert TimeWindow.parse(None) is None
        assert TimeWindow.parse({}) is None

    def test_inclusive_bounds(self):
        window = TimeWindow.parse({'start': '09:00', 'end': '17:00'})
        assert window.contains(datetime(2025, 1, 6, 9, 0))
        assert window.contains(datetime(2025, 1, 6, 17, 0))
        assert not window.contains(datetime(2025, 1, 6, 17, 1))
        assert not window.contains(datetime(2025, 1, 6, 8, 59))

    def test_wraps_past_midnight(self):
        window = TimeWindow.parse({'start': '22:00', 'end': '06:00'})
        assert window.contains(datetime(2025, 1, 6, 23, 30))
        assert window.contains(datetime(2025, 1, 7, 5, 0))
        assert not window.contains(datetime(2025, 1, 6, 12, 0))

    @pytest.mark.parametrize('data', [
        {'start': '09:00'},
        {'start': '9am', 'end': '17:00'},
        {'start': '25:00', 'end': '17:00'},
        {'start': '09:00', 'end': '17:00', 'tz': 'UTC'},
        ['09:00', '17:00'],
    ])
    def test_malformed(self, data):
        with pytest.raises(ValidationError):
            TimeWindow.parse(data)

    def test_to_dict(self):
        window = TimeWindow(time(8, 30), time(18, 0))
        assert window.to_dict() == {'start': '08:30', 'end': '18:00'}
        assert str(window) == '08:30-18:00'


class TestDaySet:

    def test_monday_is_zero(self):
        weekdays = DaySet.parse([0, 1, 2, 3, 4])
        assert weekdays.contains(datetime(2025, 1, 6, 12, 0))      # Monday
        assert not weekdays.contains(datetime(2025, 1, 11, 12, 0))  # Saturday

    def test_empty_allows_every_day(self):
        assert DaySet.parse([]).contains(datetime(2025, 1, 12, 12, 0))

    @pytest.mark.parametrize('data', [[7], [-1], ['mon'], [True], 'weekdays'])
    def test_malformed(self, data):
        with pytest.raises(ValidationError):
            DaySet.parse(data)


class TestZonePolicy:

    def test_parse(self):
        policy = ZonePolicy.parse({'allowed_hours': {'start': '07:00', 'end': '22:00'}, 'capacity': 40})
        assert policy.capacity == 40
        assert policy.allowed_hours == TimeWindow(time(7, 0), time(22, 0))
        assert policy.to_dict() == {'allowed_hours': {'start': '07:00', 'end': '22:00'}, 'capacity': 40}

    def test_empty(self):
        assert ZonePolicy.parse({}) == ZonePolicy()

    @pytest.mark.parametrize('data', [{'capacity': 0}, {'capacity': '10'}, {'capacity': True}, {'floor': 2}])
    def test_malformed(self, data):
        with pytest.raises(ValidationError):
            ZonePolicy.parse(data)


class TestFieldValidators:

    def test_validators_raise_django_errors(self):
        with pytest.raises(django_exceptions.ValidationError):
            validate_time_window({'start': 'noon', 'end': '13:00'})
        with pytest.raises(django_exceptions.ValidationError):
            validate_day_set([9])
        with pytest.raises(django_exceptions.ValidationError):
            validate_zone_policy({'capacity': -1})

    def test_valid_values_pass(self):
        validate_time_window({'start': '08:00', 'end': '12:00'})
        validate_day_set([5, 6])
        validate_zone_policy({'capacity': 3})

    def test_string_list(self):
        assert parse_string_list(None, 'roles') == []
        assert parse_string_list(['a', 'b'], 'roles') == ['a', 'b']
        with pytest.raises(ValidationError):
            parse_string_list(['a', ''], 'roles')

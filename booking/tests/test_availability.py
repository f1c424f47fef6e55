"""Test cases for space availability and conflict detection."""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase

from booking.availability import check_availability, intervals_overlap
from booking.states import BookingStatus
from booking.tests.factories import BookingFactory, SpaceFactory, TenantFactory, next_slot


class TestIntervalsOverlap(TestCase):

    def setUp(self):
        self.start = next_slot(days=7)

    def test_adjacent_intervals_do_not_overlap(self):
        end = self.start + timedelta(hours=1)
        self.assertFalse(intervals_overlap(self.start, end, end, end + timedelta(hours=1)))

    def test_contained_interval_overlaps(self):
        end = self.start + timedelta(hours=3)
        inner = self.start + timedelta(hours=1)
        self.assertTrue(intervals_overlap(self.start, end, inner, inner + timedelta(minutes=30)))

    def test_partial_overlap(self):
        end = self.start + timedelta(hours=2)
        later = self.start + timedelta(hours=1)
        self.assertTrue(intervals_overlap(self.start, end, later, later + timedelta(hours=2)))


class TestCheckAvailability(TestCase):
    """Only PENDING and CONFIRMED bookings hold a space's interval."""

    def setUp(self):
        self.tenant = TenantFactory()
        self.space = SpaceFactory(tenant=self.tenant)
        self.start = next_slot(days=7)
        self.end = self.start + timedelta(hours=2)

    def test_free_space(self):
        result = check_availability(self.tenant, self.space, self.start, self.end)
        self.assertTrue(result.is_available)
        self.assertEqual(result.conflicts, [])

    def test_exact_overlap_conflicts(self):
        existing = BookingFactory(space=self.space, start_time=self.start, end_time=self.end)
        result = check_availability(self.tenant, self.space, self.start, self.end)
        self.assertFalse(result.is_available)
        self.assertEqual([c.booking for c in result.conflicts], [existing])

    def test_partial_overlap_reports_overlap_window(self):
        BookingFactory(space=self.space, start_time=self.start, end_time=self.end)
        requested_start = self.start + timedelta(hours=1)
        result = check_availability(self.tenant, self.space, requested_start,
                                    requested_start + timedelta(hours=2))
        conflict = result.conflicts[0]
        self.assertEqual(conflict.overlap_start, requested_start)
        self.assertEqual(conflict.overlap_end, self.end)
        self.assertEqual(conflict.to_dict()['overlap_duration_minutes'], 60)

    def test_adjacent_bookings_do_not_conflict(self):
        BookingFactory(space=self.space, start_time=self.start, end_time=self.end)
        result = check_availability(self.tenant, self.space, self.end, self.end + timedelta(hours=1))
        self.assertTrue(result.is_available)

    def test_pending_booking_holds_interval(self):
        BookingFactory(space=self.space, start_time=self.start, end_time=self.end,
                       status=BookingStatus.PENDING)
        self.assertFalse(check_availability(self.tenant, self.space, self.start, self.end).is_available)

    def test_finished_bookings_release_interval(self):
        for status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW,
                       BookingStatus.CHECKED_IN):
            BookingFactory(space=self.space, start_time=self.start, end_time=self.end, status=status)
        self.assertTrue(check_availability(self.tenant, self.space, self.start, self.end).is_available)

    def test_other_space_does_not_conflict(self):
        BookingFactory(space=SpaceFactory(tenant=self.tenant), start_time=self.start, end_time=self.end)
        self.assertTrue(check_availability(self.tenant, self.space, self.start, self.end).is_available)

    def test_excluded_booking_is_ignored(self):
        existing = BookingFactory(space=self.space, start_time=self.start, end_time=self.end)
        result = check_availability(self.tenant, self.space, self.start, self.end,
                                    exclude_booking_id=existing.pk)
        self.assertTrue(result.is_available)

    def test_to_dict(self):
        existing = BookingFactory(space=self.space, start_time=self.start, end_time=self.end)
        data = check_availability(self.tenant, self.space, self.start, self.end).to_dict()
        self.assertFalse(data['is_available'])
        self.assertEqual(data['conflicts'][0]['booking']['id'], existing.pk)
        self.assertEqual(data['conflicts'][0]['conflict_type'], 'overlap')


class TestSpacePricing(TestCase):

    def test_price_is_prorated(self):
        space = SpaceFactory(hourly_rate=Decimal('30.00'))
        start = next_slot(days=2)
        self.assertEqual(space.price_for(start, start + timedelta(minutes=90)), Decimal('45.00'))

    def test_no_rate_means_no_price(self):
        space = SpaceFactory(hourly_rate=None)
        start = next_slot(days=2)
        self.assertIsNone(space.price_for(start, start + timedelta(hours=1)))

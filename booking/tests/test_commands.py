"""Tests for the check-in sweep management command and scheduler jobs."""
from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from booking import scheduler
from booking.models import Booking
from booking.states import BookingStatus
from booking.tests.factories import BookingFactory, CheckInFactory


class TestProcessCheckinsCommand(TestCase):

    def setUp(self):
        now = timezone.now()
        self.missed = BookingFactory(start_time=now - timedelta(hours=3), end_time=now - timedelta(hours=2))
        self.overdue = CheckInFactory(booking__start_time=now - timedelta(hours=2),
                                      booking__end_time=now - timedelta(hours=1))

    def run_command(self, *args):
        out = StringIO()
        call_command('process_checkins', *args, stdout=out)
        return out.getvalue()

    def test_dry_run_changes_nothing(self):
        output = self.run_command('--dry-run')

        self.assertIn('DRY RUN MODE', output)
        self.assertIn('2 actions pending', output)
        self.missed.refresh_from_db()
        self.assertEqual(self.missed.status, BookingStatus.CONFIRMED)

    def test_processes_both_sweeps(self):
        output = self.run_command()

        self.assertIn('2 actions taken', output)
        self.missed.refresh_from_db()
        self.overdue.refresh_from_db()
        self.assertEqual(self.missed.status, BookingStatus.NO_SHOW)
        self.assertTrue(self.overdue.auto_checked_out)
        self.assertEqual(Booking.objects.get(pk=self.overdue.booking_id).status, BookingStatus.COMPLETED)

    def test_single_action(self):
        output = self.run_command('--action', 'no-shows')

        self.assertIn('1 actions taken', output)
        self.overdue.refresh_from_db()
        self.assertTrue(self.overdue.is_open)


class TestSchedulerJobs(TestCase):

    def test_no_show_job(self):
        now = timezone.now()
        missed = BookingFactory(start_time=now - timedelta(hours=3), end_time=now - timedelta(hours=2))

        scheduler.mark_no_shows()

        missed.refresh_from_db()
        self.assertEqual(missed.status, BookingStatus.NO_SHOW)

    def test_auto_check_out_job(self):
        now = timezone.now()
        check_in = CheckInFactory(booking__start_time=now - timedelta(hours=2),
                                  booking__end_time=now - timedelta(hours=1))

        scheduler.auto_check_out()

        check_in.refresh_from_db()
        self.assertFalse(check_in.is_open)


class TestBookingScheduler(TestCase):

    @patch('booking.scheduler.DjangoJobStore')
    @patch('booking.scheduler.BackgroundScheduler')
    def test_start_registers_sweeps_once(self, scheduler_cls, jobstore_cls):
        booking_scheduler = scheduler.BookingScheduler()

        booking_scheduler.start()
        booking_scheduler.start()

        instance = scheduler_cls.return_value
        instance.start.assert_called_once()
        job_ids = [call.kwargs['id'] for call in instance.add_job.call_args_list]
        self.assertEqual(job_ids, ['booking_no_shows', 'booking_auto_checkout', 'job_cleanup'])

        booking_scheduler.stop()
        instance.shutdown.assert_called_once_with(wait=False)
        self.assertFalse(booking_scheduler.started)

# booking/scheduler.py
"""
Background scheduler for booking sweeps.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from django.db import DatabaseError
from django.utils import timezone
from django_apscheduler.jobstores import DjangoJobStore
from django_apscheduler.models import DjangoJobExecution

from .booking_service import booking_service

logger = logging.getLogger(__name__)


def mark_no_shows():
    """Move confirmed bookings that ended without a check-in to NO_SHOW."""
    try:
        marked = booking_service.mark_no_shows()
    except DatabaseError:
        logger.exception("No-show sweep failed")
        return
    if marked:
        logger.info(f"No-show sweep marked {len(marked)} booking(s)")


def auto_check_out():
    """Close check-ins left open after their booking ended."""
    try:
        closed = booking_service.auto_check_out()
    except DatabaseError:
        logger.exception("Automatic check-out sweep failed")
        return
    if closed:
        logger.info(f"Automatically checked out {len(closed)} check-in(s)")


def cleanup_old_job_executions(max_age_days=7):
    """Clean up old job execution records."""
    cutoff_date = timezone.now() - timedelta(days=max_age_days)
    deleted_count = DjangoJobExecution.objects.filter(run_time__lt=cutoff_date).delete()[0]
    if deleted_count > 0:
        logger.info(f"Cleaned up {deleted_count} old job execution records")


class BookingScheduler:
    """Runs the booking sweeps every few minutes."""

    def __init__(self):
        self.scheduler = None
        self.started = False

    def start(self):
        if self.started:
            return

        self.scheduler = BackgroundScheduler(timezone=str(timezone.get_current_timezone()))
        self.scheduler.add_jobstore(DjangoJobStore(), "default")

        self.scheduler.add_job(
            mark_no_shows,
            'interval',
            minutes=5,
            id='booking_no_shows',
            max_instances=1,
            replace_existing=True,
            misfire_grace_time=300
        )
        self.scheduler.add_job(
            auto_check_out,
            'interval',
            minutes=5,
            id='booking_auto_checkout',
            max_instances=1,
            replace_existing=True,
            misfire_grace_time=300
        )
        self.scheduler.add_job(
            cleanup_old_job_executions,
            'interval',
            hours=24,
            id='job_cleanup',
            max_instances=1,
            replace_existing=True
        )

        self.scheduler.start()
        self.started = True
        logger.info("Booking scheduler started")

    def stop(self):
        if self.scheduler and self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            logger.info("Booking scheduler stopped")


booking_scheduler = BookingScheduler()


def start_scheduler():
    booking_scheduler.start()


def stop_scheduler():
    booking_scheduler.stop()

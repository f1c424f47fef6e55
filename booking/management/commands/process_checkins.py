# booking/management/commands/process_checkins.py
"""
Management command to run the no-show and automatic check-out sweeps.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from booking.booking_service import booking_service


class Command(BaseCommand):
    help = 'Mark no-shows and automatically check out overdue check-ins'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be done without making changes',
        )
        parser.add_argument(
            '--action',
            type=str,
            choices=['no-shows', 'auto-checkout', 'all'],
            default='all',
            help='Specify which action to perform',
        )

    def handle(self, *args, **options):
        start_time = timezone.now()
        dry_run = options['dry_run']
        action = options['action']

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - No changes will be made'))

        total_actions = 0
        if action in ['no-shows', 'all']:
            total_actions += self.process_no_shows(dry_run)
        if action in ['auto-checkout', 'all']:
            total_actions += self.process_auto_checkouts(dry_run)

        processing_time = (timezone.now() - start_time).total_seconds()
        if dry_run:
            self.stdout.write(self.style.SUCCESS(
                f'Dry run completed in {processing_time:.2f} seconds - {total_actions} actions pending'))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'Processing completed in {processing_time:.2f} seconds - {total_actions} actions taken'))

    def process_no_shows(self, dry_run=False):
        self.stdout.write('Processing no-shows...')
        bookings = booking_service.mark_no_shows(dry_run=dry_run)
        verb = 'Would mark' if dry_run else 'Marked'
        for booking in bookings:
            self.stdout.write(f'   {verb} no-show: {booking.title} ({booking.space.name})')
        if not bookings:
            self.stdout.write('   No missed bookings found')
        return len(bookings)

    def process_auto_checkouts(self, dry_run=False):
        self.stdout.write('Processing automatic check-outs...')
        check_ins = booking_service.auto_check_out(dry_run=dry_run)
        now = timezone.now()
        for check_in in check_ins:
            minutes_overdue = int((now - check_in.booking.end_time).total_seconds() // 60)
            prefix = 'Would check out' if dry_run else 'Checked out'
            self.stdout.write(f'   {prefix}: {check_in.booking.title} - {minutes_overdue}min overdue')
        if not check_ins:
            self.stdout.write('   No overdue check-outs found')
        return len(check_ins)

# booking/booking_service.py
"""
Booking lifecycle service for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import logging
import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from dateutil.parser import isoparse
from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from .availability import check_availability
from .exceptions import Conflict, Forbidden, NotFound, ValidationError
from .models import Booking, BookingHistory, CheckIn, OccupancyAction, Space
from .occupancy import occupancy_tracker
from .permissions import can_approve_bookings, is_staff_member
from .states import BookingStatus

logger = logging.getLogger(__name__)

CHECKIN_PAYLOAD = re.compile(r'^booking:(\d+)$')

EDITABLE_FIELDS = ('title', 'description', 'start_time', 'end_time', 'attendees', 'equipment', 'notes')


def _setting(name, default):
    return getattr(settings, name, default)


def parse_datetime_value(value, field):
    """Accept a datetime or an ISO 8601 string; naive values use the current time zone."""
    if isinstance(value, str):
        try:
            value = isoparse(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO 8601 datetime.")
    if not isinstance(value, datetime):
        raise ValidationError(f"{field} is required.")
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class BookingService:
    """Creates bookings and moves them through approval, check-in and check-out."""

    # Validation

    def validate_interval(self, start_time: datetime, end_time: datetime, now: Optional[datetime] = None,
                          allow_past: bool = False):
        if end_time <= start_time:
            raise ValidationError('End time must be after start time')

        duration = end_time - start_time
        min_minutes = _setting('BOOKING_MIN_DURATION_MINUTES', 30)
        max_hours = _setting('BOOKING_MAX_DURATION_HOURS', 8)
        if duration < timedelta(minutes=min_minutes):
            raise ValidationError(f'Minimum booking duration is {min_minutes} minutes')
        if duration > timedelta(hours=max_hours):
            raise ValidationError(f'Maximum booking duration is {max_hours} hours')

        if not allow_past and start_time < (now or timezone.now()):
            raise ValidationError('Cannot create bookings in the past')

    def requires_approval(self, space: Space, start_time: datetime, end_time: datetime,
                          cost: Optional[Decimal]) -> bool:
        if space.requires_approval:
            return True
        if end_time - start_time > timedelta(hours=_setting('BOOKING_APPROVAL_DURATION_HOURS', 4)):
            return True
        threshold = Decimal(str(_setting('BOOKING_APPROVAL_COST_THRESHOLD', 500)))
        return cost is not None and cost > threshold

    def _lock_space(self, tenant, space_id) -> Space:
        """Row lock serialising every booking write on one space.

        SQLite ignores FOR UPDATE; there the IMMEDIATE transaction mode set in
        settings holds the database write lock for the whole block instead.
        """
        try:
            return Space.objects.select_for_update().get(tenant=tenant, pk=space_id)
        except (Space.DoesNotExist, ValueError, TypeError):
            raise NotFound('Space not found')

    def _locked_booking(self, tenant, booking_id) -> Booking:
        try:
            return (Booking.objects.select_for_update()
                    .select_related('space', 'user').get(tenant=tenant, pk=booking_id))
        except (Booking.DoesNotExist, ValueError, TypeError):
            raise NotFound('Booking not found')

    def _record(self, booking, user, action, old_values=None, new_values=None, notes=''):
        BookingHistory.objects.create(
            booking=booking,
            user=user,
            action=action,
            old_values=old_values,
            new_values=new_values,
            notes=notes,
        )

    # Writes

    def create(self, tenant, user, data: Dict) -> Booking:
        """
        Create a booking after validating it and checking availability.

        Args:
            tenant: Tenant of the requesting user
            user: Booking owner
            data: title, space, start_time, end_time and optional
                description, attendees, equipment, notes

        Returns:
            The new Booking, CONFIRMED or PENDING approval
        """
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('Booking title is required')
        space_id = data.get('space')
        if isinstance(space_id, Space):
            space_id = space_id.pk
        if space_id is None:
            raise ValidationError('Space is required')

        start_time = parse_datetime_value(data.get('start_time'), 'start_time')
        end_time = parse_datetime_value(data.get('end_time'), 'end_time')
        self.validate_interval(start_time, end_time)

        with transaction.atomic():
            space = self._lock_space(tenant, space_id)
            if not space.is_active:
                raise ValidationError('Space is not available for booking')

            availability = check_availability(tenant, space, start_time, end_time)
            if not availability.is_available:
                logger.info(f"Booking request by {user.username} for {space} conflicts with "
                            f"{len(availability.conflicts)} booking(s)")
                raise Conflict('Space is not available for the requested time',
                               conflicts=availability.conflicts)

            cost = space.price_for(start_time, end_time)
            status = (BookingStatus.PENDING
                      if self.requires_approval(space, start_time, end_time, cost)
                      else BookingStatus.CONFIRMED)

            booking = Booking.objects.create(
                tenant=tenant,
                space=space,
                user=user,
                title=title,
                description=data.get('description') or '',
                start_time=start_time,
                end_time=end_time,
                status=status,
                cost=cost,
                attendees=list(data.get('attendees') or []),
                equipment=list(data.get('equipment') or []),
                notes=data.get('notes') or '',
            )
            self._record(booking, user, 'created', new_values=booking.snapshot())

        logger.info(f"Booking {booking.pk} created by {user.username} for {space} ({status})")
        return booking

    def update(self, tenant, booking_id, requester, patch: Dict) -> Booking:
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot modify: {', '.join(sorted(unknown))}")

        with transaction.atomic():
            booking = self._locked_booking(tenant, booking_id)
            if booking.user_id != requester.pk:
                raise Forbidden('Only the booking owner can modify this booking')
            if not booking.is_editable:
                raise ValidationError(f'Cannot modify a {booking.get_status_display().lower()} booking')

            old_values = booking.snapshot()

            if 'title' in patch:
                title = (patch['title'] or '').strip()
                if not title:
                    raise ValidationError('Booking title is required')
                booking.title = title
            for name in ('description', 'notes'):
                if name in patch:
                    setattr(booking, name, patch[name] or '')
            for name in ('attendees', 'equipment'):
                if name in patch:
                    setattr(booking, name, list(patch[name] or []))

            if 'start_time' in patch or 'end_time' in patch:
                start_time = parse_datetime_value(patch.get('start_time', booking.start_time), 'start_time')
                end_time = parse_datetime_value(patch.get('end_time', booking.end_time), 'end_time')
                self.validate_interval(start_time, end_time,
                                       allow_past=start_time == booking.start_time)

                space = self._lock_space(tenant, booking.space_id)
                availability = check_availability(tenant, space, start_time, end_time,
                                                  exclude_booking_id=booking.pk)
                if not availability.is_available:
                    raise Conflict('Space is not available for the requested time',
                                   conflicts=availability.conflicts)

                booking.start_time = start_time
                booking.end_time = end_time
                booking.cost = space.price_for(start_time, end_time)

            booking.save()
            self._record(booking, requester, 'updated', old_values, booking.snapshot())

        logger.info(f"Booking {booking.pk} updated by {requester.username}")
        return booking

    def cancel(self, tenant, booking_id, requester, reason: Optional[str] = None) -> Booking:
        """Cancel a booking; its interval is free as soon as this returns."""
        with transaction.atomic():
            booking = self._locked_booking(tenant, booking_id)
            if booking.user_id != requester.pk:
                raise Forbidden('Only the booking owner can cancel this booking')

            old_values = booking.snapshot()
            booking.transition_to(BookingStatus.CANCELLED)
            if reason:
                booking.notes = f"{booking.notes}\nCancelled: {reason}".strip()
            booking.save(update_fields=['status', 'notes', 'updated_at'])
            self._record(booking, requester, 'cancelled', old_values, booking.snapshot(), notes=reason or '')

        logger.info(f"Booking {booking.pk} cancelled by {requester.username}")
        return booking

    def approve(self, tenant, booking_id, approver, decision: str, reason: Optional[str] = None) -> Booking:
        """Approve or reject a PENDING booking."""
        if decision not in ('approve', 'reject'):
            raise ValidationError("Decision must be 'approve' or 'reject'")
        if not can_approve_bookings(approver):
            raise Forbidden('You do not have permission to approve bookings')

        with transaction.atomic():
            booking = self._locked_booking(tenant, booking_id)
            old_values = booking.snapshot()
            target = BookingStatus.CONFIRMED if decision == 'approve' else BookingStatus.CANCELLED
            booking.transition_to(target)
            booking.approved_by = approver
            booking.approved_at = timezone.now()
            booking.approval_reason = reason or ''
            booking.save(update_fields=['status', 'approved_by', 'approved_at',
                                        'approval_reason', 'updated_at'])
            action = 'approved' if decision == 'approve' else 'rejected'
            self._record(booking, approver, action, old_values, booking.snapshot(), notes=reason or '')

        logger.info(f"Booking {booking.pk} {action} by {approver.username}")
        return booking

    # Check-in / check-out

    def _may_act_for(self, booking, actor):
        if booking.user_id == actor.pk or is_staff_member(actor):
            return True
        identities = {str(actor.pk), actor.username}
        if actor.email:
            identities.add(actor.email)
        return any(str(attendee) in identities for attendee in booking.attendees)

    def check_in(self, tenant, booking_id, actor, credential_used: str = '') -> CheckIn:
        now = timezone.now()
        with transaction.atomic():
            booking = self._locked_booking(tenant, booking_id)
            if not self._may_act_for(booking, actor):
                raise Forbidden("You don't have permission to check in to this booking")
            if booking.status != BookingStatus.CONFIRMED:
                # transition_to raises the typed error for every other status
                booking.transition_to(BookingStatus.CHECKED_IN)

            opens = booking.start_time - timedelta(minutes=_setting('CHECKIN_EARLY_MINUTES', 15))
            closes = booking.start_time + timedelta(minutes=_setting('CHECKIN_LATE_MINUTES', 15))
            if now < opens:
                raise ValidationError(f"Check-in opens at {timezone.localtime(opens):%H:%M}")
            if now > closes:
                raise ValidationError('Check-in window has closed')

            old_values = booking.snapshot()
            booking.transition_to(BookingStatus.CHECKED_IN)
            booking.checked_in_at = now
            booking.actual_start_time = now
            booking.save(update_fields=['status', 'checked_in_at', 'actual_start_time', 'updated_at'])

            check_in = CheckIn.objects.create(
                tenant=tenant,
                booking=booking,
                user=actor,
                space=booking.space,
                credential_used=credential_used or '',
                checked_in_at=now,
            )
            occupancy_tracker.update(tenant, OccupancyAction.ENTRY, space=booking.space)
            self._record(booking, actor, 'checked_in', old_values, booking.snapshot())

        logger.info(f"User {actor.username} checked in to booking {booking.pk}")
        return check_in

    def check_in_with_qr(self, tenant, payload: str, actor) -> CheckIn:
        match = CHECKIN_PAYLOAD.match((payload or '').strip())
        if not match:
            raise ValidationError('Invalid check-in code')
        return self.check_in(tenant, int(match.group(1)), actor, credential_used=payload)

    def check_out(self, tenant, check_in_id, actor, actual_end_time: Optional[datetime] = None,
                  notes: str = '') -> CheckIn:
        with transaction.atomic():
            try:
                check_in = (CheckIn.objects.select_for_update()
                            .select_related('booking').get(tenant=tenant, pk=check_in_id))
            except (CheckIn.DoesNotExist, ValueError, TypeError):
                raise NotFound('Check-in not found')

            if check_in.user_id != actor.pk and not self._may_act_for(check_in.booking, actor):
                raise Forbidden("You don't have permission to check out of this booking")
            if not check_in.is_open:
                raise ValidationError('Already checked out')

            self._close(check_in, actor, actual_end_time, notes)

        logger.info(f"User {actor.username} checked out of booking {check_in.booking_id}")
        return check_in

    def _close(self, check_in, actor, actual_end_time=None, notes='', auto=False):
        now = timezone.now()
        booking = Booking.objects.select_for_update().get(pk=check_in.booking_id)
        old_values = booking.snapshot()

        booking.transition_to(BookingStatus.COMPLETED)
        booking.checked_out_at = now
        booking.actual_end_time = actual_end_time or now
        booking.save(update_fields=['status', 'checked_out_at', 'actual_end_time', 'updated_at'])

        check_in.checked_out_at = now
        check_in.actual_end_time = booking.actual_end_time
        check_in.auto_checked_out = auto
        if notes:
            check_in.notes = notes
        check_in.save(update_fields=['checked_out_at', 'actual_end_time', 'auto_checked_out', 'notes'])

        occupancy_tracker.update(check_in.tenant, OccupancyAction.EXIT, space=booking.space)
        self._record(booking, actor, 'auto_checked_out' if auto else 'checked_out',
                     old_values, booking.snapshot(), notes=notes)

    # Sweeps

    def mark_no_shows(self, now: Optional[datetime] = None, dry_run: bool = False) -> List[Booking]:
        """Move CONFIRMED bookings that ended without a check-in to NO_SHOW."""
        now = now or timezone.now()
        candidates = list(Booking.objects.filter(
            status=BookingStatus.CONFIRMED,
            end_time__lt=now,
            checked_in_at__isnull=True,
        ).select_related('space', 'user'))

        if dry_run:
            return candidates

        marked = []
        for candidate in candidates:
            with transaction.atomic():
                booking = Booking.objects.select_for_update().get(pk=candidate.pk)
                if booking.status != BookingStatus.CONFIRMED or booking.checked_in_at:
                    continue
                old_values = booking.snapshot()
                booking.transition_to(BookingStatus.NO_SHOW)
                booking.save(update_fields=['status', 'updated_at'])
                self._record(booking, None, 'no_show', old_values, booking.snapshot())
            marked.append(booking)
            logger.info(f"Booking {booking.pk} marked as no-show")
        return marked

    def auto_check_out(self, now: Optional[datetime] = None, dry_run: bool = False) -> List[CheckIn]:
        """Close check-ins whose booking ended more than the grace period ago."""
        now = now or timezone.now()
        cutoff = now - timedelta(minutes=_setting('AUTO_CHECKOUT_GRACE_MINUTES', 15))
        candidates = list(CheckIn.objects.filter(
            checked_out_at__isnull=True,
            booking__end_time__lt=cutoff,
        ).select_related('booking', 'tenant'))

        if dry_run:
            return candidates

        closed = []
        for candidate in candidates:
            with transaction.atomic():
                check_in = CheckIn.objects.select_for_update().select_related('tenant').get(pk=candidate.pk)
                if not check_in.is_open:
                    continue
                self._close(check_in, None, actual_end_time=candidate.booking.end_time,
                            notes='Automatically checked out', auto=True)
            closed.append(check_in)
            logger.info(f"Check-in {check_in.pk} automatically checked out")
        return closed

    # Reads

    def get(self, tenant, booking_id) -> Booking:
        try:
            return Booking.objects.select_related('space', 'user', 'approved_by').get(
                tenant=tenant, pk=booking_id)
        except (Booking.DoesNotExist, ValueError, TypeError):
            raise NotFound('Booking not found')

    def queryset(self, tenant, filters: Optional[Dict] = None):
        filters = filters or {}
        bookings = Booking.objects.filter(tenant=tenant).select_related('space', 'user')

        if filters.get('space'):
            bookings = bookings.filter(space_id=filters['space'])
        if filters.get('user'):
            bookings = bookings.filter(user_id=filters['user'])

        statuses = filters.get('status')
        if statuses:
            if isinstance(statuses, str):
                statuses = [s.strip() for s in statuses.split(',') if s.strip()]
            invalid = set(statuses) - set(BookingStatus.values)
            if invalid:
                raise ValidationError(f"Unknown status: {', '.join(sorted(invalid))}")
            bookings = bookings.filter(status__in=statuses)

        if filters.get('start_date'):
            bookings = bookings.filter(end_time__gt=parse_datetime_value(filters['start_date'], 'start_date'))
        if filters.get('end_date'):
            bookings = bookings.filter(start_time__lt=parse_datetime_value(filters['end_date'], 'end_date'))
        if filters.get('upcoming'):
            bookings = bookings.filter(start_time__gte=timezone.now())

        return bookings.order_by('start_time')

    def list(self, tenant, filters: Optional[Dict] = None, page: int = 1, page_size: int = 20) -> Dict:
        """One page of bookings ordered by start time."""
        if page_size < 1 or page_size > 100:
            raise ValidationError('page_size must be between 1 and 100')
        paginator = Paginator(self.queryset(tenant, filters), page_size)
        current = paginator.get_page(page)
        return {
            'results': list(current.object_list),
            'pagination': {
                'page': current.number,
                'page_size': page_size,
                'total': paginator.count,
                'total_pages': paginator.num_pages,
            },
        }

    def statistics(self, tenant, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict:
        bookings = Booking.objects.filter(tenant=tenant)
        if start:
            bookings = bookings.filter(start_time__gte=start)
        if end:
            bookings = bookings.filter(start_time__lt=end)

        by_status = {status: 0 for status in BookingStatus.values}
        for row in bookings.values('status').annotate(count=Count('id')):
            by_status[row['status']] = row['count']

        revenue = (bookings.exclude(status=BookingStatus.CANCELLED)
                   .aggregate(total=Sum('cost'))['total']) or Decimal('0')

        intervals = list(bookings.values_list('start_time', 'end_time'))
        average_hours = 0.0
        if intervals:
            total_seconds = sum((e - s).total_seconds() for s, e in intervals)
            average_hours = round(total_seconds / len(intervals) / 3600, 2)

        popular = (bookings.values('space_id', 'space__name')
                   .annotate(bookings=Count('id'))
                   .order_by('-bookings', 'space__name')[:5])

        return {
            'total_bookings': len(intervals),
            'confirmed': by_status[BookingStatus.CONFIRMED],
            'cancelled': by_status[BookingStatus.CANCELLED],
            'total_revenue': str(revenue),
            'average_duration_hours': average_hours,
            'popular_spaces': [
                {'space_id': row['space_id'], 'name': row['space__name'], 'bookings': row['bookings']}
                for row in popular
            ],
            'bookings_by_status': by_status,
        }


booking_service = BookingService()

# booking/models.py
"""
Core models for the Coworkspace booking and access engine.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from decimal import Decimal, ROUND_HALF_UP

from django.contrib.auth.models import User
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .restrictions import (
    DaySet, TimeWindow, ZonePolicy,
    validate_day_set, validate_string_list, validate_time_window, validate_zone_policy,
)
from .states import (
    BookingStatus, CredentialStatus,
    ensure_booking_transition, ensure_credential_transition,
)


class Tenant(models.Model):
    """A coworking operator. Managed outside this app."""
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_tenant'
        ordering = ['name']

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    """Tenant membership and access attributes of a user."""
    ROLE_CHOICES = [
        ('super_admin', 'Super Admin'),
        ('cowork_admin', 'Cowork Admin'),
        ('client_admin', 'Client Admin'),
        ('cowork_user', 'Cowork Staff'),
        ('end_user', 'Member'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='userprofile')
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='profiles')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='end_user')
    membership_type = models.CharField(max_length=50, blank=True)
    plan_type = models.CharField(max_length=50, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'booking_userprofile'

    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} ({self.role})"


class Visitor(models.Model):
    """Guest who may receive a credential. Visitor records are managed elsewhere."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='visitors')
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    company = models.CharField(max_length=200, blank=True)
    is_blacklisted = models.BooleanField(default=False)
    blacklist_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_visitor'
        ordering = ['name']

    def __str__(self):
        return self.name


class Space(models.Model):
    """Bookable physical unit (room, desk, office)."""
    SPACE_TYPES = [
        ('MEETING_ROOM', 'Meeting Room'),
        ('CONFERENCE_ROOM', 'Conference Room'),
        ('HOT_DESK', 'Hot Desk'),
        ('DEDICATED_DESK', 'Dedicated Desk'),
        ('PRIVATE_OFFICE', 'Private Office'),
        ('EVENT_SPACE', 'Event Space'),
        ('PHONE_BOOTH', 'Phone Booth'),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='spaces')
    name = models.CharField(max_length=200)
    space_type = models.CharField(max_length=20, choices=SPACE_TYPES, default='MEETING_ROOM')
    capacity = models.PositiveIntegerField(default=1)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    requires_approval = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'booking_space'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.get_space_type_display()})"

    def price_for(self, start_time, end_time):
        """Cost of occupying the space for the interval, or None without a rate."""
        if not self.hourly_rate:
            return None
        seconds = Decimal((end_time - start_time).total_seconds())
        cost = self.hourly_rate * seconds / Decimal(3600)
        return cost.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class Booking(models.Model):
    """Reservation of one space by one user for [start_time, end_time)."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='bookings')
    space = models.ForeignKey(Space, on_delete=models.CASCADE, related_name='bookings')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bookings')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.CONFIRMED)
    cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    attendees = models.JSONField(default=list, blank=True)
    equipment = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)

    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_bookings')
    approved_at = models.DateTimeField(null=True, blank=True)
    approval_reason = models.TextField(blank=True)

    # Check-in/Check-out fields
    checked_in_at = models.DateTimeField(null=True, blank=True, help_text="When the booking was checked in")
    checked_out_at = models.DateTimeField(null=True, blank=True, help_text="When the booking was checked out")
    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'booking_booking'
        ordering = ['start_time']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F('start_time')),
                name='booking_end_after_start'
            )
        ]
        indexes = [
            models.Index(fields=['tenant', 'space', 'status', 'start_time'], name='booking_boo_tenant__a1c0e4_idx'),
            models.Index(fields=['tenant', 'user', 'start_time'], name='booking_boo_tenant__5d2b71_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {self.space.name} ({self.start_time.strftime('%Y-%m-%d %H:%M')})"

    @property
    def duration(self):
        """Return booking duration as timedelta."""
        return self.end_time - self.start_time

    @property
    def duration_hours(self):
        return self.duration.total_seconds() / 3600

    @property
    def is_checked_in(self):
        return self.status == BookingStatus.CHECKED_IN

    @property
    def is_editable(self):
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    @property
    def checkin_payload(self):
        """Text encoded in the booking's check-in QR code."""
        return f"booking:{self.pk}"

    def transition_to(self, status):
        """Move to ``status`` or raise InvalidTransition. Does not save."""
        ensure_booking_transition(self.status, status)
        self.status = status

    def snapshot(self):
        """Field values recorded in the booking history."""
        return {
            'title': self.title,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'status': self.status,
            'cost': str(self.cost) if self.cost is not None else None,
        }


class CheckIn(models.Model):
    """A physical check-in to a booked space; closed by check-out."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='checkins')
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='checkins')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='checkins', help_text="User who performed the check-in")
    space = models.ForeignKey(Space, on_delete=models.CASCADE, related_name='checkins')
    credential_used = models.CharField(max_length=512, blank=True)
    checked_in_at = models.DateTimeField(default=timezone.now)
    checked_out_at = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)
    auto_checked_out = models.BooleanField(default=False)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'booking_checkin'
        ordering = ['-checked_in_at']
        indexes = [
            models.Index(fields=['tenant', 'booking'], name='booking_che_tenant__3f9a12_idx'),
            models.Index(fields=['tenant', 'checked_out_at'], name='booking_che_tenant__8e4c55_idx'),
        ]

    def __str__(self):
        return f"Check-in to {self.booking.title} by {self.user.username}"

    @property
    def is_open(self):
        return self.checked_out_at is None

    @property
    def duration(self):
        if self.checked_out_at:
            return self.checked_out_at - self.checked_in_at
        return None


class BookingHistory(models.Model):
    """Audit trail for booking changes."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='history')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=50)
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'booking_bookinghistory'
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.action} - booking {self.booking_id}"


class AccessZone(models.Model):
    """Physical-access region governed by access rules."""
    ZONE_TYPES = [
        ('ENTRANCE', 'Entrance'),
        ('COMMON_AREA', 'Common Area'),
        ('MEETING_ROOM', 'Meeting Room'),
        ('OFFICE', 'Office'),
        ('RESTRICTED', 'Restricted Area'),
        ('PARKING', 'Parking'),
        ('OTHER', 'Other'),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='access_zones')
    name = models.CharField(max_length=200)
    zone_type = models.CharField(max_length=20, choices=ZONE_TYPES, default='COMMON_AREA')
    description = models.TextField(blank=True)
    restrictions = models.JSONField(
        default=dict, blank=True, validators=[validate_zone_policy],
        help_text='{"allowed_hours": {"start": "HH:MM", "end": "HH:MM"}, "capacity": N}'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_accesszone'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def policy(self):
        return ZonePolicy.parse(self.restrictions)


class AccessRule(models.Model):
    """Prioritised access policy, optionally attached to a zone."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='access_rules')
    zone = models.ForeignKey(AccessZone, on_delete=models.CASCADE, null=True, blank=True, related_name='rules')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Empty lists place no restriction on that attribute
    membership_types = models.JSONField(default=list, blank=True, validators=[validate_string_list])
    plan_types = models.JSONField(default=list, blank=True, validators=[validate_string_list])
    user_roles = models.JSONField(default=list, blank=True, validators=[validate_string_list])
    time_restrictions = models.JSONField(default=dict, blank=True, validators=[validate_time_window])
    day_restrictions = models.JSONField(
        default=list, blank=True, validators=[validate_day_set],
        help_text="Allowed weekdays, 0 = Monday ... 6 = Sunday"
    )

    max_occupancy = models.PositiveIntegerField(null=True, blank=True)
    requires_approval = models.BooleanField(default=False)
    priority = models.IntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_to = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'booking_accessrule'
        ordering = ['-priority', 'created_at']

    def __str__(self):
        return f"{self.name} (priority {self.priority})"

    @property
    def time_window(self):
        return TimeWindow.parse(self.time_restrictions)

    @property
    def day_set(self):
        return DaySet.parse(self.day_restrictions)


class QRCodeType(models.TextChoices):
    MEMBER = 'MEMBER', 'Member'
    VISITOR = 'VISITOR', 'Visitor'
    TEMPORARY = 'TEMPORARY', 'Temporary'
    SERVICE = 'SERVICE', 'Service'
    EMERGENCY = 'EMERGENCY', 'Emergency'
    ADMIN = 'ADMIN', 'Admin'


class QRCode(models.Model):
    """Access credential. Revocation is a status change; rows are never deleted."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='qr_codes')
    code = models.CharField(max_length=512, unique=True)
    qr_type = models.CharField(max_length=20, choices=QRCodeType.choices)
    user = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='qr_codes')
    visitor = models.ForeignKey(Visitor, on_delete=models.PROTECT, null=True, blank=True, related_name='qr_codes')
    permissions = models.JSONField(default=list, blank=True, validators=[validate_string_list])
    valid_from = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()
    max_scans = models.PositiveIntegerField(null=True, blank=True, help_text="Empty for unlimited scans")
    scan_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=CredentialStatus.choices, default=CredentialStatus.ACTIVE)
    issued_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='issued_qr_codes')
    revoked_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='revoked_qr_codes')
    revoked_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_qrcode'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(Q(user__isnull=False, visitor__isnull=True) |
                           Q(user__isnull=True, visitor__isnull=False)),
                name='qrcode_single_subject'
            )
        ]
        indexes = [
            models.Index(fields=['tenant', 'user', 'status'], name='booking_qrc_tenant__6b1d20_idx'),
            models.Index(fields=['tenant', 'visitor', 'status'], name='booking_qrc_tenant__c7e803_idx'),
        ]

    def __str__(self):
        return f"{self.get_qr_type_display()} credential for {self.subject_display}"

    @property
    def subject_display(self):
        if self.user_id:
            return self.user.get_full_name() or self.user.username
        return self.visitor.name if self.visitor_id else 'unknown'

    @property
    def is_revoked(self):
        return self.status == CredentialStatus.REVOKED

    def is_expired(self, now=None):
        return (now or timezone.now()) > self.expires_at

    def transition_to(self, status):
        ensure_credential_transition(self.status, status)
        self.status = status


class ScanResult(models.TextChoices):
    SUCCESS = 'SUCCESS', 'Access Granted'
    DENIED = 'DENIED', 'Denied'
    EXPIRED = 'EXPIRED', 'Expired'
    INVALID = 'INVALID', 'Invalid'
    RESTRICTED = 'RESTRICTED', 'Restricted'
    CAPACITY_FULL = 'CAPACITY_FULL', 'Capacity Full'


class QRCodeScan(models.Model):
    """One scan attempt. Append-only."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='qr_scans')
    qr_code = models.ForeignKey(QRCode, on_delete=models.PROTECT, null=True, blank=True, related_name='scans')
    scanned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='qr_scans')
    location = models.ForeignKey(AccessZone, on_delete=models.SET_NULL, null=True, blank=True, related_name='scans')
    device_info = models.JSONField(default=dict, blank=True)
    result = models.CharField(max_length=20, choices=ScanResult.choices)
    granted = models.BooleanField(default=False)
    reason = models.CharField(max_length=255, blank=True)
    scanned_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'booking_qrcodescan'
        ordering = ['-scanned_at']
        indexes = [
            models.Index(fields=['tenant', 'qr_code', 'scanned_at'], name='booking_qrc_tenant__f2a9b4_idx'),
        ]

    def __str__(self):
        return f"{self.get_result_display()} at {self.scanned_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Scan records are immutable")
        super().save(*args, **kwargs)


class OccupancyAction(models.TextChoices):
    ENTRY = 'ENTRY', 'Entry'
    EXIT = 'EXIT', 'Exit'


class OccupancyRecord(models.Model):
    """Live head count for one zone or one space."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='occupancy_records')
    zone = models.ForeignKey(AccessZone, on_delete=models.CASCADE, null=True, blank=True, related_name='occupancy_records')
    space = models.ForeignKey(Space, on_delete=models.CASCADE, null=True, blank=True, related_name='occupancy_records')
    current_count = models.PositiveIntegerField(default=0)
    peak_count = models.PositiveIntegerField(default=0)
    last_entry = models.DateTimeField(null=True, blank=True)
    last_exit = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'booking_occupancyrecord'
        constraints = [
            models.CheckConstraint(
                condition=(Q(zone__isnull=False, space__isnull=True) |
                           Q(zone__isnull=True, space__isnull=False)),
                name='occupancy_single_target'
            ),
            models.UniqueConstraint(
                fields=['tenant', 'zone'], condition=Q(zone__isnull=False),
                name='occupancy_unique_zone'
            ),
            models.UniqueConstraint(
                fields=['tenant', 'space'], condition=Q(space__isnull=False),
                name='occupancy_unique_space'
            ),
        ]

    def __str__(self):
        target = self.zone or self.space
        return f"{target}: {self.current_count}"


class ViolationType(models.TextChoices):
    UNAUTHORIZED_ACCESS = 'UNAUTHORIZED_ACCESS', 'Unauthorized Access'
    CAPACITY_EXCEEDED = 'CAPACITY_EXCEEDED', 'Capacity Exceeded'
    EXPIRED_CREDENTIAL = 'EXPIRED_CREDENTIAL', 'Expired Credential'
    INVALID_CREDENTIALS = 'INVALID_CREDENTIALS', 'Invalid Credentials'
    SCAN_LIMIT_EXCEEDED = 'SCAN_LIMIT_EXCEEDED', 'Scan Limit Exceeded'
    REVOKED_CREDENTIAL = 'REVOKED_CREDENTIAL', 'Revoked Credential'
    BLACKLISTED = 'BLACKLISTED', 'Blacklisted'
    RULE_MISMATCH = 'RULE_MISMATCH', 'No Matching Rule'


class ViolationSeverity(models.TextChoices):
    LOW = 'LOW', 'Low'
    MEDIUM = 'MEDIUM', 'Medium'
    HIGH = 'HIGH', 'High'
    CRITICAL = 'CRITICAL', 'Critical'


class AccessViolation(models.Model):
    """Recorded breach of an access or capacity rule."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='access_violations')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='access_violations')
    visitor = models.ForeignKey(Visitor, on_delete=models.SET_NULL, null=True, blank=True, related_name='access_violations')
    rule = models.ForeignKey(AccessRule, on_delete=models.SET_NULL, null=True, blank=True, related_name='violations')
    zone = models.ForeignKey(AccessZone, on_delete=models.SET_NULL, null=True, blank=True, related_name='violations')
    qr_code = models.ForeignKey(QRCode, on_delete=models.SET_NULL, null=True, blank=True, related_name='violations')
    violation_type = models.CharField(max_length=30, choices=ViolationType.choices)
    severity = models.CharField(max_length=10, choices=ViolationSeverity.choices, default=ViolationSeverity.LOW)
    description = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    is_resolved = models.BooleanField(default=False)
    resolved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='resolved_violations')
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'booking_accessviolation'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=~Q(user__isnull=False, visitor__isnull=False),
                name='violation_single_subject'
            )
        ]
        indexes = [
            models.Index(fields=['tenant', 'is_resolved', 'created_at'], name='booking_acc_tenant__9d7e61_idx'),
        ]

    def __str__(self):
        return f"{self.get_violation_type_display()} ({self.get_severity_display()})"

# booking/migrations/0001_initial.py
"""
Initial migration for Coworkspace booking and access models.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import booking.restrictions


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('slug', models.SlugField(max_length=100, unique=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'booking_tenant',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('super_admin', 'Super Admin'), ('cowork_admin', 'Cowork Admin'), ('client_admin', 'Client Admin'), ('cowork_user', 'Cowork Staff'), ('end_user', 'Member')], default='end_user', max_length=20)),
                ('membership_type', models.CharField(blank=True, max_length=50)),
                ('plan_type', models.CharField(blank=True, max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='profiles', to='booking.tenant')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='userprofile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'booking_userprofile',
            },
        ),
        migrations.CreateModel(
            name='Visitor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('company', models.CharField(blank=True, max_length=200)),
                ('is_blacklisted', models.BooleanField(default=False)),
                ('blacklist_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='visitors', to='booking.tenant')),
            ],
            options={
                'db_table': 'booking_visitor',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Space',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('space_type', models.CharField(choices=[('MEETING_ROOM', 'Meeting Room'), ('CONFERENCE_ROOM', 'Conference Room'), ('HOT_DESK', 'Hot Desk'), ('DEDICATED_DESK', 'Dedicated Desk'), ('PRIVATE_OFFICE', 'Private Office'), ('EVENT_SPACE', 'Event Space'), ('PHONE_BOOTH', 'Phone Booth')], default='MEETING_ROOM', max_length=20)),
                ('capacity', models.PositiveIntegerField(default=1)),
                ('hourly_rate', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('requires_approval', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='spaces', to='booking.tenant')),
            ],
            options={
                'db_table': 'booking_space',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('PENDING', 'Pending Approval'), ('CONFIRMED', 'Confirmed'), ('CHECKED_IN', 'Checked In'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled'), ('NO_SHOW', 'No Show')], default='CONFIRMED', max_length=20)),
                ('cost', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('attendees', models.JSONField(blank=True, default=list)),
                ('equipment', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approval_reason', models.TextField(blank=True)),
                ('checked_in_at', models.DateTimeField(blank=True, help_text='When the booking was checked in', null=True)),
                ('checked_out_at', models.DateTimeField(blank=True, help_text='When the booking was checked out', null=True)),
                ('actual_start_time', models.DateTimeField(blank=True, null=True)),
                ('actual_end_time', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_bookings', to=settings.AUTH_USER_MODEL)),
                ('space', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to='booking.space')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to='booking.tenant')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'booking_booking',
                'ordering': ['start_time'],
                'indexes': [
                    models.Index(fields=['tenant', 'space', 'status', 'start_time'], name='booking_boo_tenant__a1c0e4_idx'),
                    models.Index(fields=['tenant', 'user', 'start_time'], name='booking_boo_tenant__5d2b71_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='booking_end_after_start'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CheckIn',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('credential_used', models.CharField(blank=True, max_length=512)),
                ('checked_in_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('checked_out_at', models.DateTimeField(blank=True, null=True)),
                ('actual_end_time', models.DateTimeField(blank=True, null=True)),
                ('auto_checked_out', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='checkins', to='booking.booking')),
                ('space', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='checkins', to='booking.space')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='checkins', to='booking.tenant')),
                ('user', models.ForeignKey(help_text='User who performed the check-in', on_delete=django.db.models.deletion.CASCADE, related_name='checkins', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'booking_checkin',
                'ordering': ['-checked_in_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'booking'], name='booking_che_tenant__3f9a12_idx'),
                    models.Index(fields=['tenant', 'checked_out_at'], name='booking_che_tenant__8e4c55_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=50)),
                ('old_values', models.JSONField(blank=True, null=True)),
                ('new_values', models.JSONField(blank=True, null=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('notes', models.TextField(blank=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='booking.booking')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'booking_bookinghistory',
                'ordering': ['-timestamp'],
            },
        ),
        migrations.CreateModel(
            name='AccessZone',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('zone_type', models.CharField(choices=[('ENTRANCE', 'Entrance'), ('COMMON_AREA', 'Common Area'), ('MEETING_ROOM', 'Meeting Room'), ('OFFICE', 'Office'), ('RESTRICTED', 'Restricted Area'), ('PARKING', 'Parking'), ('OTHER', 'Other')], default='COMMON_AREA', max_length=20)),
                ('description', models.TextField(blank=True)),
                ('restrictions', models.JSONField(blank=True, default=dict, help_text='{"allowed_hours": {"start": "HH:MM", "end": "HH:MM"}, "capacity": N}', validators=[booking.restrictions.validate_zone_policy])),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_zones', to='booking.tenant')),
            ],
            options={
                'db_table': 'booking_accesszone',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='AccessRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('membership_types', models.JSONField(blank=True, default=list, validators=[booking.restrictions.validate_string_list])),
                ('plan_types', models.JSONField(blank=True, default=list, validators=[booking.restrictions.validate_string_list])),
                ('user_roles', models.JSONField(blank=True, default=list, validators=[booking.restrictions.validate_string_list])),
                ('time_restrictions', models.JSONField(blank=True, default=dict, validators=[booking.restrictions.validate_time_window])),
                ('day_restrictions', models.JSONField(blank=True, default=list, help_text='Allowed weekdays, 0 = Monday ... 6 = Sunday', validators=[booking.restrictions.validate_day_set])),
                ('max_occupancy', models.PositiveIntegerField(blank=True, null=True)),
                ('requires_approval', models.BooleanField(default=False)),
                ('priority', models.IntegerField(default=0)),
                ('valid_from', models.DateTimeField(blank=True, null=True)),
                ('valid_to', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_rules', to='booking.tenant')),
                ('zone', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='rules', to='booking.accesszone')),
            ],
            options={
                'db_table': 'booking_accessrule',
                'ordering': ['-priority', 'created_at'],
            },
        ),
        migrations.CreateModel(
            name='QRCode',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=512, unique=True)),
                ('qr_type', models.CharField(choices=[('MEMBER', 'Member'), ('VISITOR', 'Visitor'), ('TEMPORARY', 'Temporary'), ('SERVICE', 'Service'), ('EMERGENCY', 'Emergency'), ('ADMIN', 'Admin')], max_length=20)),
                ('permissions', models.JSONField(blank=True, default=list, validators=[booking.restrictions.validate_string_list])),
                ('valid_from', models.DateTimeField(default=django.utils.timezone.now)),
                ('expires_at', models.DateTimeField()),
                ('max_scans', models.PositiveIntegerField(blank=True, help_text='Empty for unlimited scans', null=True)),
                ('scan_count', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('EXPIRED', 'Expired'), ('USED_UP', 'Scan Limit Reached'), ('REVOKED', 'Revoked')], default='ACTIVE', max_length=20)),
                ('revoked_at', models.DateTimeField(blank=True, null=True)),
                ('last_used_at', models.DateTimeField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('issued_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_qr_codes', to=settings.AUTH_USER_MODEL)),
                ('revoked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='revoked_qr_codes', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='qr_codes', to='booking.tenant')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='qr_codes', to=settings.AUTH_USER_MODEL)),
                ('visitor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='qr_codes', to='booking.visitor')),
            ],
            options={
                'db_table': 'booking_qrcode',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'user', 'status'], name='booking_qrc_tenant__6b1d20_idx'),
                    models.Index(fields=['tenant', 'visitor', 'status'], name='booking_qrc_tenant__c7e803_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('user__isnull', False), ('visitor__isnull', True)), models.Q(('user__isnull', True), ('visitor__isnull', False)), _connector='OR'), name='qrcode_single_subject'),
                ],
            },
        ),
        migrations.CreateModel(
            name='QRCodeScan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_info', models.JSONField(blank=True, default=dict)),
                ('result', models.CharField(choices=[('SUCCESS', 'Access Granted'), ('DENIED', 'Denied'), ('EXPIRED', 'Expired'), ('INVALID', 'Invalid'), ('RESTRICTED', 'Restricted'), ('CAPACITY_FULL', 'Capacity Full')], max_length=20)),
                ('granted', models.BooleanField(default=False)),
                ('reason', models.CharField(blank=True, max_length=255)),
                ('scanned_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='scans', to='booking.accesszone')),
                ('qr_code', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='scans', to='booking.qrcode')),
                ('scanned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='qr_scans', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='qr_scans', to='booking.tenant')),
            ],
            options={
                'db_table': 'booking_qrcodescan',
                'ordering': ['-scanned_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'qr_code', 'scanned_at'], name='booking_qrc_tenant__f2a9b4_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OccupancyRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('current_count', models.PositiveIntegerField(default=0)),
                ('peak_count', models.PositiveIntegerField(default=0)),
                ('last_entry', models.DateTimeField(blank=True, null=True)),
                ('last_exit', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('space', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='occupancy_records', to='booking.space')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='occupancy_records', to='booking.tenant')),
                ('zone', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='occupancy_records', to='booking.accesszone')),
            ],
            options={
                'db_table': 'booking_occupancyrecord',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('space__isnull', True), ('zone__isnull', False)), models.Q(('space__isnull', False), ('zone__isnull', True)), _connector='OR'), name='occupancy_single_target'),
                    models.UniqueConstraint(condition=models.Q(('zone__isnull', False)), fields=('tenant', 'zone'), name='occupancy_unique_zone'),
                    models.UniqueConstraint(condition=models.Q(('space__isnull', False)), fields=('tenant', 'space'), name='occupancy_unique_space'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AccessViolation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('violation_type', models.CharField(choices=[('UNAUTHORIZED_ACCESS', 'Unauthorized Access'), ('CAPACITY_EXCEEDED', 'Capacity Exceeded'), ('EXPIRED_CREDENTIAL', 'Expired Credential'), ('INVALID_CREDENTIALS', 'Invalid Credentials'), ('SCAN_LIMIT_EXCEEDED', 'Scan Limit Exceeded'), ('REVOKED_CREDENTIAL', 'Revoked Credential'), ('BLACKLISTED', 'Blacklisted'), ('RULE_MISMATCH', 'No Matching Rule')], max_length=30)),
                ('severity', models.CharField(choices=[('LOW', 'Low'), ('MEDIUM', 'Medium'), ('HIGH', 'High'), ('CRITICAL', 'Critical')], default='LOW', max_length=10)),
                ('description', models.TextField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('is_resolved', models.BooleanField(default=False)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('qr_code', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='violations', to='booking.qrcode')),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resolved_violations', to=settings.AUTH_USER_MODEL)),
                ('rule', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='violations', to='booking.accessrule')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_violations', to='booking.tenant')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='access_violations', to=settings.AUTH_USER_MODEL)),
                ('visitor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='access_violations', to='booking.visitor')),
                ('zone', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='violations', to='booking.accesszone')),
            ],
            options={
                'db_table': 'booking_accessviolation',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'is_resolved', 'created_at'], name='booking_acc_tenant__9d7e61_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('user__isnull', False), ('visitor__isnull', False), _negated=True), name='violation_single_subject'),
                ],
            },
        ),
    ]

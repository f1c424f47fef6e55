# booking/admin.py
"""
Django admin configuration for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from .models import (
    AccessRule, AccessViolation, AccessZone, Booking, BookingHistory, CheckIn,
    OccupancyRecord, QRCode, QRCodeScan, Space, Tenant, UserProfile, Visitor,
)


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'


class UserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'is_active')
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Visitor)
class VisitorAdmin(admin.ModelAdmin):
    list_display = ('name', 'company', 'tenant', 'is_blacklisted')
    list_filter = ('tenant', 'is_blacklisted')
    search_fields = ('name', 'email', 'company')


@admin.register(Space)
class SpaceAdmin(admin.ModelAdmin):
    list_display = ('name', 'space_type', 'tenant', 'capacity', 'hourly_rate', 'requires_approval', 'is_active')
    list_filter = ('tenant', 'space_type', 'is_active')
    search_fields = ('name',)


class BookingHistoryInline(admin.TabularInline):
    model = BookingHistory
    extra = 0
    readonly_fields = ('user', 'action', 'old_values', 'new_values', 'notes', 'timestamp')
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('title', 'space', 'user', 'start_time', 'end_time', 'status')
    list_filter = ('tenant', 'status', 'space')
    search_fields = ('title', 'user__username', 'space__name')
    date_hierarchy = 'start_time'
    # Status changes go through the booking service
    readonly_fields = ('status', 'approved_by', 'approved_at', 'checked_in_at', 'checked_out_at',
                       'actual_start_time', 'actual_end_time', 'created_at', 'updated_at')
    inlines = (BookingHistoryInline,)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CheckIn)
class CheckInAdmin(admin.ModelAdmin):
    list_display = ('booking', 'user', 'space', 'checked_in_at', 'checked_out_at', 'auto_checked_out')
    list_filter = ('tenant', 'auto_checked_out')


@admin.register(AccessZone)
class AccessZoneAdmin(admin.ModelAdmin):
    list_display = ('name', 'zone_type', 'tenant', 'is_active')
    list_filter = ('tenant', 'zone_type', 'is_active')


@admin.register(AccessRule)
class AccessRuleAdmin(admin.ModelAdmin):
    list_display = ('name', 'zone', 'priority', 'requires_approval', 'max_occupancy', 'is_active')
    list_filter = ('tenant', 'is_active', 'requires_approval')
    ordering = ('-priority', 'created_at')


@admin.register(QRCode)
class QRCodeAdmin(admin.ModelAdmin):
    list_display = ('pk', 'qr_type', 'user', 'visitor', 'status', 'scan_count', 'max_scans', 'expires_at')
    list_filter = ('tenant', 'qr_type', 'status')
    readonly_fields = ('code', 'scan_count', 'status', 'revoked_by', 'revoked_at', 'last_used_at')

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(QRCodeScan)
class QRCodeScanAdmin(admin.ModelAdmin):
    list_display = ('scanned_at', 'qr_code', 'location', 'result', 'granted', 'reason')
    list_filter = ('tenant', 'result', 'granted')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OccupancyRecord)
class OccupancyRecordAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'current_count', 'peak_count', 'last_entry', 'last_exit')
    list_filter = ('tenant',)
    readonly_fields = ('current_count', 'peak_count', 'last_entry', 'last_exit', 'updated_at')


@admin.register(AccessViolation)
class AccessViolationAdmin(admin.ModelAdmin):
    list_display = ('violation_type', 'severity', 'user', 'visitor', 'zone', 'is_resolved', 'created_at')
    list_filter = ('tenant', 'violation_type', 'severity', 'is_resolved')
    readonly_fields = ('resolved_by', 'resolved_at')

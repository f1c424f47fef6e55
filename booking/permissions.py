# booking/permissions.py
"""
Role checks and DRF permission classes.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.conf import settings
from rest_framework import permissions

DEFAULT_APPROVER_ROLES = ('super_admin', 'cowork_admin', 'client_admin')
DEFAULT_STAFF_ROLES = ('super_admin', 'cowork_admin', 'cowork_user')


def get_profile(user):
    """Return the user's profile, or None for anonymous users and users without one."""
    if user is None or not user.is_authenticated:
        return None
    return getattr(user, 'userprofile', None)


def _has_role(user, roles):
    profile = get_profile(user)
    return profile is not None and profile.role in roles


def can_approve_bookings(user):
    return _has_role(user, getattr(settings, 'BOOKING_APPROVER_ROLES', DEFAULT_APPROVER_ROLES))


def is_staff_member(user):
    """Staff may check members in and out and manage access control."""
    return _has_role(user, getattr(settings, 'BOOKING_STAFF_ROLES', DEFAULT_STAFF_ROLES))


class HasTenantProfile(permissions.BasePermission):
    """Authenticated user attached to a tenant."""
    message = 'A tenant profile is required.'

    def has_permission(self, request, view):
        return get_profile(request.user) is not None


class IsStaffMember(HasTenantProfile):
    message = 'Only coworking staff can perform this action.'

    def has_permission(self, request, view):
        return is_staff_member(request.user)


class IsOwnerOrStaff(permissions.BasePermission):
    """Read access for the booking owner or staff; writes are checked by the services."""

    def has_object_permission(self, request, view, obj):
        if is_staff_member(request.user):
            return True
        return getattr(obj, 'user_id', None) == request.user.pk

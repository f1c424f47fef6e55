# booking/serializers.py
"""
DRF serializers for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.contrib.auth.models import User
from rest_framework import serializers

from .models import (
    AccessViolation, Booking, CheckIn, OccupancyAction, OccupancyRecord,
    QRCode, QRCodeScan, QRCodeType, Space,
)


class AliasedFieldsMixin:
    """Accepts the camelCase names used by API clients as well as the field names.

    ``aliases`` maps a client name to a field name; the field name wins when both
    are sent.
    """
    aliases = {}

    def to_internal_value(self, data):
        if hasattr(data, 'copy'):
            data = data.copy()
            for alias, name in self.aliases.items():
                if alias in data and name not in data:
                    data[name] = data[alias]
        return super().to_internal_value(data)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name']
        read_only_fields = ['id']


class SpaceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Space
        fields = ['id', 'name', 'space_type', 'capacity', 'hourly_rate', 'requires_approval', 'is_active']
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    """Read representation of a booking."""
    user = UserSerializer(read_only=True)
    space = SpaceSerializer(read_only=True)
    approved_by = UserSerializer(read_only=True)
    duration_hours = serializers.FloatField(read_only=True)
    checkin_payload = serializers.CharField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'space', 'user', 'title', 'description', 'start_time', 'end_time',
            'status', 'cost', 'attendees', 'equipment', 'notes', 'duration_hours',
            'approved_by', 'approved_at', 'approval_reason',
            'checked_in_at', 'checked_out_at', 'actual_start_time', 'actual_end_time',
            'checkin_payload', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BookingWriteSerializer(AliasedFieldsMixin, serializers.Serializer):
    """Shape check for create/update input; business rules live in the service."""
    aliases = {'spaceId': 'space', 'userId': 'user', 'startTime': 'start_time', 'endTime': 'end_time'}

    space = serializers.IntegerField(required=False)
    user = serializers.IntegerField(required=False)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)
    attendees = serializers.ListField(child=serializers.CharField(), required=False)
    equipment = serializers.ListField(child=serializers.CharField(), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class ApprovalSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['approve', 'reject'])
    reason = serializers.CharField(required=False, allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


class AvailabilityQuerySerializer(AliasedFieldsMixin, serializers.Serializer):
    aliases = {'spaceId': 'space', 'startTime': 'start_time', 'endTime': 'end_time',
               'excludeBookingId': 'exclude_booking'}

    space = serializers.IntegerField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    exclude_booking = serializers.IntegerField(required=False)


class CheckInSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = CheckIn
        fields = [
            'id', 'booking', 'user', 'space', 'credential_used', 'checked_in_at',
            'checked_out_at', 'actual_end_time', 'auto_checked_out', 'notes',
        ]
        read_only_fields = fields


class CheckOutSerializer(serializers.Serializer):
    actual_end_time = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class QRCodeSerializer(serializers.ModelSerializer):
    subject = serializers.CharField(source='subject_display', read_only=True)

    class Meta:
        model = QRCode
        fields = [
            'id', 'code', 'qr_type', 'user', 'visitor', 'subject', 'permissions',
            'valid_from', 'expires_at', 'max_scans', 'scan_count', 'status',
            'revoked_at', 'last_used_at', 'metadata', 'created_at',
        ]
        read_only_fields = fields


class QRCodeIssueSerializer(AliasedFieldsMixin, serializers.Serializer):
    aliases = {'type': 'qr_type', 'userId': 'user', 'visitorId': 'visitor',
               'validFor': 'valid_for_hours', 'maxScans': 'max_scans'}

    qr_type = serializers.ChoiceField(choices=QRCodeType.choices)
    user = serializers.IntegerField(required=False)
    visitor = serializers.IntegerField(required=False)
    valid_for_hours = serializers.IntegerField(default=24)
    permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    max_scans = serializers.IntegerField(required=False, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        if ('user' in attrs) == ('visitor' in attrs):
            raise serializers.ValidationError('Provide exactly one of user or visitor.')
        return attrs


class ScanRequestSerializer(AliasedFieldsMixin, serializers.Serializer):
    aliases = {'qrCodeData': 'code', 'deviceInfo': 'device_info'}

    code = serializers.CharField()
    location = serializers.IntegerField(required=False)
    device_info = serializers.DictField(required=False, default=dict)


class QRCodeScanSerializer(serializers.ModelSerializer):
    class Meta:
        model = QRCodeScan
        fields = ['id', 'qr_code', 'scanned_by', 'location', 'device_info', 'result',
                  'granted', 'reason', 'scanned_at']
        read_only_fields = fields


class OccupancyRecordSerializer(serializers.ModelSerializer):
    zone_name = serializers.CharField(source='zone.name', read_only=True, default=None)
    space_name = serializers.CharField(source='space.name', read_only=True, default=None)

    class Meta:
        model = OccupancyRecord
        fields = ['id', 'zone', 'zone_name', 'space', 'space_name', 'current_count',
                  'peak_count', 'last_entry', 'last_exit', 'updated_at']
        read_only_fields = fields


class OccupancyUpdateSerializer(AliasedFieldsMixin, serializers.Serializer):
    aliases = {'zoneId': 'zone', 'spaceId': 'space'}

    action = serializers.ChoiceField(choices=OccupancyAction.choices)
    zone = serializers.IntegerField(required=False)
    space = serializers.IntegerField(required=False)

    def validate(self, attrs):
        if ('zone' in attrs) == ('space' in attrs):
            raise serializers.ValidationError('Provide exactly one of zone or space.')
        return attrs


class AccessViolationSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccessViolation
        fields = [
            'id', 'user', 'visitor', 'rule', 'zone', 'qr_code', 'violation_type', 'severity',
            'description', 'metadata', 'is_resolved', 'resolved_by', 'resolved_at', 'created_at',
        ]
        read_only_fields = fields


class EvaluateSerializer(serializers.Serializer):
    zone = serializers.IntegerField()
    user = serializers.IntegerField(required=False)
    visitor = serializers.IntegerField(required=False)
    at = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if 'user' in attrs and 'visitor' in attrs:
            raise serializers.ValidationError('Provide at most one of user or visitor.')
        return attrs

# booking/credential_service.py
"""
Access credential (QR code) issuance, scanning and revocation.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

A scan is checked in a fixed order: payload, status, expiry, scan limit,
blacklist, then zone rules. The first failure decides the outcome. Every
attempt leaves exactly one QRCodeScan row.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from django.conf import settings
from django.core import signing
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from .access_rules import AccessSubject, zone_rule_engine
from .counters import AtomicCounter
from .exceptions import CapacityReached, CredentialDenied, NotFound, ValidationError
from .models import (
    AccessRule, AccessViolation, OccupancyAction, QRCode, QRCodeScan, QRCodeType, ScanResult,
    ViolationType,
)
from .occupancy import occupancy_tracker
from .permissions import get_profile
from .restrictions import parse_string_list
from .states import CredentialStatus
from .violations import severity_for, violation_recorder

logger = logging.getLogger(__name__)

SIGNING_SALT = 'booking.credential'


@dataclass
class ScanOutcome:
    granted: bool
    result: str
    reason: str
    qr_code: Optional[QRCode] = None
    scan: Optional[QRCodeScan] = None
    permissions: List[str] = field(default_factory=list)
    matched_rule: Optional[AccessRule] = None
    violation: Optional[AccessViolation] = None

    def to_dict(self):
        return {
            'granted': self.granted,
            'result': self.result,
            'reason': self.reason,
            'qr_code': self.qr_code.pk if self.qr_code else None,
            'scan': self.scan.pk if self.scan else None,
            'permissions': self.permissions,
            'matched_rule': self.matched_rule.pk if self.matched_rule else None,
            'violation': self.violation.pk if self.violation else None,
        }


class CredentialService:
    """Issues and validates tenant-bound access credentials."""

    def make_payload(self, tenant):
        return signing.dumps({'t': tenant.pk, 'n': secrets.token_urlsafe(24)}, salt=SIGNING_SALT)

    def issue(self, tenant, qr_type, user=None, visitor=None, valid_for_hours=24,
              permissions=None, max_scans=None, metadata=None, issued_by=None):
        """Create an ACTIVE credential for exactly one user or visitor."""
        if qr_type not in QRCodeType.values:
            raise ValidationError(f"Unknown credential type '{qr_type}'.")
        if (user is None) == (visitor is None):
            raise ValidationError('A credential is issued to exactly one user or visitor.')

        if user is not None:
            profile = get_profile(user)
            if profile is None or profile.tenant_id != tenant.pk:
                raise NotFound('User not found.')
        else:
            if visitor.tenant_id != tenant.pk:
                raise NotFound('Visitor not found.')
            if visitor.is_blacklisted:
                raise ValidationError('Cannot issue a credential to a blacklisted visitor.')

        max_hours = getattr(settings, 'CREDENTIAL_MAX_VALID_HOURS', 168)
        if isinstance(valid_for_hours, bool) or not isinstance(valid_for_hours, int) \
                or not 1 <= valid_for_hours <= max_hours:
            raise ValidationError(f'Validity must be between 1 and {max_hours} hours.')
        if max_scans is not None and (isinstance(max_scans, bool)
                                      or not isinstance(max_scans, int) or max_scans < 1):
            raise ValidationError('max_scans must be a positive integer.')
        permissions = parse_string_list(permissions, 'permissions')

        now = timezone.now()
        qr_code = QRCode.objects.create(
            tenant=tenant,
            code=self.make_payload(tenant),
            qr_type=qr_type,
            user=user,
            visitor=visitor,
            permissions=permissions,
            valid_from=now,
            expires_at=now + timedelta(hours=valid_for_hours),
            max_scans=max_scans,
            metadata=metadata or {},
            issued_by=issued_by,
        )
        logger.info(f"Issued {qr_type} credential {qr_code.pk} for {qr_code.subject_display} "
                    f"valid until {qr_code.expires_at.isoformat()}")
        return qr_code

    def _resolve(self, tenant, payload):
        try:
            data = signing.loads(payload, salt=SIGNING_SALT)
        except signing.BadSignature:
            raise CredentialDenied(ScanResult.INVALID, 'Invalid QR code',
                                   ViolationType.INVALID_CREDENTIALS)
        if not isinstance(data, dict) or data.get('t') != tenant.pk:
            raise CredentialDenied(ScanResult.INVALID, 'Invalid QR code',
                                   ViolationType.INVALID_CREDENTIALS)
        try:
            return QRCode.objects.select_related('user', 'visitor').get(tenant=tenant, code=payload)
        except QRCode.DoesNotExist:
            raise CredentialDenied(ScanResult.INVALID, 'Invalid QR code',
                                   ViolationType.INVALID_CREDENTIALS)

    def _move_status(self, qr_code, status):
        """Conditional status change from ACTIVE; concurrent scans may race here."""
        QRCode.objects.filter(pk=qr_code.pk, status=CredentialStatus.ACTIVE).update(status=status)
        qr_code.refresh_from_db(fields=['status', 'scan_count'])

    def _check_credential(self, qr_code, now):
        if qr_code.status == CredentialStatus.REVOKED:
            raise CredentialDenied(ScanResult.DENIED, 'QR code has been revoked',
                                   ViolationType.REVOKED_CREDENTIAL)
        if qr_code.status == CredentialStatus.EXPIRED:
            raise CredentialDenied(ScanResult.EXPIRED, 'QR code has expired',
                                   ViolationType.EXPIRED_CREDENTIAL)
        if qr_code.status == CredentialStatus.USED_UP:
            raise CredentialDenied(ScanResult.DENIED, 'Scan limit reached',
                                   ViolationType.SCAN_LIMIT_EXCEEDED)
        if now < qr_code.valid_from:
            raise CredentialDenied(ScanResult.DENIED, 'QR code is not yet valid',
                                   ViolationType.UNAUTHORIZED_ACCESS)
        if qr_code.is_expired(now):
            self._move_status(qr_code, CredentialStatus.EXPIRED)
            raise CredentialDenied(ScanResult.EXPIRED, 'QR code has expired',
                                   ViolationType.EXPIRED_CREDENTIAL)
        if qr_code.max_scans is not None and qr_code.scan_count >= qr_code.max_scans:
            self._move_status(qr_code, CredentialStatus.USED_UP)
            raise CredentialDenied(ScanResult.DENIED, 'Scan limit reached',
                                   ViolationType.SCAN_LIMIT_EXCEEDED)
        if qr_code.visitor_id and qr_code.visitor.is_blacklisted:
            raise CredentialDenied(ScanResult.DENIED, 'Visitor is blacklisted',
                                   ViolationType.BLACKLISTED)

    def _admit(self, tenant, qr_code, location, capacity, now):
        """Count the scan and record the entry. Raises CredentialDenied on a lost race."""
        rows = QRCode.objects.filter(pk=qr_code.pk)
        try:
            with transaction.atomic():
                counted = AtomicCounter(rows, 'scan_count').increment(
                    ceiling_field='max_scans',
                    condition=Q(status=CredentialStatus.ACTIVE),
                    last_used_at=now,
                )
                if not counted:
                    raise CredentialDenied(ScanResult.DENIED, 'Scan limit reached',
                                           ViolationType.SCAN_LIMIT_EXCEEDED)
                if location is not None:
                    occupancy_tracker.update(tenant, OccupancyAction.ENTRY,
                                             zone=location, capacity=capacity)
        except CapacityReached:
            raise CredentialDenied(ScanResult.CAPACITY_FULL, 'Zone is at maximum capacity',
                                   ViolationType.CAPACITY_EXCEEDED, zone=location)

        rows.filter(status=CredentialStatus.ACTIVE, max_scans__isnull=False,
                    scan_count__gte=F('max_scans')).update(status=CredentialStatus.USED_UP)
        qr_code.refresh_from_db(fields=['scan_count', 'status', 'last_used_at'])

    def scan(self, tenant, payload, location=None, device_info=None, scanned_by=None):
        """
        Validate a scanned payload and, when granted, count it.

        Args:
            tenant: Tenant operating the scanner
            payload: Raw code read from the QR image
            location: AccessZone at the scanner, if any
            device_info: Scanner metadata stored with the scan
            scanned_by: Staff user operating the scanner

        Returns:
            ScanOutcome
        """
        now = timezone.now()
        qr_code = None
        decision = None
        try:
            qr_code = self._resolve(tenant, payload or '')
            self._check_credential(qr_code, now)

            if location is not None:
                subject = AccessSubject.for_credential(qr_code)
                decision = zone_rule_engine.evaluate(tenant, location, subject, at=now,
                                                     qr_code=qr_code)
                if not decision.allowed:
                    raise CredentialDenied(decision.result, decision.reason,
                                           rule=decision.matched_rule, zone=location,
                                           violation=decision.violation)

            self._admit(tenant, qr_code, location, decision.capacity if decision else None, now)
        except CredentialDenied as denial:
            return self._deny(tenant, qr_code, payload, denial, location,
                              device_info, scanned_by, now)

        scan = self._log_scan(tenant, qr_code, location, device_info, scanned_by,
                              ScanResult.SUCCESS, 'Access granted', now)
        logger.info(f"Access granted for credential {qr_code.pk} at {location or 'no zone'}")
        return ScanOutcome(
            granted=True,
            result=ScanResult.SUCCESS,
            reason='Access granted',
            qr_code=qr_code,
            scan=scan,
            permissions=list(qr_code.permissions),
            matched_rule=decision.matched_rule if decision else None,
        )

    def _deny(self, tenant, qr_code, payload, denial, location, device_info, scanned_by, now):
        scan = self._log_scan(tenant, qr_code, location, device_info, scanned_by,
                              denial.result, denial.reason, now)
        violation = denial.violation
        if violation is None and denial.violation_type is not None:
            violation_type, severity = severity_for(denial.result, denial.violation_type)
            metadata = {'scan': scan.pk, 'result': denial.result}
            if qr_code is None:
                metadata['payload_prefix'] = (payload or '')[:16]
            violation = violation_recorder.raise_violation(
                tenant, violation_type, severity,
                description=denial.reason,
                user=qr_code.user if qr_code else None,
                visitor=qr_code.visitor if qr_code else None,
                rule=denial.rule,
                zone=location,
                qr_code=qr_code,
                metadata=metadata,
            )
        logger.info(f"Scan denied ({denial.result}): {denial.reason}")
        return ScanOutcome(
            granted=False,
            result=denial.result,
            reason=denial.reason,
            qr_code=qr_code,
            scan=scan,
            matched_rule=denial.rule,
            violation=violation,
        )

    def _log_scan(self, tenant, qr_code, location, device_info, scanned_by, result, reason, now):
        return QRCodeScan.objects.create(
            tenant=tenant,
            qr_code=qr_code,
            scanned_by=scanned_by,
            location=location,
            device_info=device_info or {},
            result=result,
            granted=result == ScanResult.SUCCESS,
            reason=reason[:255],
            scanned_at=now,
        )

    def revoke(self, tenant, qr_code_id, revoked_by):
        """Revoke a credential. Revoking twice is a no-op."""
        try:
            qr_code = QRCode.objects.get(tenant=tenant, pk=qr_code_id)
        except QRCode.DoesNotExist:
            raise NotFound('QR code not found.')

        if qr_code.is_revoked:
            return qr_code

        qr_code.transition_to(CredentialStatus.REVOKED)
        qr_code.revoked_by = revoked_by
        qr_code.revoked_at = timezone.now()
        qr_code.save(update_fields=['status', 'revoked_by', 'revoked_at'])
        logger.info(f"Credential {qr_code.pk} revoked by {revoked_by.username}")
        return qr_code

    def get(self, tenant, qr_code_id):
        try:
            return QRCode.objects.select_related('user', 'visitor').get(tenant=tenant, pk=qr_code_id)
        except QRCode.DoesNotExist:
            raise NotFound('QR code not found.')

    def list_for_subject(self, tenant, user=None, visitor=None, active_only=True):
        codes = QRCode.objects.filter(tenant=tenant).select_related('user', 'visitor')
        if user is not None:
            codes = codes.filter(user=user)
        if visitor is not None:
            codes = codes.filter(visitor=visitor)
        if active_only:
            codes = codes.filter(status=CredentialStatus.ACTIVE, expires_at__gt=timezone.now())
        return codes.order_by('-created_at')

    def scan_history(self, tenant, qr_code_id):
        qr_code = self.get(tenant, qr_code_id)
        return qr_code.scans.select_related('location', 'scanned_by').order_by('-scanned_at')


credential_service = CredentialService()

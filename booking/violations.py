# booking/violations.py
"""
Access violation recording and resolution.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import logging

from django.utils import timezone

from .exceptions import NotFound, ValidationError
from .models import AccessViolation, ScanResult, ViolationSeverity, ViolationType

logger = logging.getLogger(__name__)


# Scan result -> (violation type, severity)
SCAN_RESULT_VIOLATIONS = {
    ScanResult.EXPIRED: (ViolationType.EXPIRED_CREDENTIAL, ViolationSeverity.MEDIUM),
    ScanResult.INVALID: (ViolationType.INVALID_CREDENTIALS, ViolationSeverity.HIGH),
    ScanResult.RESTRICTED: (ViolationType.UNAUTHORIZED_ACCESS, ViolationSeverity.HIGH),
    ScanResult.CAPACITY_FULL: (ViolationType.CAPACITY_EXCEEDED, ViolationSeverity.LOW),
    ScanResult.DENIED: (ViolationType.UNAUTHORIZED_ACCESS, ViolationSeverity.MEDIUM),
}

TYPE_SEVERITIES = {
    ViolationType.UNAUTHORIZED_ACCESS: ViolationSeverity.HIGH,
    ViolationType.CAPACITY_EXCEEDED: ViolationSeverity.LOW,
    ViolationType.EXPIRED_CREDENTIAL: ViolationSeverity.MEDIUM,
    ViolationType.INVALID_CREDENTIALS: ViolationSeverity.HIGH,
    ViolationType.SCAN_LIMIT_EXCEEDED: ViolationSeverity.MEDIUM,
    ViolationType.REVOKED_CREDENTIAL: ViolationSeverity.HIGH,
    ViolationType.BLACKLISTED: ViolationSeverity.HIGH,
    ViolationType.RULE_MISMATCH: ViolationSeverity.HIGH,
}


def severity_for(result, violation_type=None):
    """Return ``(violation_type, severity)`` for a denied scan.

    An explicit ``violation_type`` wins over the one implied by the result.
    """
    if violation_type is not None:
        return violation_type, TYPE_SEVERITIES[violation_type]
    try:
        return SCAN_RESULT_VIOLATIONS[result]
    except KeyError:
        raise ValidationError(f"Scan result '{result}' does not produce a violation.")


class ViolationRecorder:

    def raise_violation(self, tenant, violation_type, severity, description,
                        user=None, visitor=None, rule=None, zone=None,
                        qr_code=None, metadata=None):
        if user is not None and visitor is not None:
            raise ValidationError('A violation concerns a user or a visitor, not both.')

        violation = AccessViolation.objects.create(
            tenant=tenant,
            user=user,
            visitor=visitor,
            rule=rule,
            zone=zone,
            qr_code=qr_code,
            violation_type=violation_type,
            severity=severity,
            description=description,
            metadata=metadata or {},
        )
        logger.warning(
            f"Access violation {violation.pk} ({violation_type}/{severity}) "
            f"in tenant {tenant.pk}: {description}"
        )
        return violation

    def resolve(self, tenant, violation_id, resolved_by):
        """Mark a violation resolved. Resolving twice keeps the first resolver."""
        try:
            violation = AccessViolation.objects.get(tenant=tenant, pk=violation_id)
        except AccessViolation.DoesNotExist:
            raise NotFound('Violation not found.')

        if violation.is_resolved:
            return violation

        now = timezone.now()
        updated = AccessViolation.objects.filter(pk=violation.pk, is_resolved=False).update(
            is_resolved=True, resolved_by=resolved_by, resolved_at=now
        )
        violation.refresh_from_db()
        if updated:
            logger.info(f"Violation {violation.pk} resolved by {resolved_by.username}")
        return violation

    def list(self, tenant, resolved=None, severity=None, violation_type=None):
        violations = AccessViolation.objects.filter(tenant=tenant).select_related(
            'user', 'visitor', 'zone', 'rule', 'resolved_by'
        )
        if resolved is not None:
            violations = violations.filter(is_resolved=resolved)
        if severity:
            violations = violations.filter(severity=severity)
        if violation_type:
            violations = violations.filter(violation_type=violation_type)
        return violations.order_by('-created_at')


violation_recorder = ViolationRecorder()

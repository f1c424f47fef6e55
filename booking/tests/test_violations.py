"""Tests for access violation recording and resolution."""
from django.test import TestCase

from booking.exceptions import NotFound, ValidationError
from booking.models import ScanResult, ViolationSeverity, ViolationType
from booking.tests.factories import AccessZoneFactory, TenantFactory, VisitorFactory, member
from booking.violations import severity_for, violation_recorder


class TestSeverityFor(TestCase):

    def test_result_mapping(self):
        self.assertEqual(severity_for(ScanResult.EXPIRED),
                         (ViolationType.EXPIRED_CREDENTIAL, ViolationSeverity.MEDIUM))
        self.assertEqual(severity_for(ScanResult.INVALID),
                         (ViolationType.INVALID_CREDENTIALS, ViolationSeverity.HIGH))
        self.assertEqual(severity_for(ScanResult.CAPACITY_FULL),
                         (ViolationType.CAPACITY_EXCEEDED, ViolationSeverity.LOW))

    def test_explicit_type_wins(self):
        self.assertEqual(severity_for(ScanResult.DENIED, ViolationType.BLACKLISTED),
                         (ViolationType.BLACKLISTED, ViolationSeverity.HIGH))

    def test_success_is_not_a_violation(self):
        with self.assertRaises(ValidationError):
            severity_for(ScanResult.SUCCESS)


class TestViolationRecorder(TestCase):

    def setUp(self):
        self.tenant = TenantFactory()
        self.user = member(self.tenant)
        self.staff = member(self.tenant, role='cowork_admin')
        self.zone = AccessZoneFactory(tenant=self.tenant)

    def raise_violation(self, violation_type=ViolationType.UNAUTHORIZED_ACCESS,
                        severity=ViolationSeverity.HIGH, **kwargs):
        kwargs.setdefault('user', self.user)
        return violation_recorder.raise_violation(
            self.tenant, violation_type, severity, 'Door forced', zone=self.zone, **kwargs)

    def test_raise_violation(self):
        with self.assertLogs('booking.violations', level='WARNING'):
            violation = self.raise_violation(metadata={'door': 'north'})
        self.assertFalse(violation.is_resolved)
        self.assertEqual(violation.metadata, {'door': 'north'})
        self.assertEqual(violation.zone, self.zone)

    def test_user_and_visitor_are_exclusive(self):
        with self.assertRaises(ValidationError):
            self.raise_violation(visitor=VisitorFactory(tenant=self.tenant))

    def test_resolve(self):
        violation = self.raise_violation()
        resolved = violation_recorder.resolve(self.tenant, violation.pk, self.staff)
        self.assertTrue(resolved.is_resolved)
        self.assertEqual(resolved.resolved_by, self.staff)
        self.assertIsNotNone(resolved.resolved_at)

    def test_resolve_twice_keeps_first_resolver(self):
        violation = self.raise_violation()
        first = violation_recorder.resolve(self.tenant, violation.pk, self.staff)
        second = violation_recorder.resolve(self.tenant, violation.pk, member(self.tenant, role='super_admin'))
        self.assertEqual(second.resolved_by, self.staff)
        self.assertEqual(second.resolved_at, first.resolved_at)

    def test_resolve_other_tenant(self):
        violation = self.raise_violation()
        with self.assertRaises(NotFound):
            violation_recorder.resolve(TenantFactory(), violation.pk, self.staff)

    def test_list_filters(self):
        low = self.raise_violation(violation_type=ViolationType.CAPACITY_EXCEEDED,
                                   severity=ViolationSeverity.LOW)
        high = self.raise_violation()
        violation_recorder.resolve(self.tenant, low.pk, self.staff)

        self.assertEqual(list(violation_recorder.list(self.tenant, resolved=False)), [high])
        self.assertEqual(list(violation_recorder.list(self.tenant, severity=ViolationSeverity.LOW)), [low])
        self.assertEqual(
            list(violation_recorder.list(self.tenant, violation_type=ViolationType.UNAUTHORIZED_ACCESS)),
            [high],
        )
        self.assertEqual(violation_recorder.list(TenantFactory()).count(), 0)

# booking/access_rules.py
"""
Zone and access rule evaluation.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

Rules are matched in priority order (highest first, oldest first among
equals). The first rule whose audience and schedule admit the subject wins;
it alone decides approval and the occupancy cap.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db.models import Q
from django.utils import timezone

from .models import AccessRule, AccessViolation, ScanResult, ViolationType
from .occupancy import occupancy_tracker
from .permissions import get_profile
from .violations import severity_for, violation_recorder

logger = logging.getLogger(__name__)

VISITOR_ROLE = 'visitor'


@dataclass(frozen=True)
class AccessSubject:
    """Who is asking for access, reduced to what rules look at."""
    role: str
    membership_type: str = ''
    plan_type: str = ''
    user: object = None
    visitor: object = None

    @classmethod
    def for_user(cls, user):
        profile = get_profile(user)
        if profile is None:
            return cls(role='', user=user)
        return cls(
            role=profile.role,
            membership_type=profile.membership_type,
            plan_type=profile.plan_type,
            user=user,
        )

    @classmethod
    def for_visitor(cls, visitor):
        return cls(role=VISITOR_ROLE, visitor=visitor)

    @classmethod
    def for_credential(cls, qr_code):
        if qr_code.visitor_id:
            return cls.for_visitor(qr_code.visitor)
        return cls.for_user(qr_code.user)

    def __str__(self):
        if self.visitor is not None:
            return f"visitor {self.visitor.name}"
        if self.user is not None:
            return f"user {self.user.username}"
        return self.role


def _in_list(allowed, value):
    return not allowed or value in allowed


def rule_is_current(rule, at):
    if not rule.is_active:
        return False
    if rule.valid_from and at < rule.valid_from:
        return False
    if rule.valid_to and at > rule.valid_to:
        return False
    return True


def rule_admits(rule, subject, at):
    """Audience and schedule match. Every non-empty list must contain the subject's value."""
    return (
        _in_list(rule.user_roles, subject.role)
        and _in_list(rule.membership_types, subject.membership_type)
        and _in_list(rule.plan_types, subject.plan_type)
        and rule.day_set.contains(at)
        and (rule.time_window is None or rule.time_window.contains(at))
    )


def select_rule(rules, subject, at) -> Optional[AccessRule]:
    """Return the highest-priority rule admitting ``subject`` at ``at``, or None."""
    candidates = [rule for rule in rules if rule_is_current(rule, at)]
    candidates.sort(key=lambda rule: (-rule.priority, rule.created_at))
    for rule in candidates:
        if rule_admits(rule, subject, at):
            return rule
    return None


@dataclass
class AccessDecision:
    allowed: bool
    result: str
    reason: str = ''
    matched_rule: Optional[AccessRule] = None
    capacity: Optional[int] = None
    violation: Optional[AccessViolation] = None
    violation_type: Optional[str] = None

    def to_dict(self):
        return {
            'allowed': self.allowed,
            'result': self.result,
            'reason': self.reason,
            'matched_rule': self.matched_rule.pk if self.matched_rule else None,
            'capacity': self.capacity,
            'violation': self.violation.pk if self.violation else None,
        }


class ZoneRuleEngine:
    """Decides whether a subject may enter a zone right now."""

    def rules_for_zone(self, tenant, zone):
        return list(AccessRule.objects.filter(tenant=tenant, is_active=True)
                    .filter(Q(zone=zone) | Q(zone__isnull=True)))

    def evaluate(self, tenant, zone, subject, at=None, record_violations=True, qr_code=None):
        """
        Evaluate zone restrictions and rules for ``subject``.

        Args:
            tenant: Tenant owning the zone
            zone: AccessZone being entered
            subject: AccessSubject requesting entry
            at: Moment of the request, defaults to now
            record_violations: False for previews
            qr_code: Credential to attach to any violation raised

        Returns:
            AccessDecision
        """
        at = at or timezone.now()

        if not zone.is_active:
            return self._deny(tenant, zone, subject, at, ScanResult.RESTRICTED,
                              'Zone is not active', ViolationType.UNAUTHORIZED_ACCESS,
                              None, record_violations, qr_code)

        policy = zone.policy
        if policy.allowed_hours and not policy.allowed_hours.contains(at):
            return self._deny(tenant, zone, subject, at, ScanResult.RESTRICTED,
                              f'Zone is only open {policy.allowed_hours}',
                              ViolationType.UNAUTHORIZED_ACCESS,
                              None, record_violations, qr_code)

        rule = select_rule(self.rules_for_zone(tenant, zone), subject, at)
        if rule is None:
            return self._deny(tenant, zone, subject, at, ScanResult.RESTRICTED,
                              'No matching access rule', ViolationType.RULE_MISMATCH,
                              None, record_violations, qr_code)

        if rule.requires_approval:
            return AccessDecision(
                allowed=False, result=ScanResult.DENIED,
                reason='Access pending approval', matched_rule=rule,
            )

        capacity = rule.max_occupancy or policy.capacity
        if capacity is not None:
            current = occupancy_tracker.get_current(tenant, zone=zone)
            if current >= capacity:
                return self._deny(tenant, zone, subject, at, ScanResult.CAPACITY_FULL,
                                  'Zone is at maximum capacity', ViolationType.CAPACITY_EXCEEDED,
                                  rule, record_violations, qr_code, capacity=capacity)

        return AccessDecision(
            allowed=True, result=ScanResult.SUCCESS, reason='Access granted',
            matched_rule=rule, capacity=capacity,
        )

    def _deny(self, tenant, zone, subject, at, result, reason, violation_type,
              rule, record_violations, qr_code, capacity=None):
        logger.info(f"Access to {zone} denied for {subject}: {reason}")
        violation = None
        if record_violations:
            violation = self.record(tenant, zone, subject, at, reason, violation_type, rule, qr_code)
        return AccessDecision(
            allowed=False, result=result, reason=reason, matched_rule=rule,
            capacity=capacity, violation=violation, violation_type=violation_type,
        )

    def record(self, tenant, zone, subject, at, reason, violation_type, rule=None, qr_code=None):
        _, severity = severity_for(None, violation_type)
        return violation_recorder.raise_violation(
            tenant, violation_type, severity,
            description=f"{reason} ({zone.name})",
            user=subject.user, visitor=subject.visitor,
            rule=rule, zone=zone, qr_code=qr_code,
            metadata={'attempted_at': at.isoformat(), 'role': subject.role},
        )


zone_rule_engine = ZoneRuleEngine()

# booking/occupancy.py
"""
Live occupancy tracking for access zones and spaces.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import logging

from django.db.models import F
from django.utils import timezone

from .counters import AtomicCounter
from .exceptions import CapacityReached, ValidationError
from .models import OccupancyAction, OccupancyRecord

logger = logging.getLogger(__name__)


class OccupancyTracker:
    """Maintains one OccupancyRecord per zone or space."""

    def _target(self, zone, space):
        if (zone is None) == (space is None):
            raise ValidationError('Exactly one of zone or space is required.')
        return {'zone': zone} if zone is not None else {'space': space}

    def _record(self, tenant, zone=None, space=None):
        target = self._target(zone, space)
        record, _ = OccupancyRecord.objects.get_or_create(tenant=tenant, **target)
        return record

    def update(self, tenant, action, zone=None, space=None, capacity=None):
        """
        Apply an ENTRY or EXIT and return the resulting count.

        ENTRY with ``capacity`` raises CapacityReached when the area is full.
        EXIT at zero leaves the count at zero.
        """
        if action not in OccupancyAction.values:
            raise ValidationError(f"Unknown occupancy action '{action}'.")

        record = self._record(tenant, zone, space)
        rows = OccupancyRecord.objects.filter(pk=record.pk)
        counter = AtomicCounter(rows, 'current_count')
        now = timezone.now()
        target = zone or space

        if action == OccupancyAction.ENTRY:
            if not counter.increment(ceiling=capacity, last_entry=now, updated_at=now):
                logger.info(f"Entry refused for {target}: at capacity ({capacity})")
                raise CapacityReached(
                    f"{target} is at maximum capacity.",
                    capacity=capacity,
                )
            rows.filter(peak_count__lt=F('current_count')).update(peak_count=F('current_count'))
        else:
            if not counter.decrement(last_exit=now, updated_at=now):
                logger.warning(f"Exit recorded for {target} while occupancy was already 0")
                rows.update(last_exit=now, updated_at=now)

        count = counter.get()
        logger.debug(f"Occupancy for {target} after {action}: {count}")
        return count

    def get_current(self, tenant, zone=None, space=None):
        target = self._target(zone, space)
        return (OccupancyRecord.objects.filter(tenant=tenant, **target)
                .values_list('current_count', flat=True).first()) or 0

    def snapshot(self, tenant, zone=None, space=None):
        """All occupancy records for the tenant, optionally for one area."""
        records = OccupancyRecord.objects.filter(tenant=tenant).select_related('zone', 'space')
        if zone is not None:
            records = records.filter(zone=zone)
        if space is not None:
            records = records.filter(space=space)
        return list(records.order_by('zone__name', 'space__name'))


occupancy_tracker = OccupancyTracker()

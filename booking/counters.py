# booking/counters.py
"""
Atomic counters on top of the ORM.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

Occupancy counts and credential scan counts are shared between concurrent
requests. Every change is a single conditional UPDATE evaluated by the
database, so a guard such as "below capacity" or "under the scan limit"
and the increment it protects can never be split by another request.
"""

from django.db.models import F, Q


class AtomicCounter:
    """Integer column of one row, changed only through conditional UPDATEs.

    ``queryset`` must select the single row holding the counter.
    """

    def __init__(self, queryset, field):
        self.queryset = queryset
        self.field = field

    def get(self):
        value = self.queryset.values_list(self.field, flat=True).first()
        return value or 0

    def increment(self, ceiling=None, ceiling_field=None, condition=None, **extra_updates):
        """Add one. Returns False when the guard did not hold.

        ``ceiling`` is a fixed upper bound; ``ceiling_field`` names a nullable
        column holding the bound (NULL means unlimited). ``condition`` is an
        extra Q object the row must satisfy.
        """
        queryset = self.queryset
        if condition is not None:
            queryset = queryset.filter(condition)
        if ceiling is not None:
            queryset = queryset.filter(**{f'{self.field}__lt': ceiling})
        if ceiling_field is not None:
            queryset = queryset.filter(
                Q(**{f'{ceiling_field}__isnull': True}) |
                Q(**{f'{self.field}__lt': F(ceiling_field)})
            )
        updated = queryset.update(**{self.field: F(self.field) + 1}, **extra_updates)
        return updated > 0

    def decrement(self, floor=0, **extra_updates):
        """Subtract one unless the counter is already at ``floor``.

        Returns False when the value was clamped.
        """
        updated = self.queryset.filter(**{f'{self.field}__gt': floor}).update(
            **{self.field: F(self.field) - 1}, **extra_updates
        )
        return updated > 0

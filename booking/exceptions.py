# booking/exceptions.py
"""
Typed errors raised by the booking and access engine.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

The errors subclass DRF's APIException so the API layer renders them with
the right status code; services raise them directly and never return
error tuples.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class EngineError(APIException):
    """Base class for all engine errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'engine_error'

    def __init__(self, message=None, code=None, **extra):
        self.message = message or str(self.default_detail)
        self.extra = extra
        payload = {'detail': self.message}
        payload.update(extra)
        super().__init__(detail=payload, code=code)

    def __str__(self):
        return self.message


class ValidationError(EngineError):
    """Malformed or out-of-range input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid'


class InvalidTransition(ValidationError):
    """Illegal lifecycle move, e.g. cancelling a completed booking."""
    default_detail = 'Invalid status transition.'
    default_code = 'invalid_transition'


class Conflict(EngineError):
    """Availability or capacity clash; the caller may retry with other input."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with existing state.'
    default_code = 'conflict'

    def __init__(self, message=None, conflicts=None, **extra):
        self.conflicts = list(conflicts or [])
        if conflicts is not None:
            extra['conflicts'] = [c.to_dict() for c in self.conflicts]
        super().__init__(message, **extra)


class CapacityReached(Conflict):
    default_detail = 'Area is at maximum capacity.'
    default_code = 'capacity_reached'


class Forbidden(EngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class NotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class CredentialDenied(Exception):
    """Scan-time denial. Not a system error: converted into a scan outcome."""

    def __init__(self, result, reason, violation_type=None, rule=None, zone=None, violation=None):
        super().__init__(reason)
        self.result = result
        self.reason = reason
        self.violation_type = violation_type
        self.rule = rule
        self.zone = zone
        self.violation = violation

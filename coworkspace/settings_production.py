# coworkspace/settings_production.py
"""
Production settings for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import os
from .settings import *  # noqa: F401,F403

import dj_database_url

DEBUG = False

ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',') if h]
if not ALLOWED_HOSTS:
    raise ValueError("DJANGO_ALLOWED_HOSTS must be set in production.")

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY')
if not SECRET_KEY:
    raise ValueError(
        "DJANGO_SECRET_KEY must be set in production. "
        "Credential payloads are signed with it, so rotating it invalidates every issued QR code."
    )

# Booking writes rely on row locks, which SQLite does not provide
if not os.environ.get('DATABASE_URL'):
    raise ValueError("DATABASE_URL must point at a PostgreSQL or MySQL database in production.")
DATABASES = {
    'default': dj_database_url.config(
        conn_max_age=600,
        conn_health_checks=True,
        ssl_require=os.environ.get('DB_SSL', 'False').lower() == 'true',
    )
}

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True

if os.environ.get('USE_HTTPS', 'False').lower() == 'true':
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Browsable API is for development only
REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
}

# Gunicorn runs several workers; start the scheduler from one dedicated process
SCHEDULER_AUTOSTART = os.environ.get('SCHEDULER_AUTOSTART', 'False').lower() == 'true'

LOGS_DIR = os.path.join(BASE_DIR, 'logs')  # noqa: F405
os.makedirs(LOGS_DIR, exist_ok=True)


def _rotating(filename, level):
    return {
        'level': level,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': os.path.join(LOGS_DIR, filename),
        'maxBytes': 1024 * 1024 * 15,
        'backupCount': 10,
        'formatter': 'verbose',
    }


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'file': _rotating('coworkspace.log', 'INFO'),
        'error_file': _rotating('coworkspace_errors.log', 'ERROR'),
        # Door events: scans, revocations and violations
        'access_file': _rotating('access.log', 'INFO'),
    },
    'root': {
        'handlers': ['console', 'file'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file', 'error_file'],
            'level': 'INFO',
            'propagate': False,
        },
        'booking': {
            'handlers': ['console', 'file', 'error_file'],
            'level': os.environ.get('BOOKING_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'booking.credential_service': {
            'handlers': ['access_file'],
            'level': 'INFO',
        },
        'booking.violations': {
            'handlers': ['access_file'],
            'level': 'INFO',
        },
    },
}

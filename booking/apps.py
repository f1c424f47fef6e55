# booking/apps.py
"""
App configuration for the booking app.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import logging
import os
import sys

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class BookingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'booking'
    verbose_name = 'Coworkspace Booking & Access'

    def ready(self):
        """Start the background scheduler in the main runserver process."""
        from django.conf import settings

        if not getattr(settings, 'SCHEDULER_AUTOSTART', False):
            return

        # Only start scheduler in main process, not in migrations or shell
        if not (os.environ.get('RUN_MAIN') == 'true' or
                ('runserver' in sys.argv and '--noreload' in sys.argv)):
            return
        if any(cmd in sys.argv for cmd in ['migrate', 'makemigrations', 'test', 'shell']):
            return

        from threading import Timer
        from .scheduler import start_scheduler

        # Defer startup so no queries run during app initialization
        Timer(3.0, start_scheduler).start()
        logger.info("Booking scheduler startup deferred by 3 seconds")

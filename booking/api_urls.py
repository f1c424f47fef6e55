# booking/api_urls.py
"""
API URL configuration for the booking app.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'bookings', views.BookingViewSet, basename='booking')
router.register(r'checkins', views.CheckInViewSet, basename='checkin')

# Access control
router.register(r'access-control/qr-codes', views.QRCodeViewSet, basename='qrcode')
router.register(r'access-control/occupancy', views.OccupancyViewSet, basename='occupancy')
router.register(r'access-control/violations', views.AccessViolationViewSet, basename='violation')

app_name = 'api'

urlpatterns = [
    path('', include(router.urls)),
    path('access-control/evaluate/', views.AccessEvaluationView.as_view(), name='access-evaluate'),
]

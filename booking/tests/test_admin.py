"""
Test cases for the Django admin configuration.
"""
from django.contrib import admin
from django.test import Client, RequestFactory, TestCase
from django.urls import reverse

from booking.models import (
    AccessRule, AccessViolation, AccessZone, Booking, CheckIn, OccupancyRecord,
    QRCode, QRCodeScan, Space, Tenant, Visitor,
)
from booking.tests.factories import BookingFactory, UserFactory


class AdminSiteTests(TestCase):

    def setUp(self):
        self.admin_user = UserFactory(is_staff=True, is_superuser=True)
        self.client = Client()
        self.client.force_login(self.admin_user)

    def test_changelists_render(self):
        for model in (Tenant, Visitor, Space, Booking, CheckIn, AccessZone, AccessRule,
                      QRCode, QRCodeScan, OccupancyRecord, AccessViolation):
            url = reverse(f'admin:booking_{model._meta.model_name}_changelist')
            response = self.client.get(url)
            self.assertEqual(response.status_code, 200, url)

    def test_booking_change_page_shows_history(self):
        booking = BookingFactory()
        response = self.client.get(reverse('admin:booking_booking_change', args=[booking.pk]))
        self.assertEqual(response.status_code, 200)

    def test_audit_records_cannot_be_deleted(self):
        request = RequestFactory().get('/')
        request.user = self.admin_user
        for model in (Booking, QRCode, QRCodeScan):
            self.assertFalse(admin.site._registry[model].has_delete_permission(request))
        self.assertFalse(admin.site._registry[QRCodeScan].has_change_permission(request))

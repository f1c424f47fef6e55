"""Test cases for booking and access control API endpoints."""
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from booking.credential_service import credential_service
from booking.models import AccessViolation, Booking, QRCodeType, ViolationSeverity, ViolationType
from booking.occupancy import occupancy_tracker
from booking.states import BookingStatus, CredentialStatus
from booking.tests.factories import (
    AccessRuleFactory, AccessZoneFactory, BookingFactory, SpaceFactory, TenantFactory,
    UserFactory, VisitorFactory, member, next_slot,
)
from booking.violations import violation_recorder


@pytest.mark.django_db
class TestBookingAPI:
    """Test booking API endpoints."""

    @pytest.fixture(autouse=True)
    def setup(self, db):
        self.client = APIClient()
        self.tenant = TenantFactory()
        self.space = SpaceFactory(tenant=self.tenant)
        self.user = member(self.tenant)
        self.client.force_authenticate(user=self.user)
        self.start = next_slot(days=2)

    def booking_payload(self, start=None, hours=1, **extra):
        start = start or self.start
        data = {
            'space': self.space.pk,
            'title': 'Design review',
            'start_time': start.isoformat(),
            'end_time': (start + timedelta(hours=hours)).isoformat(),
        }
        data.update(extra)
        return data

    def test_create_booking(self):
        response = self.client.post(reverse('api:booking-list'), self.booking_payload(), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == BookingStatus.CONFIRMED
        assert response.data['cost'] == '20.00'
        assert response.data['checkin_payload'] == f"booking:{response.data['id']}"

    def test_create_booking_with_conflicts(self):
        BookingFactory(space=self.space, start_time=self.start, end_time=self.start + timedelta(hours=2))

        response = self.client.post(reverse('api:booking-list'), self.booking_payload(), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert len(response.data['conflicts']) == 1

    def test_create_booking_with_client_field_names(self):
        response = self.client.post(reverse('api:booking-list'), {
            'spaceId': self.space.pk,
            'userId': self.user.pk,
            'title': 'Standup',
            'startTime': self.start.isoformat(),
            'endTime': (self.start + timedelta(minutes=30)).isoformat(),
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['space']['id'] == self.space.pk
        assert response.data['user']['id'] == self.user.pk

    def test_only_staff_book_for_others(self):
        other = member(self.tenant)
        url = reverse('api:booking-list')

        response = self.client.post(url, self.booking_payload(userId=other.pk), format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

        self.client.force_authenticate(user=member(self.tenant, role='cowork_user'))
        response = self.client.post(url, self.booking_payload(userId=other.pk), format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['user']['id'] == other.pk

    def test_create_booking_invalid_interval(self):
        payload = self.booking_payload()
        payload['end_time'] = payload['start_time']

        response = self.client.post(reverse('api:booking-list'), payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == 'End time must be after start time'

    def test_list_only_own_bookings(self):
        BookingFactory(space=self.space, user=self.user)
        BookingFactory(space=self.space, user=self.user, start_time=next_slot(days=3))
        BookingFactory(space=self.space, start_time=next_slot(days=4))

        response = self.client.get(reverse('api:booking-list'))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['results']) == 2
        assert response.data['pagination']['total'] == 2

    def test_staff_list_all_bookings(self):
        BookingFactory(space=self.space, user=self.user)
        BookingFactory(space=self.space, start_time=next_slot(days=4))
        self.client.force_authenticate(user=member(self.tenant, role='cowork_user'))

        response = self.client.get(reverse('api:booking-list'))

        assert response.data['pagination']['total'] == 2

    def test_other_members_booking_is_hidden(self):
        booking = BookingFactory(space=self.space)
        response = self.client.get(reverse('api:booking-detail', args=[booking.pk]))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_booking(self):
        booking = BookingFactory(space=self.space, user=self.user)
        response = self.client.patch(reverse('api:booking-detail', args=[booking.pk]),
                                     {'title': 'Renamed'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['title'] == 'Renamed'

    def test_cancel_booking(self):
        booking = BookingFactory(space=self.space, user=self.user)
        url = reverse('api:booking-detail', args=[booking.pk])

        response = self.client.delete(url, {'reason': 'Sick'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == BookingStatus.CANCELLED
        assert Booking.objects.filter(pk=booking.pk).exists()

        again = self.client.delete(url, format='json')
        assert again.status_code == status.HTTP_400_BAD_REQUEST

    def test_approve_requires_approver_role(self):
        booking = BookingFactory(space=self.space, user=self.user, status=BookingStatus.PENDING)
        url = reverse('api:booking-approve', args=[booking.pk])

        response = self.client.post(url, {'status': 'approve'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

        self.client.force_authenticate(user=member(self.tenant, role='client_admin'))
        response = self.client.post(url, {'status': 'approve', 'reason': 'Fine'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == BookingStatus.CONFIRMED

    def test_availability(self):
        BookingFactory(space=self.space, start_time=self.start, end_time=self.start + timedelta(hours=1))
        response = self.client.get(reverse('api:booking-availability'), {
            'space': self.space.pk,
            'start_time': self.start.isoformat(),
            'end_time': (self.start + timedelta(hours=2)).isoformat(),
        })
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_available'] is False
        assert len(response.data['conflicts']) == 1

    def test_statistics_for_staff_only(self):
        url = reverse('api:booking-statistics')
        assert self.client.get(url).status_code == status.HTTP_403_FORBIDDEN

        self.client.force_authenticate(user=member(self.tenant, role='cowork_admin'))
        response = self.client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert 'bookings_by_status' in response.data

    def test_check_in_and_out(self):
        start = timezone.now() + timedelta(minutes=5)
        booking = BookingFactory(space=self.space, user=self.user, start_time=start,
                                 end_time=start + timedelta(hours=1))

        response = self.client.post(reverse('api:booking-checkin', args=[booking.pk]))
        assert response.status_code == status.HTTP_201_CREATED
        check_in_id = response.data['id']

        response = self.client.post(reverse('api:checkin-checkout', args=[check_in_id]),
                                    {'notes': 'Done'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['checked_out_at'] is not None
        booking.refresh_from_db()
        assert booking.status == BookingStatus.COMPLETED

    def test_check_in_with_qr(self):
        start = timezone.now() + timedelta(minutes=5)
        booking = BookingFactory(space=self.space, user=self.user, start_time=start,
                                 end_time=start + timedelta(hours=1))

        url = reverse('api:booking-checkin-qr', kwargs={'code': booking.checkin_payload})
        response = self.client.post(url)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['booking'] == booking.pk

    def test_user_without_profile_is_rejected(self):
        self.client.force_authenticate(user=UserFactory())
        response = self.client.get(reverse('api:booking-list'))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_anonymous_is_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('api:booking-list'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestAccessControlAPI:
    """Test credential, occupancy and violation endpoints."""

    @pytest.fixture(autouse=True)
    def setup(self, db):
        self.client = APIClient()
        self.tenant = TenantFactory()
        self.user = member(self.tenant)
        self.staff = member(self.tenant, role='cowork_admin')
        self.zone = AccessZoneFactory(tenant=self.tenant)
        self.client.force_authenticate(user=self.staff)

    def test_issue_credential(self):
        response = self.client.post(reverse('api:qrcode-list'), {
            'qr_type': QRCodeType.MEMBER,
            'user': self.user.pk,
            'valid_for_hours': 4,
            'max_scans': 3,
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == CredentialStatus.ACTIVE
        assert response.data['max_scans'] == 3

    def test_issue_needs_one_subject(self):
        visitor = VisitorFactory(tenant=self.tenant)
        response = self.client.post(reverse('api:qrcode-list'), {
            'qr_type': QRCodeType.VISITOR, 'user': self.user.pk, 'visitor': visitor.pk,
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_members_cannot_issue(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(reverse('api:qrcode-list'), {
            'qr_type': QRCodeType.MEMBER, 'user': self.user.pk,
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_members_list_their_own_credentials(self):
        own = credential_service.issue(self.tenant, QRCodeType.MEMBER, user=self.user)
        credential_service.issue(self.tenant, QRCodeType.MEMBER, user=self.staff)
        self.client.force_authenticate(user=self.user)

        response = self.client.get(reverse('api:qrcode-list'))

        assert response.status_code == status.HTTP_200_OK
        assert [row['id'] for row in response.data['results']] == [own.pk]

    def test_scan_at_zone(self):
        AccessRuleFactory(tenant=self.tenant, zone=self.zone)
        qr_code = credential_service.issue(self.tenant, QRCodeType.MEMBER, user=self.user, max_scans=1)
        url = reverse('api:qrcode-scan')

        first = self.client.post(url, {'code': qr_code.code, 'location': self.zone.pk,
                                       'device_info': {'reader': 'front-door'}}, format='json')
        second = self.client.post(url, {'code': qr_code.code, 'location': self.zone.pk}, format='json')

        assert first.status_code == status.HTTP_200_OK
        assert first.data['granted'] is True
        assert second.data['granted'] is False
        assert second.data['reason'] == 'Scan limit reached'

    def test_issue_and_scan_with_client_field_names(self):
        response = self.client.post(reverse('api:qrcode-list'), {
            'type': QRCodeType.MEMBER,
            'userId': self.user.pk,
            'validFor': 2,
            'permissions': ['lounge'],
            'maxScans': 1,
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['qr_type'] == QRCodeType.MEMBER
        assert response.data['max_scans'] == 1

        response = self.client.post(reverse('api:qrcode-scan'), {
            'qrCodeData': response.data['code'],
            'deviceInfo': {'reader': 'lobby'},
        }, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['granted'] is True

    def test_scan_unknown_zone(self):
        qr_code = credential_service.issue(self.tenant, QRCodeType.MEMBER, user=self.user)
        other_zone = AccessZoneFactory()
        response = self.client.post(reverse('api:qrcode-scan'),
                                    {'code': qr_code.code, 'location': other_zone.pk}, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_revoke_and_history(self):
        qr_code = credential_service.issue(self.tenant, QRCodeType.MEMBER, user=self.user)
        credential_service.scan(self.tenant, qr_code.code)

        response = self.client.post(reverse('api:qrcode-revoke', args=[qr_code.pk]))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == CredentialStatus.REVOKED

        response = self.client.get(reverse('api:qrcode-scans', args=[qr_code.pk]))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1

    def test_occupancy_update_and_list(self):
        url = reverse('api:occupancy-record-movement')
        response = self.client.post(url, {'action': 'ENTRY', 'zone': self.zone.pk}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'current_count': 1}

        response = self.client.get(reverse('api:occupancy-list'))
        assert response.data[0]['zone'] == self.zone.pk
        assert response.data[0]['current_count'] == 1

    def test_occupancy_entries_are_counted_past_capacity(self):
        zone = AccessZoneFactory(tenant=self.tenant, restrictions={'capacity': 2})
        url = reverse('api:occupancy-record-movement')

        responses = [self.client.post(url, {'zoneId': zone.pk, 'action': 'ENTRY'}, format='json')
                     for _ in range(3)]

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert responses[-1].data == {'current_count': 3}
        assert occupancy_tracker.get_current(self.tenant, zone=zone) == 3

    def test_violations_list_and_resolve(self):
        violation = violation_recorder.raise_violation(
            self.tenant, ViolationType.UNAUTHORIZED_ACCESS, ViolationSeverity.HIGH,
            'Tailgating', user=self.user, zone=self.zone)

        response = self.client.get(reverse('api:violation-list'), {'resolved': 'false'})
        assert response.data['count'] == 1

        response = self.client.put(reverse('api:violation-resolve', args=[violation.pk]))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_resolved'] is True
        assert response.data['resolved_by'] == self.staff.pk

    def test_members_cannot_see_violations(self):
        self.client.force_authenticate(user=self.user)
        assert self.client.get(reverse('api:violation-list')).status_code == status.HTTP_403_FORBIDDEN

    def test_evaluate_preview(self):
        AccessRuleFactory(tenant=self.tenant, zone=self.zone, user_roles=['cowork_admin'])

        response = self.client.post(reverse('api:access-evaluate'),
                                    {'zone': self.zone.pk, 'user': self.user.pk}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['allowed'] is False
        assert not AccessViolation.objects.exists()

        response = self.client.post(reverse('api:access-evaluate'), {'zone': self.zone.pk}, format='json')
        assert response.data['allowed'] is True

# booking/views.py
"""
API views for Coworkspace.

This file is part of Coworkspace.
Copyright (C) 2025 Coworkspace Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

Every view resolves the tenant from the caller's profile; ids from the
request are only ever looked up inside that tenant.
"""

from django.contrib.auth.models import User
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .access_rules import AccessSubject, zone_rule_engine
from .availability import check_availability
from .booking_service import booking_service, parse_datetime_value
from .credential_service import credential_service
from .exceptions import Forbidden, NotFound, ValidationError
from .models import AccessZone, CheckIn, Space, Visitor
from .occupancy import occupancy_tracker
from .permissions import HasTenantProfile, IsOwnerOrStaff, IsStaffMember, can_approve_bookings, is_staff_member
from .serializers import (
    AccessViolationSerializer, ApprovalSerializer, AvailabilityQuerySerializer, BookingSerializer,
    BookingWriteSerializer, CancelSerializer, CheckInSerializer, CheckOutSerializer,
    EvaluateSerializer, OccupancyRecordSerializer, OccupancyUpdateSerializer, QRCodeIssueSerializer,
    QRCodeScanSerializer, QRCodeSerializer, ScanRequestSerializer,
)
from .violations import violation_recorder


def tenant_object(model, tenant, pk, label):
    try:
        return model.objects.get(tenant=tenant, pk=pk)
    except model.DoesNotExist:
        raise NotFound(f'{label} not found')


def tenant_user(tenant, pk):
    try:
        return User.objects.get(pk=pk, userprofile__tenant=tenant)
    except User.DoesNotExist:
        raise NotFound('User not found')


class TenantViewMixin:
    permission_classes = [permissions.IsAuthenticated, HasTenantProfile]

    @property
    def tenant(self):
        return self.request.user.userprofile.tenant


class BookingViewSet(TenantViewMixin, viewsets.ViewSet):
    """Bookings: create, read, modify, cancel, approve and check in."""

    def get_permissions(self):
        if self.action == 'statistics':
            return [permissions.IsAuthenticated(), IsStaffMember()]
        return super().get_permissions()

    def _get_booking(self, request, pk):
        booking = booking_service.get(self.tenant, pk)
        if not (IsOwnerOrStaff().has_object_permission(request, self, booking)
                or can_approve_bookings(request.user)):
            raise NotFound('Booking not found')
        return booking

    def list(self, request):
        params = request.query_params
        filters = {
            'space': params.get('space'),
            'user': params.get('user'),
            'status': params.get('status'),
            'start_date': params.get('start_date'),
            'end_date': params.get('end_date'),
            'upcoming': params.get('upcoming') in ('1', 'true', 'True'),
        }
        if not (is_staff_member(request.user) or can_approve_bookings(request.user)):
            filters['user'] = request.user.pk

        try:
            page = int(params.get('page', 1))
            page_size = int(params.get('page_size', 20))
        except ValueError:
            raise ValidationError('page and page_size must be integers')

        result = booking_service.list(self.tenant, filters, page=page, page_size=page_size)
        return Response({
            'results': BookingSerializer(result['results'], many=True).data,
            'pagination': result['pagination'],
        })

    def retrieve(self, request, pk=None):
        return Response(BookingSerializer(self._get_booking(request, pk)).data)

    def create(self, request):
        serializer = BookingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        owner = request.user
        owner_id = data.pop('user', None)
        if owner_id is not None and owner_id != request.user.pk:
            if not is_staff_member(request.user):
                raise Forbidden('Only staff can book on behalf of another member')
            owner = tenant_user(self.tenant, owner_id)
        booking = booking_service.create(self.tenant, owner, data)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = BookingWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        patch.pop('space', None)
        patch.pop('user', None)
        booking = booking_service.update(self.tenant, pk, request.user, patch)
        return Response(BookingSerializer(booking).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        """Cancel the booking instead of deleting it."""
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data.get('reason') or request.query_params.get('reason')
        booking = booking_service.cancel(self.tenant, pk, request.user, reason)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        serializer = ApprovalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = booking_service.approve(
            self.tenant, pk, request.user,
            serializer.validated_data['status'],
            serializer.validated_data.get('reason'),
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'])
    def checkin(self, request, pk=None):
        check_in = booking_service.check_in(self.tenant, pk, request.user)
        return Response(CheckInSerializer(check_in).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path=r'checkin/qr/(?P<code>[^/]+)')
    def checkin_qr(self, request, code=None):
        check_in = booking_service.check_in_with_qr(self.tenant, code, request.user)
        return Response(CheckInSerializer(check_in).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def availability(self, request):
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        space = tenant_object(Space, self.tenant, data['space'], 'Space')
        result = check_availability(self.tenant, space, data['start_time'], data['end_time'],
                                    exclude_booking_id=data.get('exclude_booking'))
        return Response(result.to_dict())

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        start = request.query_params.get('start_date')
        end = request.query_params.get('end_date')
        stats = booking_service.statistics(
            self.tenant,
            parse_datetime_value(start, 'start_date') if start else None,
            parse_datetime_value(end, 'end_date') if end else None,
        )
        return Response(stats)


class CheckInViewSet(TenantViewMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    serializer_class = CheckInSerializer

    def get_queryset(self):
        checkins = CheckIn.objects.filter(tenant=self.tenant).select_related('user', 'booking')
        if not is_staff_member(self.request.user):
            checkins = checkins.filter(booking__user=self.request.user)
        if self.request.query_params.get('open') in ('1', 'true', 'True'):
            checkins = checkins.filter(checked_out_at__isnull=True)
        return checkins

    @action(detail=True, methods=['post'])
    def checkout(self, request, pk=None):
        serializer = CheckOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        check_in = booking_service.check_out(
            self.tenant, pk, request.user,
            actual_end_time=serializer.validated_data.get('actual_end_time'),
            notes=serializer.validated_data.get('notes', ''),
        )
        return Response(CheckInSerializer(check_in).data)


class QRCodeViewSet(TenantViewMixin, viewsets.GenericViewSet):
    """Access credentials. Issuing, scanning and revoking are staff operations."""
    serializer_class = QRCodeSerializer

    def get_permissions(self):
        if self.action in ('create', 'scan', 'revoke'):
            return [permissions.IsAuthenticated(), IsStaffMember()]
        return super().get_permissions()

    def list(self, request):
        params = request.query_params
        user = visitor = None
        if is_staff_member(request.user):
            if params.get('user'):
                user = tenant_user(self.tenant, params['user'])
            if params.get('visitor'):
                visitor = tenant_object(Visitor, self.tenant, params['visitor'], 'Visitor')
        else:
            user = request.user
        codes = credential_service.list_for_subject(
            self.tenant, user=user, visitor=visitor,
            active_only=params.get('active_only', 'true') not in ('0', 'false', 'False'),
        )
        page = self.paginate_queryset(codes)
        if page is not None:
            return self.get_paginated_response(QRCodeSerializer(page, many=True).data)
        return Response(QRCodeSerializer(codes, many=True).data)

    def create(self, request):
        serializer = QRCodeIssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = tenant_user(self.tenant, data['user']) if 'user' in data else None
        visitor = (tenant_object(Visitor, self.tenant, data['visitor'], 'Visitor')
                   if 'visitor' in data else None)
        qr_code = credential_service.issue(
            self.tenant, data['qr_type'], user=user, visitor=visitor,
            valid_for_hours=data['valid_for_hours'], permissions=data['permissions'],
            max_scans=data.get('max_scans'), metadata=data['metadata'], issued_by=request.user,
        )
        return Response(QRCodeSerializer(qr_code).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def scan(self, request):
        serializer = ScanRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        location = (tenant_object(AccessZone, self.tenant, data['location'], 'Zone')
                    if 'location' in data else None)
        outcome = credential_service.scan(
            self.tenant, data['code'], location=location,
            device_info=data['device_info'], scanned_by=request.user,
        )
        return Response(outcome.to_dict())

    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        qr_code = credential_service.revoke(self.tenant, pk, request.user)
        return Response(QRCodeSerializer(qr_code).data)

    @action(detail=True, methods=['get'])
    def scans(self, request, pk=None):
        qr_code = credential_service.get(self.tenant, pk)
        if not is_staff_member(request.user) and qr_code.user_id != request.user.pk:
            raise NotFound('QR code not found.')
        history = credential_service.scan_history(self.tenant, pk)
        page = self.paginate_queryset(history)
        if page is not None:
            return self.get_paginated_response(QRCodeScanSerializer(page, many=True).data)
        return Response(QRCodeScanSerializer(history, many=True).data)


class OccupancyViewSet(TenantViewMixin, viewsets.ViewSet):

    def get_permissions(self):
        if self.action == 'record_movement':
            return [permissions.IsAuthenticated(), IsStaffMember()]
        return super().get_permissions()

    def list(self, request):
        params = request.query_params
        zone = tenant_object(AccessZone, self.tenant, params['zone'], 'Zone') if params.get('zone') else None
        space = tenant_object(Space, self.tenant, params['space'], 'Space') if params.get('space') else None
        records = occupancy_tracker.snapshot(self.tenant, zone=zone, space=space)
        return Response(OccupancyRecordSerializer(records, many=True).data)

    @action(detail=False, methods=['post'], url_path='update')
    def record_movement(self, request):
        serializer = OccupancyUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        zone = space = None
        # Physical movements are always counted; capacity is enforced at admission
        if 'zone' in data:
            zone = tenant_object(AccessZone, self.tenant, data['zone'], 'Zone')
        else:
            space = tenant_object(Space, self.tenant, data['space'], 'Space')
        count = occupancy_tracker.update(self.tenant, data['action'], zone=zone, space=space)
        return Response({'current_count': count})


class AccessViolationViewSet(TenantViewMixin, viewsets.GenericViewSet):
    serializer_class = AccessViolationSerializer
    permission_classes = [permissions.IsAuthenticated, IsStaffMember]

    def list(self, request):
        params = request.query_params
        resolved = params.get('resolved')
        if resolved is not None:
            resolved = resolved in ('1', 'true', 'True')
        violations = violation_recorder.list(
            self.tenant, resolved=resolved,
            severity=params.get('severity'), violation_type=params.get('type'),
        )
        page = self.paginate_queryset(violations)
        if page is not None:
            return self.get_paginated_response(AccessViolationSerializer(page, many=True).data)
        return Response(AccessViolationSerializer(violations, many=True).data)

    @action(detail=True, methods=['put'])
    def resolve(self, request, pk=None):
        violation = violation_recorder.resolve(self.tenant, pk, request.user)
        return Response(AccessViolationSerializer(violation).data)


class AccessEvaluationView(TenantViewMixin, APIView):
    """Preview a zone decision without recording violations or occupancy."""
    permission_classes = [permissions.IsAuthenticated, IsStaffMember]

    def post(self, request):
        serializer = EvaluateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        zone = tenant_object(AccessZone, self.tenant, data['zone'], 'Zone')
        if 'visitor' in data:
            subject = AccessSubject.for_visitor(tenant_object(Visitor, self.tenant, data['visitor'], 'Visitor'))
        elif 'user' in data:
            subject = AccessSubject.for_user(tenant_user(self.tenant, data['user']))
        else:
            subject = AccessSubject.for_user(request.user)
        decision = zone_rule_engine.evaluate(self.tenant, zone, subject, at=data.get('at'),
                                             record_violations=False)
        return Response(decision.to_dict())

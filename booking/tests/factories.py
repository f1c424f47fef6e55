"""Test factories for creating test data."""
from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth.models import User
from django.utils import timezone

from booking.models import (
    AccessRule, AccessZone, Booking, CheckIn, Space, Tenant, UserProfile, Visitor,
)
from booking.states import BookingStatus


def next_slot(days=1, hour=10):
    """Whole-hour start time ``days`` from now."""
    return (timezone.now() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


class TenantFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Tenant

    name = factory.Faker('company')
    slug = factory.Sequence(lambda n: f"tenant-{n}")
    is_active = True


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@test.com")
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True


class UserProfileFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UserProfile
        django_get_or_create = ('user',)

    user = factory.SubFactory(UserFactory)
    tenant = factory.SubFactory(TenantFactory)
    role = 'end_user'
    membership_type = 'flex'
    plan_type = 'monthly'


def member(tenant, role='end_user', **kwargs):
    """User with a profile in ``tenant``."""
    return UserProfileFactory(tenant=tenant, role=role, **kwargs).user


class VisitorFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Visitor

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Faker('name')
    email = factory.LazyAttribute(lambda obj: f"{obj.name.split()[0].lower()}@visitor.com")
    company = factory.Faker('company')
    is_blacklisted = False


class SpaceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Space

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f"Room {n}")
    space_type = 'MEETING_ROOM'
    capacity = 6
    hourly_rate = Decimal('20.00')
    requires_approval = False
    is_active = True


class BookingFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Booking

    space = factory.SubFactory(SpaceFactory)
    tenant = factory.SelfAttribute('space.tenant')
    user = factory.SubFactory(UserFactory)
    title = factory.Faker('sentence', nb_words=3)
    start_time = factory.LazyFunction(next_slot)
    end_time = factory.LazyAttribute(lambda obj: obj.start_time + timedelta(hours=1))
    status = BookingStatus.CONFIRMED


class CheckInFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CheckIn

    booking = factory.SubFactory(BookingFactory, status=BookingStatus.CHECKED_IN)
    tenant = factory.SelfAttribute('booking.tenant')
    space = factory.SelfAttribute('booking.space')
    user = factory.SelfAttribute('booking.user')


class AccessZoneFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AccessZone

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f"Zone {n}")
    zone_type = 'COMMON_AREA'
    restrictions = factory.LazyFunction(dict)
    is_active = True


class AccessRuleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AccessRule

    tenant = factory.SubFactory(TenantFactory)
    zone = factory.SubFactory(AccessZoneFactory, tenant=factory.SelfAttribute('..tenant'))
    name = factory.Sequence(lambda n: f"Rule {n}")
    priority = 0
    is_active = True

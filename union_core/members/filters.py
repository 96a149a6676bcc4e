# union_core/members/filters.py
from __future__ import annotations

import django_filters
from django.db.models import Q

from union_core.members.models import Member, MemberRole, MemberStatus


class MemberFilter(django_filters.FilterSet):
    """
    Member list filters, taken from query params:
      ?status=APPROVED&role=USER&is_blocked=false&search=김&pnu=1168...
    """
    status = django_filters.MultipleChoiceFilter(choices=MemberStatus.choices)
    role = django_filters.ChoiceFilter(choices=MemberRole.choices)
    is_blocked = django_filters.BooleanFilter()
    search = django_filters.CharFilter(method="filter_search")
    pnu = django_filters.CharFilter(field_name="property_units__pnu", distinct=True)
    ordering = django_filters.OrderingFilter(fields=(("name", "name"), ("created_at", "created_at"), ("approved_at", "approved_at")))

    class Meta:
        model = Member
        fields = ["status", "role", "is_blocked", "search", "pnu"]

    def filter_search(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value)
            | Q(phone_number__icontains=value)
            | Q(property_units__property_address_jibun__icontains=value)
        ).distinct()

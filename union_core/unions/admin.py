from django.contrib import admin

from union_core.unions.models import Union


@admin.register(Union)
class UnionAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "business_type", "member_count", "status", "created_at")
    list_filter = ("business_type", "status")
    search_fields = ("name", "slug")
    ordering = ("-created_at",)

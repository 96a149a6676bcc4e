from django.contrib import admin

from union_core.members.models import Member, MemberInvite, PropertyUnit, UserAuthLink


class PropertyUnitInline(admin.TabularInline):
    model = PropertyUnit
    extra = 0
    fields = ("pnu", "dong", "ho", "is_primary", "ownership_type", "property_address_jibun")


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ("name", "phone_number", "tenant_id", "status", "role", "is_blocked", "created_at")
    list_filter = ("status", "role", "is_blocked")
    search_fields = ("name", "phone_number", "resident_address_jibun")
    inlines = [PropertyUnitInline]


@admin.register(MemberInvite)
class MemberInviteAdmin(admin.ModelAdmin):
    list_display = ("name", "phone_number", "tenant_id", "status", "expires_at")
    list_filter = ("status",)
    search_fields = ("name", "phone_number")


@admin.register(UserAuthLink)
class UserAuthLinkAdmin(admin.ModelAdmin):
    list_display = ("auth_user", "member", "provider", "tenant_id", "created_at")

from django.contrib import admin

from union_core.consents.models import ConsentStage, UserConsent


@admin.register(ConsentStage)
class ConsentStageAdmin(admin.ModelAdmin):
    list_display = ("stage_name", "business_type", "required_rate", "sort_order", "tenant_id")
    list_filter = ("business_type",)
    ordering = ("tenant_id", "sort_order")


@admin.register(UserConsent)
class UserConsentAdmin(admin.ModelAdmin):
    list_display = ("member", "stage", "status", "consent_date", "updated_at")
    list_filter = ("status",)
    search_fields = ("member__name",)

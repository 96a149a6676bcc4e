from django.contrib import admin

from union_core.notifications.models import MessageLog


@admin.register(MessageLog)
class MessageLogAdmin(admin.ModelAdmin):
    list_display = ("template_code", "status", "recipient_count", "success_count", "fail_count", "tenant_id", "created_at")
    list_filter = ("template_code", "status")
    readonly_fields = ("created_at",)
    ordering = ("-created_at",)

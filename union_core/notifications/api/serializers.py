from rest_framework import serializers

from union_core.notifications.models import MessageLog


class MessageLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageLog
        fields = [
            "id",
            "template_code",
            "status",
            "recipient_count",
            "success_count",
            "fail_count",
            "error_message",
            "sent_by_user_id",
            "meta",
            "created_at",
        ]
        read_only_fields = fields

from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source='notification_type', read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'priority', 'metadata', 'is_read', 'read_at', 'created_at']
        read_only_fields = ['id', 'title', 'message', 'priority', 'metadata', 'read_at', 'created_at']

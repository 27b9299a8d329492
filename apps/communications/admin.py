from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'recipient', 'notification_type', 'priority', 'is_read', 'email_sent', 'created_at')
    list_filter = ('notification_type', 'priority', 'is_read', 'email_sent')
    search_fields = ('title', 'message', 'recipient__username', 'recipient__email')
    readonly_fields = ('read_at', 'content_type', 'object_id', 'metadata')
    date_hierarchy = 'created_at'

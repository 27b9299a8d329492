from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel


class Notification(BaseModel):
    """
    In-app notification raised by circulation events
    """
    BORROWING_DUE = "borrowing_due"
    BORROWING_OVERDUE = "borrowing_overdue"
    RESERVATION_READY = "reservation_ready"
    RESERVATION_EXPIRED = "reservation_expired"
    FINE_ISSUED = "fine_issued"
    PAYMENT_RECEIVED = "payment_received"
    SYSTEM = "system"

    NOTIFICATION_TYPE_CHOICES = (
        (BORROWING_DUE, _("Book Due Soon")),
        (BORROWING_OVERDUE, _("Book Overdue")),
        (RESERVATION_READY, _("Reservation Ready")),
        (RESERVATION_EXPIRED, _("Reservation Expired")),
        (FINE_ISSUED, _("Fine Issued")),
        (PAYMENT_RECEIVED, _("Payment Received")),
        (SYSTEM, _("System Notification")),
    )

    PRIORITY_CHOICES = (
        ("LOW", _("Low")),
        ("MEDIUM", _("Medium")),
        ("HIGH", _("High")),
    )

    # Recipient
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name=_("Recipient")
    )

    # Content
    title = models.CharField(max_length=200, verbose_name=_("Notification Title"))
    message = models.TextField(verbose_name=_("Notification Message"))
    notification_type = models.CharField(
        max_length=30,
        choices=NOTIFICATION_TYPE_CHOICES,
        default=SYSTEM,
        db_index=True,
        verbose_name=_("Notification Type")
    )
    priority = models.CharField(
        max_length=10,
        choices=PRIORITY_CHOICES,
        default="MEDIUM",
        verbose_name=_("Priority")
    )
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_("Metadata"))

    # Status and Tracking
    is_read = models.BooleanField(default=False, verbose_name=_("Is Read"))
    read_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Read At"))
    email_sent = models.BooleanField(default=False, verbose_name=_("Email Sent"))

    # Related object tracking
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        verbose_name=_("Content Type")
    )
    object_id = models.UUIDField(null=True, blank=True, verbose_name=_("Object ID"))
    related_object = GenericForeignKey('content_type', 'object_id')

    class Meta:
        db_table = "communications_notification"
        ordering = ["-created_at"]
        verbose_name = _("Notification")
        verbose_name_plural = _("Notifications")
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notification_recipient_idx'),
            models.Index(fields=['content_type', 'object_id'], name='notification_object_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {self.recipient}"

    def mark_as_read(self):
        """Mark notification as read"""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at', 'updated_at'])

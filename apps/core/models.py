import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.core.managers import ActiveManager


class UUIDModel(models.Model):
    """
    UUID primary key to prevent ID enumeration
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name=_("Universal ID")
    )

    class Meta:
        abstract = True

    @property
    def short_id(self):
        """Short identifier for logging and display"""
        return str(self.id)[:8]


class TimeStampedModel(models.Model):
    """
    Creation and modification timestamps
    """
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name=_("Creation Timestamp")
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Last Modification Timestamp")
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]


class BaseModel(UUIDModel, TimeStampedModel):
    """
    Base model for every Bookflix record
    """
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name=_("Active Status"),
        help_text=_("False hides the record from circulation without deleting it")
    )

    objects = models.Manager()
    active_objects = ActiveManager()

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.__class__.__name__}[{self.short_id}]"

    def deactivate(self):
        """Hide the record without deleting it"""
        self.is_active = False
        self.save(update_fields=["is_active", "updated_at"])
